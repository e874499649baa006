"""
Per-chat download sessions: link -> quality choice -> download -> delivery.
"""

import html
import logging
from typing import Dict, List, Optional, Protocol, Tuple

from config import FETCH_TIMEOUT_SECONDS, MAX_FILE_SIZE_BYTES
from errors import (
    GENERIC_FAILURE,
    FAILURE_HEADER,
    FetchFailed,
    OversizeResult,
    ProbeFailed,
    SessionExpired,
    ToolMissing,
    error_manager,
)
from extractor import YtDlpClient
from models import PendingSelection, QualityTier, SessionState, VideoInfo
from stats import UsageCounter
from storage import FileStore
from utils import (
    detect_platform,
    format_duration,
    format_file_size,
    format_size_hint,
    get_platform_info,
    is_valid_url,
    sanitize_user_input,
)

logger = logging.getLogger(__name__)

# Rows of (button label, callback payload).
Keyboard = List[List[Tuple[str, str]]]

QUALITY_CALLBACK_PREFIX = "quality_"

UNSUPPORTED_MESSAGE = "❌ Platform tidak didukung. Kirim /help untuk melihat platform yang didukung."
SESSION_EXPIRED_MESSAGE = "❌ Session expired. Silakan kirim ulang link video."


class ChatGateway(Protocol):
    """Minimal chat API surface used by the download sessions."""

    async def send_message(self, chat_id: int, text: str, keyboard: Optional[Keyboard] = None) -> int:
        ...

    async def edit_message(
        self,
        chat_id: int,
        message_id: int,
        text: str,
        keyboard: Optional[Keyboard] = None,
    ) -> None:
        ...

    async def delete_message(self, chat_id: int, message_id: int) -> None:
        ...

    async def answer_callback(self, callback_id: str) -> None:
        ...

    async def send_file(self, chat_id: int, path: str, caption: str) -> None:
        ...


class PendingStore:
    """At most one pending selection per chat."""

    def __init__(self):
        self._items: Dict[int, PendingSelection] = {}

    def put(self, selection: PendingSelection) -> Optional[PendingSelection]:
        """Store selection, returning the one it replaced, if any."""
        previous = self._items.get(selection.chat_id)
        self._items[selection.chat_id] = selection
        return previous

    def get(self, chat_id: int) -> Optional[PendingSelection]:
        return self._items.get(chat_id)

    def pop(self, chat_id: int) -> Optional[PendingSelection]:
        return self._items.pop(chat_id, None)

    def __contains__(self, chat_id: int) -> bool:
        return chat_id in self._items

    def __len__(self) -> int:
        return len(self._items)


def parse_quality_payload(payload: str) -> Optional[QualityTier]:
    if not payload or not payload.startswith(QUALITY_CALLBACK_PREFIX):
        return None
    try:
        return QualityTier(payload[len(QUALITY_CALLBACK_PREFIX):])
    except ValueError:
        return None


def build_quality_keyboard(video_info: Optional[VideoInfo] = None) -> Keyboard:
    buttons = []
    for tier in (QualityTier.P720, QualityTier.P1080):
        hint = format_size_hint(video_info.estimated_size(tier)) if video_info else ""
        buttons.append((f"📹 {tier.value}p{hint}", tier.callback_data))
    return [buttons]


class DownloadManager:
    """
    Drives each chat through Idle -> AwaitingQualitySelection -> Fetching ->
    Delivering -> Idle.

    Chats are independent; the only shared state is the usage counter file
    and the download directory. A newer link for a chat always starts a
    fresh cycle, and a finishing older cycle never overwrites its state.
    """

    def __init__(
        self,
        gateway: ChatGateway,
        extractor: YtDlpClient,
        file_store: FileStore,
        usage_counter: UsageCounter,
        pending: Optional[PendingStore] = None,
        max_file_size: int = MAX_FILE_SIZE_BYTES,
        fetch_timeout: Optional[float] = FETCH_TIMEOUT_SECONDS,
    ):
        self.gateway = gateway
        self.extractor = extractor
        self.file_store = file_store
        self.usage_counter = usage_counter
        self.pending = pending if pending is not None else PendingStore()
        self.max_file_size = max_file_size
        self.fetch_timeout = fetch_timeout

        self._states: Dict[int, SessionState] = {}
        self._cycles: Dict[int, int] = {}

    def state_of(self, chat_id: int) -> SessionState:
        return self._states.get(chat_id, SessionState.IDLE)

    def _begin_cycle(self, chat_id: int) -> int:
        cycle = self._cycles.get(chat_id, 0) + 1
        self._cycles[chat_id] = cycle
        return cycle

    def _set_state(self, chat_id: int, cycle: int, state: SessionState) -> None:
        if self._cycles.get(chat_id) != cycle:
            return
        if state is SessionState.IDLE:
            self._states.pop(chat_id, None)
        else:
            self._states[chat_id] = state

    async def handle_text(self, chat_id: int, user_id: int, text: str) -> None:
        """Start a new session when the message is a link to a supported platform."""
        url = sanitize_user_input(text or "")
        if not url or url.startswith("/") or not is_valid_url(url):
            return

        platform = detect_platform(url)
        if platform is None:
            await self._safe_send(chat_id, UNSUPPORTED_MESSAGE)
            return

        cycle = self._begin_cycle(chat_id)
        try:
            await self.usage_counter.track_user(user_id)

            replaced = self.pending.put(PendingSelection(chat_id=chat_id, url=url, platform=platform))
            if replaced is not None:
                logger.info("Replaced pending link for chat=%s: %s -> %s", chat_id, replaced.url, url)
            self._set_state(chat_id, cycle, SessionState.AWAITING_QUALITY)

            info = get_platform_info(platform)
            header = f"{info.emoji} <b>{info.name}</b> terdeteksi!"
            status_id = await self._safe_send(chat_id, f"{header}\n\n⏳ Mengambil info video...")

            video_info: Optional[VideoInfo] = None
            try:
                video_info = await self.extractor.probe(url)
            except (ProbeFailed, ToolMissing) as error:
                logger.warning("Probe failed for chat=%s url=%s: %s", chat_id, url, error)

            prompt = self._render_quality_prompt(header, video_info)
            keyboard = build_quality_keyboard(video_info)
            if status_id is None:
                await self._safe_send(chat_id, prompt, keyboard)
            else:
                await self._safe_edit(chat_id, status_id, prompt, keyboard)
        except Exception:
            logger.exception("Unexpected error while preparing chat=%s url=%s", chat_id, url)
            if self._cycles.get(chat_id) == cycle:
                self.pending.pop(chat_id)
            self._set_state(chat_id, cycle, SessionState.IDLE)
            await self._safe_send(chat_id, FAILURE_HEADER + GENERIC_FAILURE)

    async def handle_quality(self, chat_id: int, message_id: int, callback_id: str, payload: str) -> None:
        """Download the pending link of a chat in the selected quality."""
        await self._safe_answer(callback_id)

        tier = parse_quality_payload(payload)
        if tier is None:
            return

        try:
            selection = self._take_pending(chat_id)
        except SessionExpired:
            logger.info("Quality %sp selected without pending link (chat=%s)", tier.value, chat_id)
            await self._safe_send(chat_id, SESSION_EXPIRED_MESSAGE)
            return

        cycle = self._cycles.get(chat_id, 0)
        self._set_state(chat_id, cycle, SessionState.FETCHING)
        try:
            await self._download_and_deliver(selection, tier, message_id, cycle)
        except OversizeResult as error:
            logger.info("Rejected oversize file for chat=%s: %s", chat_id, error)
            await self._safe_edit(
                chat_id,
                message_id,
                "❌ <b>File terlalu besar</b>\n\n"
                f"Ukuran: {format_file_size(error.size_bytes)}\n"
                f"Maksimal: {format_file_size(error.limit_bytes)}\n\n"
                "Coba gunakan kualitas 720p.",
            )
        except (FetchFailed, ToolMissing) as error:
            logger.warning("Download failed for chat=%s url=%s: %s", chat_id, selection.url, error)
            await self._safe_edit(chat_id, message_id, error_manager.to_user_message(error))
        except Exception:
            logger.exception("Unexpected download error for chat=%s url=%s", chat_id, selection.url)
            await self._safe_edit(chat_id, message_id, FAILURE_HEADER + GENERIC_FAILURE)
        finally:
            self._set_state(chat_id, cycle, SessionState.IDLE)

    def _take_pending(self, chat_id: int) -> PendingSelection:
        selection = self.pending.pop(chat_id)
        if selection is None:
            raise SessionExpired(f"No pending link for chat {chat_id}")
        return selection

    async def _download_and_deliver(
        self,
        selection: PendingSelection,
        tier: QualityTier,
        message_id: int,
        cycle: int,
    ) -> None:
        chat_id = selection.chat_id
        downloading = f"⏳ <b>Downloading...</b> ({tier.value}p)"
        await self._safe_edit(
            chat_id,
            message_id,
            f"{downloading}\n\nMohon tunggu, ini mungkin memakan waktu beberapa saat.",
        )

        async def on_progress(percent: int) -> None:
            await self._safe_edit(chat_id, message_id, f"{downloading}\n\nProgress: {percent}%")

        result = await self.extractor.fetch(
            selection.url,
            tier,
            self.file_store.directory,
            platform=selection.platform,
            on_progress=on_progress,
            timeout=self.fetch_timeout,
        )

        if result.size_bytes > self.max_file_size:
            self.file_store.delete(result.file_path)
            raise OversizeResult(result.size_bytes, self.max_file_size)

        self._set_state(chat_id, cycle, SessionState.DELIVERING)
        size_text = format_file_size(result.size_bytes)
        await self._safe_edit(chat_id, message_id, f"📤 <b>Mengirim video...</b> ({size_text})")

        # The file stays on disk; the periodic sweep removes it later.
        await self.gateway.send_file(
            chat_id,
            result.file_path,
            caption=f"✅ Downloaded ({tier.value}p) - {size_text}",
        )
        await self.usage_counter.track_download(selection.platform)
        logger.info(
            "Delivered %s (%s) to chat=%s from %s",
            result.file_name,
            size_text,
            chat_id,
            selection.platform.value,
        )
        await self._safe_delete(chat_id, message_id)

    @staticmethod
    def _render_quality_prompt(header: str, video_info: Optional[VideoInfo]) -> str:
        if video_info is None:
            return f"{header}\n\nPilih kualitas video:"

        details = f"📝 <b>{html.escape(video_info.title)}</b>"
        meta = []
        if video_info.uploader:
            meta.append(f"👤 {html.escape(video_info.uploader)}")
        if video_info.duration:
            meta.append(f"⏱ {format_duration(video_info.duration)}")
        if meta:
            details += "\n" + " · ".join(meta)
        return f"{header}\n\n{details}\n\nPilih kualitas video:"

    async def _safe_send(self, chat_id: int, text: str, keyboard: Optional[Keyboard] = None) -> Optional[int]:
        try:
            return await self.gateway.send_message(chat_id, text, keyboard)
        except Exception:
            logger.debug("Send message failed (chat=%s)", chat_id, exc_info=True)
            return None

    async def _safe_edit(
        self,
        chat_id: int,
        message_id: int,
        text: str,
        keyboard: Optional[Keyboard] = None,
    ) -> None:
        try:
            await self.gateway.edit_message(chat_id, message_id, text, keyboard)
        except Exception:
            logger.debug("Edit message failed (chat=%s message=%s)", chat_id, message_id, exc_info=True)

    async def _safe_delete(self, chat_id: int, message_id: int) -> None:
        try:
            await self.gateway.delete_message(chat_id, message_id)
        except Exception:
            logger.debug("Delete message failed (chat=%s message=%s)", chat_id, message_id, exc_info=True)

    async def _safe_answer(self, callback_id: str) -> None:
        try:
            await self.gateway.answer_callback(callback_id)
        except Exception:
            logger.debug("Callback answer failed (%s)", callback_id, exc_info=True)
