"""
Telegram handlers and the aiogram adapter for the download sessions.
"""

import logging
from typing import Optional

from aiogram import Bot, Dispatcher
from aiogram.exceptions import TelegramBadRequest
from aiogram.filters import Command
from aiogram.types import (
    CallbackQuery,
    FSInputFile,
    InlineKeyboardButton,
    InlineKeyboardMarkup,
    Message,
)

from managers import QUALITY_CALLBACK_PREFIX, DownloadManager, Keyboard
from stats import UsageCounter
from utils import supported_platforms_text

logger = logging.getLogger(__name__)


class TelegramGateway:
    """Chat gateway backed by an aiogram Bot."""

    def __init__(self, bot: Bot):
        self.bot = bot

    @staticmethod
    def build_keyboard(keyboard: Optional[Keyboard]) -> Optional[InlineKeyboardMarkup]:
        if not keyboard:
            return None
        return InlineKeyboardMarkup(
            inline_keyboard=[
                [InlineKeyboardButton(text=label, callback_data=payload) for label, payload in row]
                for row in keyboard
            ]
        )

    async def send_message(self, chat_id: int, text: str, keyboard: Optional[Keyboard] = None) -> int:
        message = await self.bot.send_message(
            chat_id,
            text,
            parse_mode="HTML",
            reply_markup=self.build_keyboard(keyboard),
        )
        return message.message_id

    async def edit_message(
        self,
        chat_id: int,
        message_id: int,
        text: str,
        keyboard: Optional[Keyboard] = None,
    ) -> None:
        await self.bot.edit_message_text(
            text=text,
            chat_id=chat_id,
            message_id=message_id,
            parse_mode="HTML",
            reply_markup=self.build_keyboard(keyboard),
        )

    async def delete_message(self, chat_id: int, message_id: int) -> None:
        await self.bot.delete_message(chat_id=chat_id, message_id=message_id)

    async def answer_callback(self, callback_id: str) -> None:
        await self.bot.answer_callback_query(callback_id)

    async def send_file(self, chat_id: int, path: str, caption: str) -> None:
        try:
            await self.bot.send_video(
                chat_id,
                video=FSInputFile(path),
                caption=caption,
                supports_streaming=True,
            )
        except TelegramBadRequest as error:
            logger.warning("send_video rejected (%s), sending as document", error)
            await self.bot.send_document(chat_id, document=FSInputFile(path), caption=caption)


class BotHandlers:
    """Registers bot commands and the link -> quality -> download flow."""

    def __init__(self, dp: Dispatcher, download_manager: DownloadManager, usage_counter: UsageCounter):
        self.dp = dp
        self.download_manager = download_manager
        self.usage_counter = usage_counter
        self._register_handlers()

    def _register_handlers(self) -> None:
        self.dp.message.register(self.handle_start, Command(commands=["start"]))
        self.dp.message.register(self.handle_help, Command(commands=["help"]))
        self.dp.message.register(self.handle_stats, Command(commands=["stats"]))
        self.dp.message.register(self.handle_url_message)
        self.dp.callback_query.register(
            self.handle_quality_callback,
            lambda callback: (callback.data or "").startswith(QUALITY_CALLBACK_PREFIX),
        )

    async def handle_start(self, message: Message) -> None:
        text = (
            "🎬 <b>Video Downloader Bot</b>\n\n"
            "Selamat datang! Saya bisa download video dari:\n\n"
            f"{supported_platforms_text()}\n\n"
            "<b>Cara pakai:</b>\n"
            "1️⃣ Kirim link video\n"
            "2️⃣ Pilih kualitas (720p/1080p)\n"
            "3️⃣ Tunggu video selesai didownload\n\n"
            "Kirim /help untuk bantuan lebih lanjut."
        )
        await message.answer(text, parse_mode="HTML")

    async def handle_help(self, message: Message) -> None:
        text = (
            "📖 <b>Panduan Penggunaan</b>\n\n"
            "<b>Platform yang didukung:</b>\n"
            f"{supported_platforms_text()}\n\n"
            "<b>Contoh link yang valid:</b>\n"
            "• YouTube: <code>https://youtube.com/watch?v=xxx</code>\n"
            "• TikTok: <code>https://tiktok.com/@user/video/xxx</code>\n"
            "• Instagram: <code>https://instagram.com/reel/xxx</code>\n"
            "• Facebook: <code>https://fb.watch/xxx</code>\n"
            "• Twitter: <code>https://twitter.com/user/status/xxx</code>\n\n"
            "<b>Pilihan kualitas:</b>\n"
            "• 720p - Ukuran lebih kecil, download lebih cepat\n"
            "• 1080p - Kualitas lebih tinggi\n\n"
            "<b>Batas ukuran:</b> Maksimal 50MB (limit Telegram)"
        )
        await message.answer(text, parse_mode="HTML")

    async def handle_stats(self, message: Message) -> None:
        await message.answer(await self.usage_counter.format_stats_message(), parse_mode="HTML")

    async def handle_url_message(self, message: Message) -> None:
        text = message.text or ""
        if not text or text.startswith("/"):
            return

        user_id = message.from_user.id if message.from_user else message.chat.id
        await self.download_manager.handle_text(chat_id=message.chat.id, user_id=user_id, text=text)

    async def handle_quality_callback(self, callback: CallbackQuery) -> None:
        if callback.message is None:
            await callback.answer("Pesan sudah tidak tersedia. Kirim ulang link video.", show_alert=True)
            return

        await self.download_manager.handle_quality(
            chat_id=callback.message.chat.id,
            message_id=callback.message.message_id,
            callback_id=callback.id,
            payload=callback.data or "",
        )
