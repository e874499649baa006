"""
Unit tests for Telegram handlers and the aiogram gateway.
"""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

from aiogram import Dispatcher
from aiogram.exceptions import TelegramBadRequest
from aiogram.types import InlineKeyboardMarkup

from handlers import BotHandlers, TelegramGateway


class _StubDownloadManager:
    def __init__(self):
        self.handle_text = AsyncMock()
        self.handle_quality = AsyncMock()


def _make_handlers():
    manager = _StubDownloadManager()
    counter = SimpleNamespace(format_stats_message=AsyncMock(return_value="📊 stats"))
    handlers = BotHandlers(dp=Dispatcher(), download_manager=manager, usage_counter=counter)
    return handlers, manager


def _message(text, chat_id=1001, user_id=7):
    return SimpleNamespace(
        text=text,
        chat=SimpleNamespace(id=chat_id),
        from_user=SimpleNamespace(id=user_id),
        answer=AsyncMock(),
    )


def test_url_message_is_forwarded():
    handlers, manager = _make_handlers()
    asyncio.run(handlers.handle_url_message(_message("https://youtu.be/abc")))

    manager.handle_text.assert_awaited_once_with(chat_id=1001, user_id=7, text="https://youtu.be/abc")


def test_commands_are_not_forwarded():
    handlers, manager = _make_handlers()
    asyncio.run(handlers.handle_url_message(_message("/unknown")))
    manager.handle_text.assert_not_awaited()


def test_quality_callback_is_forwarded():
    handlers, manager = _make_handlers()
    callback = SimpleNamespace(
        id="cb-9",
        data="quality_1080",
        message=SimpleNamespace(chat=SimpleNamespace(id=1001), message_id=77),
        answer=AsyncMock(),
    )

    asyncio.run(handlers.handle_quality_callback(callback))

    manager.handle_quality.assert_awaited_once_with(
        chat_id=1001, message_id=77, callback_id="cb-9", payload="quality_1080"
    )


def test_callback_without_message_is_answered():
    handlers, manager = _make_handlers()
    callback = SimpleNamespace(id="cb-9", data="quality_720", message=None, answer=AsyncMock())

    asyncio.run(handlers.handle_quality_callback(callback))

    manager.handle_quality.assert_not_awaited()
    assert callback.answer.await_count == 1


def test_start_and_stats_commands_reply():
    handlers, _ = _make_handlers()
    start = _message("/start")
    stats = _message("/stats")

    asyncio.run(handlers.handle_start(start))
    asyncio.run(handlers.handle_stats(stats))

    assert "YouTube" in start.answer.await_args.args[0]
    stats.answer.assert_awaited_once_with("📊 stats", parse_mode="HTML")


def test_gateway_builds_inline_keyboard():
    markup = TelegramGateway.build_keyboard([[("📹 720p", "quality_720"), ("📹 1080p", "quality_1080")]])

    assert isinstance(markup, InlineKeyboardMarkup)
    assert [button.callback_data for button in markup.inline_keyboard[0]] == ["quality_720", "quality_1080"]
    assert TelegramGateway.build_keyboard(None) is None


def test_gateway_send_message_returns_id():
    bot = SimpleNamespace(send_message=AsyncMock(return_value=SimpleNamespace(message_id=31)))
    gateway = TelegramGateway(bot)

    assert asyncio.run(gateway.send_message(5, "hi")) == 31


def test_gateway_falls_back_to_document(tmp_path):
    video = tmp_path / "video.mp4"
    video.write_bytes(b"data")
    bot = SimpleNamespace(
        send_video=AsyncMock(side_effect=TelegramBadRequest(method=MagicMock(), message="wrong file")),
        send_document=AsyncMock(),
    )

    asyncio.run(TelegramGateway(bot).send_file(5, str(video), caption="✅"))

    bot.send_document.assert_awaited_once()
    assert bot.send_document.await_args.kwargs["caption"] == "✅"
