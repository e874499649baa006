"""
Entry point for the video downloader Telegram bot.
"""

import asyncio
import logging
import sys

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.fsm.storage.memory import MemoryStorage
from aiohttp import web

from config import (
    CLEANUP_INTERVAL_SECONDS,
    CLEANUP_MAX_AGE_SECONDS,
    DOWNLOAD_DIR,
    HEALTH_PORT,
    LOG_FORMAT,
    LOG_LEVEL,
    STATS_FILE,
    require_bot_token,
)
from errors import setup_logging
from extractor import YtDlpClient
from handlers import BotHandlers, TelegramGateway
from managers import DownloadManager
from stats import UsageCounter
from storage import FileStore

shutdown_event = asyncio.Event()


async def start_health_server() -> None:
    """Run a tiny HTTP server so hosting platforms can keep this app healthy."""
    app = web.Application()

    async def health(request: web.Request) -> web.Response:
        return web.json_response({"status": "ok"})

    app.router.add_get("/", health)
    app.router.add_get("/health", health)

    runner = web.AppRunner(app)
    await runner.setup()

    host = "0.0.0.0"
    site = web.TCPSite(runner, host=host, port=HEALTH_PORT)
    await site.start()
    logging.getLogger(__name__).info("Health server started on %s:%s", host, HEALTH_PORT)

    try:
        await shutdown_event.wait()
    finally:
        await runner.cleanup()


async def main() -> None:
    logger = setup_logging(level=LOG_LEVEL, format_string=LOG_FORMAT)
    logger.info("Starting video downloader bot")

    bot = None
    cleanup_task = None
    health_server_task = None
    try:
        bot = Bot(token=require_bot_token(), default=DefaultBotProperties(parse_mode="HTML"))
        dispatcher = Dispatcher(storage=MemoryStorage())

        file_store = FileStore(DOWNLOAD_DIR)
        file_store.ensure_directory()
        logger.info("Download directory: %s", DOWNLOAD_DIR)

        usage_counter = UsageCounter(STATS_FILE)
        download_manager = DownloadManager(
            gateway=TelegramGateway(bot),
            extractor=YtDlpClient(),
            file_store=file_store,
            usage_counter=usage_counter,
        )
        BotHandlers(dp=dispatcher, download_manager=download_manager, usage_counter=usage_counter)

        cleanup_task = file_store.start_cleanup(CLEANUP_MAX_AGE_SECONDS, CLEANUP_INTERVAL_SECONDS)
        health_server_task = asyncio.create_task(start_health_server())
        await dispatcher.start_polling(bot)
    except Exception:
        logging.getLogger(__name__).exception("Fatal startup/runtime error")
        sys.exit(1)
    finally:
        shutdown_event.set()
        if cleanup_task is not None:
            cleanup_task.cancel()
            try:
                await cleanup_task
            except asyncio.CancelledError:
                pass
        if health_server_task is not None:
            try:
                await health_server_task
            except Exception:
                logging.getLogger(__name__).debug("Health server shutdown failed", exc_info=True)
        if bot is not None:
            await bot.session.close()


if __name__ == "__main__":
    asyncio.run(main())
