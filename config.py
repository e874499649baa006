"""
Configuration for the video downloader bot.
"""

import os

from dotenv import load_dotenv

load_dotenv()

BOT_TOKEN_PLACEHOLDER = "your_telegram_bot_token_here"


def require_bot_token() -> str:
    """Return bot token or raise if it is not configured."""
    token = os.getenv("BOT_TOKEN", "").strip()
    if not token or token == BOT_TOKEN_PLACEHOLDER:
        raise RuntimeError(
            "BOT_TOKEN tidak ditemukan! Buat file .env dan isi: BOT_TOKEN=your_token_here"
        )
    return token


LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT: str = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

DOWNLOAD_DIR: str = os.path.abspath(os.getenv("DOWNLOAD_DIR", "./downloads"))
STATS_FILE: str = os.path.abspath(os.getenv("STATS_FILE", "./stats.json"))

MAX_FILE_SIZE_BYTES: int = 50 * 1024 * 1024  # Telegram bot upload limit

CLEANUP_MAX_AGE_SECONDS: int = int(os.getenv("CLEANUP_MAX_AGE_SECONDS", "3600"))
CLEANUP_INTERVAL_SECONDS: int = int(os.getenv("CLEANUP_INTERVAL_SECONDS", "600"))

PROBE_TIMEOUT_SECONDS: int = int(os.getenv("PROBE_TIMEOUT_SECONDS", "60"))
FETCH_TIMEOUT_SECONDS: int = int(os.getenv("FETCH_TIMEOUT_SECONDS", "900"))

YTDLP_BINARY: str = os.getenv("YTDLP_BINARY", "yt-dlp").strip() or "yt-dlp"
YTDLP_COOKIES_FILE: str = os.path.abspath(os.getenv("YTDLP_COOKIES_FILE", "cookies.txt").strip() or "cookies.txt")
YTDLP_RETRIES: int = 3
YTDLP_USER_AGENT: str = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)

HEALTH_PORT: int = int(os.getenv("PORT", "10000"))
