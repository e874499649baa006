"""
Error types, formatting and logging utilities.
"""

import logging
from typing import Optional, Sequence, Tuple


def setup_logging(
    level: str = "INFO",
    format_string: str = "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
) -> logging.Logger:
    """Configure root logging once and return module logger."""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    numeric_level = getattr(logging, level.upper(), logging.INFO)
    root_logger.setLevel(numeric_level)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter(format_string))
    root_logger.addHandler(console_handler)
    return logging.getLogger(__name__)


class DownloaderError(Exception):
    """Base class for failures raised by the download pipeline."""


class ToolMissing(DownloaderError):
    """The yt-dlp executable could not be started."""


class ProbeFailed(DownloaderError):
    """Metadata probe exited with an error or produced unreadable output."""


class FetchFailed(DownloaderError):
    """Media download did not produce a usable file."""


class OversizeResult(DownloaderError):
    """Downloaded file is bigger than Telegram accepts from bots."""

    def __init__(self, size_bytes: int, limit_bytes: int):
        super().__init__(f"File size {size_bytes} exceeds limit {limit_bytes}")
        self.size_bytes = size_bytes
        self.limit_bytes = limit_bytes


class SessionExpired(DownloaderError):
    """Quality was selected but no pending link is stored for the chat."""


FAILURE_HEADER = "❌ <b>Gagal download video</b>\n\n"
GENERIC_FAILURE = "Terjadi kesalahan. Pastikan link valid dan video bisa diakses."

# (required substrings, message); first row whose substrings all occur wins.
FAILURE_MESSAGES: Sequence[Tuple[Tuple[str, ...], str]] = (
    (("yt-dlp not found",), "yt-dlp belum terinstall di server."),
    (("Private video",), "Video tidak tersedia atau bersifat private."),
    (("Video unavailable",), "Video tidak tersedia atau bersifat private."),
    (("login required",), "Instagram membutuhkan login. Coba lagi nanti atau gunakan link yang berbeda."),
    (("rate-limit",), "Instagram membutuhkan login. Coba lagi nanti atau gunakan link yang berbeda."),
    (("No video could be found",), "Tidak ada video ditemukan di tweet ini."),
    (("Sign in to confirm",), "Twitter membutuhkan login untuk video ini."),
    (
        ("Unsupported URL", "facebook.com/stories"),
        "Facebook Stories belum didukung. Gunakan link Reels atau video biasa.",
    ),
    (("Unsupported URL",), "Format URL tidak didukung."),
    (("login.php",), "Facebook membutuhkan login. Pastikan cookies sudah dikonfigurasi."),
    (("timed out",), "Download terlalu lama dan dihentikan. Coba lagi atau pilih kualitas 720p."),
)


class ErrorManager:
    """Convert pipeline exceptions to compact user-facing messages."""

    def classify(self, diagnostic: str) -> Optional[str]:
        """Return the specific reason for a raw yt-dlp diagnostic, if known."""
        for needles, message in FAILURE_MESSAGES:
            if all(needle in diagnostic for needle in needles):
                return message
        return None

    def to_user_message(self, error: Optional[Exception]) -> str:
        reason = self.classify(str(error)) if error is not None else None
        return FAILURE_HEADER + (reason or GENERIC_FAILURE)


error_manager = ErrorManager()
