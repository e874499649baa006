"""
Utilities for URL parsing, platform detection and formatting.
"""

import re
from typing import Optional, Sequence, Tuple
from urllib.parse import urlparse

from models import Platform, PlatformInfo

# Checked in order; the first matching platform wins.
PLATFORM_PATTERNS: Sequence[Tuple[Platform, re.Pattern[str]]] = (
    (Platform.YOUTUBE, re.compile(r"(?:youtube\.com|youtu\.be)", re.IGNORECASE)),
    (Platform.TIKTOK, re.compile(r"tiktok\.com", re.IGNORECASE)),
    (Platform.INSTAGRAM, re.compile(r"instagram\.com", re.IGNORECASE)),
    (Platform.FACEBOOK, re.compile(r"(?:facebook\.com|fb\.watch|fb\.com)", re.IGNORECASE)),
    (Platform.TWITTER, re.compile(r"(?:twitter\.com|x\.com)", re.IGNORECASE)),
)

PLATFORM_INFO = {
    Platform.YOUTUBE: PlatformInfo(name="YouTube", emoji="🔴"),
    Platform.TIKTOK: PlatformInfo(name="TikTok", emoji="🎵"),
    Platform.INSTAGRAM: PlatformInfo(name="Instagram", emoji="📸"),
    Platform.FACEBOOK: PlatformInfo(name="Facebook", emoji="🔵"),
    Platform.TWITTER: PlatformInfo(name="Twitter/X", emoji="🐦"),
}

UNKNOWN_PLATFORM_INFO = PlatformInfo(name="Unknown", emoji="🎬")


def detect_platform(url: str) -> Optional[Platform]:
    """Detect source platform by URL, or None when no pattern matches."""
    if not url:
        return None
    for platform, pattern in PLATFORM_PATTERNS:
        if pattern.search(url):
            return platform
    return None


def get_platform_info(platform: Optional[Platform]) -> PlatformInfo:
    """Display name and emoji for a platform."""
    if platform is None:
        return UNKNOWN_PLATFORM_INFO
    return PLATFORM_INFO.get(platform, UNKNOWN_PLATFORM_INFO)


def supported_platforms_text() -> str:
    return "\n".join(f"{info.emoji} {info.name}" for info in PLATFORM_INFO.values())


def is_valid_url(text: str) -> bool:
    """Check that the whole text is an HTTP(S) URL."""
    if not text:
        return False
    candidate = text.strip()
    if not candidate or any(ch.isspace() for ch in candidate):
        return False
    try:
        parsed = urlparse(candidate)
    except ValueError:
        return False
    return parsed.scheme.lower() in {"http", "https"} and bool(parsed.netloc)


def sanitize_user_input(text: str, max_length: int = 2000) -> str:
    """Remove control chars and trim length."""
    if not text:
        return ""
    sanitized = re.sub(r"[\x00-\x1f\x7f-\x9f]", "", text)
    return sanitized.strip()[:max_length]


def format_file_size(bytes_size: Optional[int]) -> str:
    """Human readable file size."""
    if not bytes_size:
        return "0 B"

    size = float(max(bytes_size, 0))
    for unit in ("B", "KB", "MB", "GB"):
        if size < 1024.0 or unit == "GB":
            return f"{size:.2f}".rstrip("0").rstrip(".") + f" {unit}"
        size /= 1024.0
    return "0 B"


def format_size_hint(bytes_size: Optional[int]) -> str:
    """Suffix for a quality button, empty when the size is unknown."""
    if not bytes_size:
        return ""
    return f" (~{bytes_size / (1024 * 1024):.1f}MB)"


def format_duration(seconds: float) -> str:
    """Human readable duration."""
    total_seconds = max(0, int(seconds or 0))
    hours, remainder = divmod(total_seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"
