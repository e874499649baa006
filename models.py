"""
Data models for the downloader bot.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


class Platform(Enum):
    """Supported media source platforms."""

    YOUTUBE = "youtube"
    TIKTOK = "tiktok"
    INSTAGRAM = "instagram"
    FACEBOOK = "facebook"
    TWITTER = "twitter"


class QualityTier(Enum):
    """Maximum vertical resolution a user can request."""

    P720 = "720"
    P1080 = "1080"

    @property
    def height(self) -> int:
        return int(self.value)

    @property
    def callback_data(self) -> str:
        return f"quality_{self.value}"


class SessionState(Enum):
    """Lifecycle states of one chat's download session."""

    IDLE = "idle"
    AWAITING_QUALITY = "awaiting_quality_selection"
    FETCHING = "fetching"
    DELIVERING = "delivering"


@dataclass(frozen=True)
class PlatformInfo:
    name: str
    emoji: str


@dataclass
class PendingSelection:
    """A recognised link waiting for the user to pick a quality."""

    chat_id: int
    url: str
    platform: Platform


@dataclass
class VideoInfo:
    """Metadata-only probe result."""

    title: str = "Video"
    duration: float = 0
    uploader: str = "Unknown"
    thumbnail: Optional[str] = None
    size_720: Optional[int] = None
    size_1080: Optional[int] = None

    def estimated_size(self, tier: QualityTier) -> Optional[int]:
        if tier is QualityTier.P720:
            return self.size_720
        return self.size_1080


@dataclass
class DownloadResult:
    """A finished download that now lives in the download directory."""

    file_path: str
    file_name: str
    size_bytes: int


@dataclass
class UsageStats:
    users: List[int] = field(default_factory=list)
    total_downloads: int = 0
    downloads: Dict[str, int] = field(default_factory=dict)
    start_date: str = ""

    @property
    def total_users(self) -> int:
        return len(self.users)
