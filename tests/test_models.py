"""
Unit tests for data models.
"""

from models import (
    DownloadResult,
    PendingSelection,
    Platform,
    QualityTier,
    SessionState,
    UsageStats,
    VideoInfo,
)


def test_platform_enum_values():
    assert Platform.YOUTUBE.value == "youtube"
    assert Platform.TIKTOK.value == "tiktok"
    assert Platform.TWITTER.value == "twitter"


def test_quality_tier_properties():
    assert QualityTier.P720.height == 720
    assert QualityTier.P1080.callback_data == "quality_1080"


def test_session_state_values():
    assert SessionState.IDLE.value == "idle"
    assert SessionState.AWAITING_QUALITY.value == "awaiting_quality_selection"


def test_video_info_defaults_and_estimates():
    info = VideoInfo(size_720=100)
    assert info.title == "Video"
    assert info.thumbnail is None
    assert info.estimated_size(QualityTier.P720) == 100
    assert info.estimated_size(QualityTier.P1080) is None


def test_usage_stats_total_users():
    stats = UsageStats(users=[1, 2, 3])
    assert stats.total_users == 3
    assert stats.total_downloads == 0


def test_pending_selection_and_result_fields():
    selection = PendingSelection(chat_id=1, url="https://x.com/a", platform=Platform.TWITTER)
    result = DownloadResult(file_path="/tmp/a.mp4", file_name="a.mp4", size_bytes=10)
    assert selection.platform is Platform.TWITTER
    assert result.size_bytes == 10
