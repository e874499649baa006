"""
Unit tests for utility functions.
"""

import pytest

from models import Platform
from utils import (
    detect_platform,
    format_duration,
    format_file_size,
    format_size_hint,
    get_platform_info,
    is_valid_url,
    sanitize_user_input,
    supported_platforms_text,
)


class TestPlatformDetection:
    """Test URL to platform resolution."""

    @pytest.mark.parametrize(
        "url, expected",
        [
            ("https://www.youtube.com/watch?v=dQw4w9WgXcQ", Platform.YOUTUBE),
            ("https://youtu.be/dQw4w9WgXcQ", Platform.YOUTUBE),
            ("https://www.tiktok.com/@user/video/123456789", Platform.TIKTOK),
            ("https://vm.tiktok.com/ZMabc/", Platform.TIKTOK),
            ("https://www.instagram.com/reel/Cxyz/", Platform.INSTAGRAM),
            ("https://www.facebook.com/watch?v=1", Platform.FACEBOOK),
            ("https://fb.watch/abc/", Platform.FACEBOOK),
            ("https://twitter.com/user/status/1", Platform.TWITTER),
            ("https://x.com/user/status/1", Platform.TWITTER),
        ],
    )
    def test_detect_platform_known(self, url, expected):
        assert detect_platform(url) == expected

    def test_detect_platform_is_case_insensitive(self):
        assert detect_platform("HTTPS://WWW.YOUTUBE.COM/watch?v=abc") == Platform.YOUTUBE
        assert detect_platform("https://Fb.Watch/xyz") == Platform.FACEBOOK

    def test_detect_platform_unknown(self):
        assert detect_platform("https://vimeo.com/123") is None
        assert detect_platform("") is None

    def test_detect_platform_first_match_wins(self):
        url = "https://www.youtube.com/redirect?q=https://tiktok.com/@u/video/1"
        assert detect_platform(url) == Platform.YOUTUBE

    def test_platform_info(self):
        info = get_platform_info(Platform.TWITTER)
        assert info.name == "Twitter/X"
        assert info.emoji == "🐦"

    def test_platform_info_fallback(self):
        info = get_platform_info(None)
        assert info.name == "Unknown"
        assert info.emoji == "🎬"

    def test_supported_platforms_text_lists_every_platform(self):
        text = supported_platforms_text()
        assert len(text.splitlines()) == len(Platform)
        assert "🔴 YouTube" in text


class TestValidation:
    """Test URL validation and input cleanup."""

    def test_is_valid_url(self):
        assert is_valid_url("https://youtube.com/watch?v=1")
        assert is_valid_url("  http://fb.watch/abc  ")

    def test_is_valid_url_rejects_text(self):
        assert not is_valid_url("")
        assert not is_valid_url("hello there")
        assert not is_valid_url("look https://youtube.com/watch?v=1")
        assert not is_valid_url("ftp://example.com/video")
        assert not is_valid_url("https://")

    def test_sanitize_user_input(self):
        assert sanitize_user_input("  https://x.com/a\x00 ") == "https://x.com/a"
        assert sanitize_user_input("") == ""


class TestFormatting:
    """Test human readable formatting."""

    def test_format_file_size(self):
        assert format_file_size(0) == "0 B"
        assert format_file_size(512) == "512 B"
        assert format_file_size(1536) == "1.5 KB"
        assert format_file_size(50 * 1024 * 1024) == "50 MB"

    def test_format_size_hint(self):
        assert format_size_hint(None) == ""
        assert format_size_hint(10 * 1024 * 1024) == " (~10.0MB)"

    def test_format_duration(self):
        assert format_duration(65) == "01:05"
        assert format_duration(3665) == "1:01:05"
