"""
Persistent usage counters stored in a single JSON document.

Every mutation reloads the file, changes it and writes it back. There is no
lock and no in-memory cache, so concurrent updates can lose increments. That
is acceptable for a single bot instance; a multi-instance deployment would
need a store with atomic increments.
"""

import json
import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict

import aiofiles

from models import Platform, UsageStats
from utils import get_platform_info

logger = logging.getLogger(__name__)


def default_stats() -> Dict[str, Any]:
    return {
        "users": [],
        "totalDownloads": 0,
        "downloads": {platform.value: 0 for platform in Platform},
        "startDate": datetime.now(timezone.utc).isoformat(),
    }


class UsageCounter:
    """Read-modify-write counters for users and downloads."""

    def __init__(self, path: str):
        self.path = path

    async def load(self) -> Dict[str, Any]:
        if not os.path.exists(self.path):
            return default_stats()
        try:
            async with aiofiles.open(self.path, "r", encoding="utf-8") as file:
                data = json.loads(await file.read())
        except (OSError, ValueError) as error:
            logger.error("Failed to load stats from %s: %s", self.path, error)
            return default_stats()

        if not isinstance(data, dict):
            logger.error("Stats file %s does not contain an object", self.path)
            return default_stats()

        base = default_stats()
        base.update(data)
        return base

    async def save(self, stats: Dict[str, Any]) -> None:
        try:
            async with aiofiles.open(self.path, "w", encoding="utf-8") as file:
                await file.write(json.dumps(stats, indent=2))
        except OSError as error:
            logger.error("Failed to save stats to %s: %s", self.path, error)

    async def track_user(self, user_id: int) -> None:
        stats = await self.load()
        if user_id not in stats["users"]:
            stats["users"].append(user_id)
            await self.save(stats)

    async def track_download(self, platform: Platform) -> None:
        stats = await self.load()
        stats["totalDownloads"] = int(stats.get("totalDownloads", 0)) + 1
        downloads = stats.setdefault("downloads", {})
        downloads[platform.value] = int(downloads.get(platform.value, 0)) + 1
        await self.save(stats)

    async def get_stats(self) -> UsageStats:
        stats = await self.load()
        return UsageStats(
            users=list(stats["users"]),
            total_downloads=int(stats["totalDownloads"]),
            downloads=dict(stats["downloads"]),
            start_date=str(stats["startDate"]),
        )

    async def format_stats_message(self) -> str:
        stats = await self.get_stats()
        try:
            started = datetime.fromisoformat(stats.start_date.replace("Z", "+00:00")).strftime("%d/%m/%Y")
        except ValueError:
            started = stats.start_date

        lines = [
            "📊 <b>Statistik Bot</b>",
            "",
            f"👥 Total Users: <b>{stats.total_users}</b>",
            f"📥 Total Downloads: <b>{stats.total_downloads}</b>",
            "",
            "<b>Downloads per Platform:</b>",
        ]
        for platform in Platform:
            info = get_platform_info(platform)
            lines.append(f"{info.emoji} {info.name}: {stats.downloads.get(platform.value, 0)}")
        lines.extend(["", f"📅 Aktif sejak: {started}"])
        return "\n".join(lines)
