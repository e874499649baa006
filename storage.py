"""
Download directory lifecycle: naming, deletion and periodic cleanup.
"""

import asyncio
import logging
import os
import time
import uuid
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


def ensure_directory(path: str) -> None:
    """Create directory with intermediate segments if missing."""
    os.makedirs(path, exist_ok=True)


def generate_name(extension: str = "mp4") -> str:
    """Time-based file name with a short random suffix."""
    return f"video_{time.time_ns()}_{uuid.uuid4().hex[:6]}.{extension.lstrip('.')}"


def delete_file(path: str) -> bool:
    """Delete file if it exists. Returns True when something was removed."""
    try:
        os.remove(path)
        return True
    except FileNotFoundError:
        return False
    except OSError as error:
        logger.warning("Failed to delete %s: %s", path, error)
        return False


def sweep(directory: str, max_age_seconds: float, now: Optional[float] = None) -> int:
    """Delete regular files older than max_age_seconds. Best-effort."""
    root = Path(directory)
    if not root.is_dir():
        return 0

    now = time.time() if now is None else now
    deleted = 0
    for entry in root.iterdir():
        try:
            if not entry.is_file():
                continue
            if now - entry.stat().st_mtime > max_age_seconds:
                entry.unlink()
                deleted += 1
        except FileNotFoundError:
            continue
        except OSError as error:
            logger.warning("Cleanup skipped %s: %s", entry, error)

    if deleted:
        logger.info("Cleaned up %s old file(s) in %s", deleted, directory)
    return deleted


class FileStore:
    """Owns the shared download directory."""

    def __init__(self, directory: str):
        self.directory = directory

    def ensure_directory(self) -> str:
        ensure_directory(self.directory)
        return self.directory

    def delete(self, path: str) -> bool:
        return delete_file(path)

    def sweep(self, max_age_seconds: float) -> int:
        return sweep(self.directory, max_age_seconds)

    async def schedule(self, max_age_seconds: float, interval_seconds: float) -> None:
        """
        Sweep now, then every interval, until cancelled.

        The sweep itself is synchronous on the event loop, so two runs can
        never overlap.
        """
        logger.info(
            "Auto cleanup enabled: files older than %ss are deleted every %ss",
            max_age_seconds,
            interval_seconds,
        )
        while True:
            try:
                self.sweep(max_age_seconds)
            except Exception:
                logger.exception("Cleanup sweep failed for %s", self.directory)
            await asyncio.sleep(interval_seconds)

    def start_cleanup(self, max_age_seconds: float, interval_seconds: float) -> asyncio.Task:
        return asyncio.create_task(self.schedule(max_age_seconds, interval_seconds))
