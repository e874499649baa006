"""
Thin asynchronous wrapper around the yt-dlp command line tool.

Everything that knows about yt-dlp arguments, its JSON report and its text
output lives here, so changes in the tool's output only touch this module.
"""

import asyncio
import inspect
import json
import logging
import os
import re
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Union

from config import (
    PROBE_TIMEOUT_SECONDS,
    YTDLP_BINARY,
    YTDLP_COOKIES_FILE,
    YTDLP_RETRIES,
    YTDLP_USER_AGENT,
)
from errors import FetchFailed, ProbeFailed, ToolMissing
from models import DownloadResult, Platform, QualityTier, VideoInfo
from storage import delete_file, ensure_directory, generate_name

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], Union[None, Awaitable[None]]]

PROGRESS_RE = re.compile(r"(\d+(?:\.\d+)?)%")
PROGRESS_STEP = 10.0
DIAGNOSTIC_NOISE = ("Deprecated Feature", "Please update to Python")

STREAM_COPY_ARGS = "ffmpeg:-c:v copy -c:a copy"
# Facebook containers often do not play inline in Telegram, so always transcode.
TRANSCODE_ARGS = "ffmpeg:-c:v libx264 -preset slow -crf 18 -c:a aac -b:a 192k"


def load_first_json(text: str) -> Dict[str, Any]:
    s = (text or "").strip()
    if not s:
        raise ValueError("Empty yt-dlp output")

    first = s.splitlines()[0].strip()
    if first.startswith("{") and first.endswith("}"):
        return json.loads(first)

    start = s.find("{")
    end = s.rfind("}")
    if start == -1 or end == -1 or end <= start:
        raise ValueError("No JSON object found in yt-dlp output")
    return json.loads(s[start : end + 1])


def filter_diagnostic(stderr: str) -> str:
    """Drop Python deprecation chatter from yt-dlp stderr."""
    lines = [
        line
        for line in (stderr or "").splitlines()
        if not any(marker in line for marker in DIAGNOSTIC_NOISE)
    ]
    return "\n".join(lines).strip()


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value) if value > 0 else None


def format_size_signal(fmt: Dict[str, Any], duration: float) -> Optional[float]:
    """Exact size, else approximate size, else bitrate times duration."""
    size = _number(fmt.get("filesize")) or _number(fmt.get("filesize_approx"))
    if size:
        return size
    tbr = _number(fmt.get("tbr"))
    if tbr and duration:
        # tbr is in KBit/s
        return tbr * duration * 125
    return None


def _is_audio_only(fmt: Dict[str, Any]) -> bool:
    return fmt.get("vcodec") == "none" and fmt.get("acodec") not in (None, "none")


def estimate_tier_size(
    formats: Iterable[Dict[str, Any]],
    max_height: int,
    duration: float = 0,
) -> Optional[int]:
    """
    Estimate the download size for a height ceiling.

    Every format not taller than the ceiling is a candidate. A candidate
    without audio is counted together with the largest audio-only stream,
    since yt-dlp will merge the two. The largest total wins.
    """
    formats = [fmt for fmt in formats if isinstance(fmt, dict)]
    audio_sizes = [format_size_signal(fmt, duration) for fmt in formats if _is_audio_only(fmt)]
    best_audio = max((value for value in audio_sizes if value), default=0)

    totals = []
    for fmt in formats:
        height = _number(fmt.get("height"))
        if not height or height > max_height or fmt.get("vcodec") == "none":
            continue
        size = format_size_signal(fmt, duration)
        if not size:
            continue
        if fmt.get("acodec") == "none":
            size += best_audio
        totals.append(size)

    if not totals:
        return None
    return int(max(totals))


def parse_video_info(info: Dict[str, Any]) -> VideoInfo:
    duration = _number(info.get("duration")) or 0
    # Single-format extractors report the only format at the top level.
    formats = info.get("formats") or [info]
    return VideoInfo(
        title=info.get("title") or "Video",
        duration=duration,
        uploader=info.get("uploader") or "Unknown",
        thumbnail=info.get("thumbnail") or None,
        size_720=estimate_tier_size(formats, QualityTier.P720.height, duration),
        size_1080=estimate_tier_size(formats, QualityTier.P1080.height, duration),
    )


def build_format_selector(tier: QualityTier) -> str:
    height = tier.height
    return f"bestvideo[height<={height}]+bestaudio/best[height<={height}]/best"


class ProgressReporter:
    """Turns yt-dlp progress text into callbacks at most every 10 points."""

    def __init__(self, callback: Optional[ProgressCallback] = None):
        self.callback = callback
        self.last_reported = 0.0

    async def feed(self, text: str) -> None:
        if self.callback is None:
            return
        for match in PROGRESS_RE.finditer(text):
            value = float(match.group(1))
            if value - self.last_reported < PROGRESS_STEP:
                continue
            self.last_reported = value
            try:
                result = self.callback(round(value))
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.debug("Progress callback failed", exc_info=True)


class YtDlpClient:
    """Runs yt-dlp for metadata probes and downloads."""

    def __init__(
        self,
        binary: str = YTDLP_BINARY,
        cookies_file: Optional[str] = YTDLP_COOKIES_FILE,
        probe_timeout: float = PROBE_TIMEOUT_SECONDS,
    ):
        self.binary = binary
        self.cookies_file = cookies_file
        self.probe_timeout = probe_timeout

    def _cookie_args(self) -> List[str]:
        if self.cookies_file and os.path.exists(self.cookies_file):
            return ["--cookies", self.cookies_file]
        return []

    def build_probe_args(self, url: str) -> List[str]:
        return [self.binary, "--dump-json", "--no-warnings", "--no-playlist", url]

    def build_fetch_args(
        self,
        url: str,
        tier: QualityTier,
        output_path: str,
        platform: Optional[Platform] = None,
    ) -> List[str]:
        args = [
            self.binary,
            "-f", build_format_selector(tier),
            "--merge-output-format", "mp4",
            "-o", output_path,
            "--no-warnings",
            "--no-playlist",
            "--newline",
            "--progress",
            "--extractor-args", "youtube:player_client=android",
            "--user-agent", YTDLP_USER_AGENT,
            "--no-check-certificates",
            "--prefer-insecure",
            "--retries", str(YTDLP_RETRIES),
            "--fragment-retries", str(YTDLP_RETRIES),
        ]

        if platform is Platform.FACEBOOK:
            args.extend(["--recode-video", "mp4", "--postprocessor-args", TRANSCODE_ARGS])
        else:
            args.extend(["--postprocessor-args", STREAM_COPY_ARGS])

        args.extend(self._cookie_args())
        args.append(url)
        return args

    async def _spawn(self, args: List[str]) -> asyncio.subprocess.Process:
        try:
            return await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except (FileNotFoundError, PermissionError) as error:
            raise ToolMissing(f"yt-dlp not found. Please install yt-dlp: {error}") from error

    @staticmethod
    async def _terminate(proc: asyncio.subprocess.Process) -> None:
        if proc.returncode is not None:
            return
        try:
            proc.kill()
        except ProcessLookupError:
            return
        await proc.wait()

    async def probe(self, url: str) -> VideoInfo:
        """Fetch metadata and per-tier size estimates without downloading."""
        proc = await self._spawn(self.build_probe_args(url))
        try:
            stdout_b, stderr_b = await asyncio.wait_for(proc.communicate(), timeout=self.probe_timeout)
        except asyncio.TimeoutError as error:
            await self._terminate(proc)
            raise ProbeFailed(f"Probe timed out after {self.probe_timeout}s") from error
        except asyncio.CancelledError:
            await self._terminate(proc)
            raise

        stdout = (stdout_b or b"").decode("utf-8", errors="ignore")
        stderr = (stderr_b or b"").decode("utf-8", errors="ignore")
        if proc.returncode != 0:
            raise ProbeFailed(filter_diagnostic(stderr) or "Failed to get video info")

        try:
            info = load_first_json(stdout)
        except ValueError as error:
            raise ProbeFailed("Failed to parse video info") from error
        return parse_video_info(info)

    async def _communicate(self, proc: asyncio.subprocess.Process, reporter: ProgressReporter) -> str:
        async def pump_stdout() -> None:
            # --newline puts every progress update on its own line
            while True:
                line = await proc.stdout.readline()
                if not line:
                    break
                await reporter.feed(line.decode("utf-8", errors="ignore"))

        async def pump_stderr() -> str:
            data = await proc.stderr.read()
            return data.decode("utf-8", errors="ignore")

        _, stderr = await asyncio.gather(pump_stdout(), pump_stderr())
        await proc.wait()
        return stderr

    async def fetch(
        self,
        url: str,
        tier: QualityTier,
        destination_dir: str,
        platform: Optional[Platform] = None,
        on_progress: Optional[ProgressCallback] = None,
        timeout: Optional[float] = None,
    ) -> DownloadResult:
        """
        Download media into destination_dir as a single mp4 file.

        Succeeds whenever a non-empty output file exists, even if yt-dlp exited
        with an error: it sometimes reports failure after a complete write.
        This can also accept a truncated file from an interrupted merge.
        """
        ensure_directory(destination_dir)
        file_name = generate_name("mp4")
        output_path = os.path.join(destination_dir, file_name)

        proc = await self._spawn(self.build_fetch_args(url, tier, output_path, platform))
        logger.info("yt-dlp started (pid=%s tier=%sp platform=%s) for %s", proc.pid, tier.value,
                    platform.value if platform else None, url)

        try:
            stderr = await asyncio.wait_for(
                self._communicate(proc, ProgressReporter(on_progress)),
                timeout=timeout,
            )
        except asyncio.TimeoutError as error:
            await self._terminate(proc)
            self._discard(output_path)
            raise FetchFailed(f"Download timed out after {timeout}s") from error
        except asyncio.CancelledError:
            await self._terminate(proc)
            self._discard(output_path)
            raise

        size = self._file_size(output_path)
        if size:
            if proc.returncode != 0:
                logger.warning(
                    "yt-dlp exited with %s but produced %s bytes, accepting %s",
                    proc.returncode,
                    size,
                    output_path,
                )
            return DownloadResult(file_path=output_path, file_name=file_name, size_bytes=size)

        self._discard(output_path)
        diagnostic = filter_diagnostic(stderr)
        logger.warning("yt-dlp failed (exit=%s) for %s: %s", proc.returncode, url, diagnostic)
        raise FetchFailed(diagnostic or "Download failed")

    @staticmethod
    def _file_size(path: str) -> int:
        try:
            return os.path.getsize(path)
        except OSError:
            return 0

    @staticmethod
    def _discard(output_path: str) -> None:
        delete_file(output_path)
        delete_file(output_path + ".part")
