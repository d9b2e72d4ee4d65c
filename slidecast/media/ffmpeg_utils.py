"""
FFmpeg/ffprobe helpers for Slidecast

- Probe results are cached per file version (resolved path, mtime, size)
- Every probing failure reaches the pipeline as a ProbeError
- Resolution presets and "W:H" parsing live here
"""

from __future__ import annotations

import json
import logging
import subprocess
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import ffmpeg

from slidecast import settings
from slidecast.core.exceptions import ConfigurationError, ProbeError

logger = logging.getLogger(__name__)

ProbeCacheKey = Tuple[str, float, int]


# --------------------------- Probe cache ---------------------------

def _get_ffprobe_cache_key(path: str) -> ProbeCacheKey:
    """
    Identify one version of a file: replacing or editing it changes the key.

    Raises:
        OSError: If the file cannot be stat'ed
    """
    file_path = Path(path)
    info = file_path.stat()
    return str(file_path.resolve()), info.st_mtime, info.st_size


@lru_cache(maxsize=256)
def _cached_ffprobe_result(cache_key: ProbeCacheKey, timeout: int) -> Dict[str, Any]:
    resolved, mtime, size = cache_key
    logger.debug(f"🔍 FFprobe cache MISS for {Path(resolved).name} (mtime={mtime}, size={size})")
    return _run_ffprobe_uncached(resolved, timeout)


def clear_ffprobe_cache() -> None:
    _cached_ffprobe_result.cache_clear()
    logger.info("🗑️ FFprobe cache cleared")


def get_ffprobe_cache_info() -> Dict[str, int]:
    """Cache statistics: hits, misses, size and maxsize"""
    stats = _cached_ffprobe_result.cache_info()
    return {'hits': stats.hits, 'misses': stats.misses, 'size': stats.currsize, 'maxsize': stats.maxsize}


# --------------------------- Probe helpers ---------------------------

def run_ffprobe(path: str, timeout: Optional[int] = None, use_cache: bool = True) -> Dict[str, Any]:
    """
    Probe a media file and return ffprobe's JSON as a dict.

    Args:
        path: Media file
        timeout: Seconds before ffprobe is abandoned (default from configuration)
        use_cache: Reuse an earlier result for the same file version

    Raises:
        TimeoutError: ffprobe did not finish in time
        FileNotFoundError: ffprobe is not installed
        subprocess.CalledProcessError: ffprobe and the ffmpeg-python fallback both failed
        json.JSONDecodeError: ffprobe printed something that is not JSON
    """
    limit = settings.get_ffprobe_timeout_seconds() if timeout is None else timeout
    name = Path(path).name

    if not use_cache:
        logger.debug(f"⏭️ FFprobe cache bypassed for {name}")
        return _run_ffprobe_uncached(path, limit)

    try:
        key = _get_ffprobe_cache_key(path)
    except OSError as e:
        logger.warning(f"Cannot stat {path} for the probe cache ({e}), probing without cache")
        return _run_ffprobe_uncached(path, limit)

    hits = _cached_ffprobe_result.cache_info().hits
    probe = _cached_ffprobe_result(key, limit)
    if _cached_ffprobe_result.cache_info().hits > hits:
        logger.debug(f"✨ FFprobe cache HIT for {name}")
    return probe


def _run_ffprobe_uncached(path: str, timeout: int) -> Dict[str, Any]:
    cmd = [
        settings.get_ffprobe_binary(),
        "-v", "error",
        "-show_format",
        "-show_streams",
        "-of", "json",
        path,
    ]
    try:
        completed = subprocess.run(cmd, capture_output=True, text=True, check=True, timeout=timeout)
    except subprocess.TimeoutExpired as e:
        logger.error(f"FFprobe gave up on {path} after {timeout}s")
        raise TimeoutError(f"FFprobe timeout for {path} after {timeout}s") from e
    except subprocess.CalledProcessError as e:
        logger.error(f"FFprobe failed for {path}: returncode={e.returncode}, stderr={e.stderr or 'No stderr'}")
        try:
            return ffmpeg.probe(path)  # type: ignore[no-any-return]
        except ffmpeg.Error as probe_error:
            logger.error(f"ffmpeg.probe could not read {path} either: {probe_error}")
            raise e from probe_error
    except FileNotFoundError:
        logger.error("FFprobe not found. Please install ffmpeg.")
        raise

    try:
        return json.loads(completed.stdout or "{}")
    except json.JSONDecodeError as e:
        logger.error(f"FFprobe output for {path} is not JSON: {e}")
        raise


def get_streams(probe: Dict[str, Any], stream_type: str) -> List[Dict[str, Any]]:
    return [stream for stream in probe.get("streams", []) if stream.get("codec_type") == stream_type]


def _parse_duration(value: Any) -> Optional[float]:
    try:
        duration = float(value)
    except (TypeError, ValueError):
        return None
    return duration if duration > 0 else None


def probe_audio_duration(path: str) -> float:
    """
    Determine the playback duration of an audio file in seconds.

    Uses the container duration, falling back to the first audio stream.

    Raises:
        ProbeError: If the file is missing, ffprobe fails, or no positive duration is reported
    """
    if not Path(path).is_file():
        raise ProbeError("Audio file not found", file_path=path)

    try:
        probe = run_ffprobe(path)
    except TimeoutError as e:
        raise ProbeError(f"ffprobe timed out: {e}", file_path=path) from e
    except FileNotFoundError as e:
        raise ProbeError("ffprobe executable not found", file_path=path) from e
    except subprocess.CalledProcessError as e:
        raise ProbeError(f"ffprobe failed with exit code {e.returncode}", file_path=path) from e
    except json.JSONDecodeError as e:
        raise ProbeError(f"Could not parse ffprobe output: {e}", file_path=path) from e

    duration = _parse_duration(probe.get("format", {}).get("duration"))
    if duration is None:
        for stream in get_streams(probe, "audio"):
            duration = _parse_duration(stream.get("duration"))
            if duration is not None:
                break

    if duration is None:
        raise ProbeError("Could not determine audio duration", file_path=path)

    logger.debug(f"Audio duration for {Path(path).name}: {duration:.3f}s")
    return duration


# --------------------------- Resolution helpers ---------------------------

def parse_resolution(resolution: str) -> Tuple[int, int]:
    """
    Parse a "W:H" resolution string.

    Odd dimensions are rounded down to the nearest even number (yuv420p and
    H.264 need even frame sizes), e.g. "1281:721" gives (1280, 720).

    Raises:
        ConfigurationError: If the string is not two integers of at least 2
    """
    parts = str(resolution).strip().split(":")
    if len(parts) != 2:
        raise ConfigurationError(f"Invalid resolution '{resolution}', expected W:H", key="resolution")
    try:
        width, height = int(parts[0]), int(parts[1])
    except ValueError as e:
        raise ConfigurationError(f"Invalid resolution '{resolution}', expected W:H", key="resolution") from e
    if width < 2 or height < 2:
        raise ConfigurationError(f"Resolution must be at least 2:2, got '{resolution}'", key="resolution")

    even_width, even_height = width - width % 2, height - height % 2
    if (even_width, even_height) != (width, height):
        logger.warning(f"Resolution {width}:{height} rounded down to even size {even_width}:{even_height}")
    return even_width, even_height


def resolution_for_quality(quality: str, orientation: str = "horizontal") -> str:
    """Map a quality name to a "W:H" preset; unknown names fall back to medium."""
    presets = settings.get_resolution_presets(orientation)
    resolution = presets.get(quality) or presets.get("medium")
    if not resolution:
        resolution = "720:1280" if orientation == "vertical" else "1280:720"
    return resolution
