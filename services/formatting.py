"""
Time and size formatting helpers shared by the slicing and export services.

Three timestamp renderings are used:

- display form ``HH:MM:SS:mmm`` shown to the user,
- path form ``HH-MM-SS-mmm`` used inside archive entry names,
- engine form ``HH:MM:SS.mmm`` (or ``HH:MM:SS`` in legacy whole-second
  mode) passed to FFmpeg as the seek offset.
"""

import math
import re
from typing import Tuple

from models.core import Slice


def _split_milliseconds(seconds: float) -> Tuple[int, int, int, int]:
    # Milliseconds are truncated, never rounded up. Rounding to whole
    # microseconds first absorbs float noise, so 2.9 gives 900 ms where a
    # plain floor of 2.9 * 1000 would give 899.
    total_ms = int(round(seconds * 1_000_000)) // 1000
    hours, rest = divmod(total_ms, 3600 * 1000)
    minutes, rest = divmod(rest, 60 * 1000)
    secs, millis = divmod(rest, 1000)
    return hours, minutes, secs, millis


def format_time(seconds: float) -> str:
    """Format seconds as ``HH:MM:SS:mmm``."""
    if seconds is None or math.isnan(seconds):
        return '00:00:00:000'
    hours, minutes, secs, millis = _split_milliseconds(max(seconds, 0.0))
    return f"{hours:02d}:{minutes:02d}:{secs:02d}:{millis:03d}"


def format_path_time(seconds: float) -> str:
    """Format seconds as ``HH-MM-SS-mmm`` for use in file names."""
    return format_time(seconds).replace(':', '-')


def format_engine_timestamp(seconds: float, whole_seconds: bool = False) -> str:
    """
    Format a seek offset for the transcoding engine.

    With ``whole_seconds`` the fractional part is dropped, which shifts the
    extracted start by up to one second from the requested bound.
    """
    if whole_seconds:
        value = int(math.floor(seconds))
        hours, rest = divmod(value, 3600)
        minutes, secs = divmod(rest, 60)
        return f"{hours:02d}:{minutes:02d}:{secs:02d}"
    hours, minutes, secs, millis = _split_milliseconds(seconds)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}.{millis:03d}"


def format_duration_seconds(duration: float) -> str:
    """Render a duration in seconds with millisecond precision."""
    return f"{duration:.3f}"


def slice_entry_path(sequence_index: int, slice_: Slice, extension: str) -> str:
    """Archive path ``{n}/{start}_to_{end}.{ext}`` for a numbered slice."""
    return (
        f"{sequence_index}/"
        f"{format_path_time(slice_.start)}_to_{format_path_time(slice_.end)}.{extension}"
    )


_INT_PART = re.compile(r'^\d+$')
_SECONDS_PART = re.compile(r'^\d+(?:\.\d+)?$')


def parse_time(text: str) -> float:
    """
    Parse a time string into seconds.

    Accepts ``SS``, ``SS.mmm``, ``MM:SS(.mmm)``, ``HH:MM:SS(.mmm)`` and the
    display form ``HH:MM:SS:mmm``.

    Raises:
        ValueError: If the string is not a recognised time
    """
    if text is None:
        raise ValueError("Time value is required")

    parts = text.strip().split(':')

    # Display form carries milliseconds as a fourth colon-separated field
    if len(parts) == 4:
        if not all(_INT_PART.match(p) for p in parts) or len(parts[3]) != 3:
            raise ValueError(f"Invalid time format: {text!r}")
        hours, minutes, secs, millis = (int(p) for p in parts)
        if minutes >= 60 or secs >= 60:
            raise ValueError(f"Invalid time format: {text!r}")
        return hours * 3600 + minutes * 60 + secs + millis / 1000.0

    if (len(parts) > 3 or not _SECONDS_PART.match(parts[-1])
            or not all(_INT_PART.match(p) for p in parts[:-1])):
        raise ValueError(f"Invalid time format: {text!r}")

    seconds = float(parts[-1])
    units = [int(p) for p in parts[:-1]]
    minutes = units[-1] if units else 0
    hours = units[0] if len(units) == 2 else 0

    if units and seconds >= 60:
        raise ValueError(f"Seconds out of range in {text!r}")
    if len(units) == 2 and minutes >= 60:
        raise ValueError(f"Minutes out of range in {text!r}")

    return hours * 3600 + minutes * 60 + seconds


def format_video_size(size_bytes: int) -> str:
    """Human readable file size, e.g. ``1 GB and 12 MB`` or ``12.34 MB``."""
    gigabyte = 1024 * 1024 * 1024
    megabyte = 1024 * 1024
    if size_bytes >= gigabyte:
        size_in_gb = size_bytes // gigabyte
        remaining_mb = int(round((size_bytes % gigabyte) / megabyte))
        return f"{size_in_gb} GB and {remaining_mb} MB"
    return f"{size_bytes / megabyte:.2f} MB"
