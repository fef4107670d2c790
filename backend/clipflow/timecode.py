"""
Time conversion helpers.

Operations work in integer milliseconds; ffmpeg takes seconds; operators
type timecodes. These helpers convert between the three.
"""

import re


class TimecodeError(ValueError):
    """Raised when a time string cannot be parsed."""
    pass


_TIMECODE_RE = re.compile(r"^(?:(\d+):)?(?:(\d+):)?(\d+)(?:\.(\d+))?$")
_SECONDS_RE = re.compile(r"^\d+(?:\.\d+)?$")


def seconds_to_ms(seconds: float) -> int:
    return int(round(seconds * 1000))


def ms_to_seconds(milliseconds: float) -> float:
    return milliseconds / 1000


def parse_time(value: str) -> int:
    """
    Parse a time string into milliseconds.

    Accepts HH:MM:SS.mmm, MM:SS.mmm, SS.mmm or plain seconds ("90.5").

    Raises:
        TimecodeError: If the string is not a recognised format
    """
    text = value.strip()
    if _SECONDS_RE.match(text):
        return seconds_to_ms(float(text))

    match = _TIMECODE_RE.match(text)
    if not match:
        raise TimecodeError(f"Invalid time format: {value}")

    first, second, seconds, fraction = match.groups()
    # A single "MM:SS" form fills the first optional group only
    if second is None:
        hours, minutes = 0, int(first or 0)
    else:
        hours, minutes = int(first or 0), int(second)

    millis = int((fraction or "0").ljust(3, "0")[:3])
    return ((hours * 60 + minutes) * 60 + int(seconds)) * 1000 + millis


def format_time(milliseconds: int) -> str:
    """Format milliseconds as HH:MM:SS.mmm."""
    milliseconds = int(milliseconds)
    total_seconds, ms = divmod(milliseconds, 1000)
    hours, rem = divmod(total_seconds, 3600)
    minutes, seconds = divmod(rem, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}.{ms:03d}"


def to_ffmpeg_time(milliseconds: int) -> str:
    """Format milliseconds as an ffmpeg seconds argument ("12.345")."""
    return f"{ms_to_seconds(milliseconds):.3f}"
