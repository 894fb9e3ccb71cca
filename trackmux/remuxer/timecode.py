"""
Timecode conversion between seconds and ``HH:MM:SS.mmm`` text.

Encoding always uses a period before the milliseconds. Decoding also accepts
the comma separator written by SRT muxers (``00:00:01,500``) and timecodes
without a fractional part.
"""

import math
import re

# Hours may exceed two digits; minutes and seconds are always two.
_TIMECODE_RE = re.compile(r"^(\d+):([0-5]\d):([0-5]\d)(?:[.,](\d{3}))?$")


class MalformedTimecode(ValueError):
    """Raised when text is not a ``H+:MM:SS[.fff]`` or ``H+:MM:SS,fff`` timecode."""

    def __init__(self, text: str):
        self.text = text
        super().__init__(f"Malformed timecode: {text!r}")


def encode_timecode(seconds: float) -> str:
    """
    Encode seconds as ``HH:MM:SS.mmm``.

    The value is rounded to the nearest millisecond before being split into
    fields, so the output never shows ``60.000`` seconds.

    Raises:
        ValueError: If ``seconds`` is negative, NaN or infinite.
    """
    if math.isnan(seconds) or math.isinf(seconds) or seconds < 0:
        raise ValueError(f"Cannot encode timecode for {seconds!r} seconds")

    total_ms = int(round(seconds * 1000))
    hours, rest = divmod(total_ms, 3_600_000)
    minutes, rest = divmod(rest, 60_000)
    secs, millis = divmod(rest, 1000)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}.{millis:03d}"


def decode_timecode(text: str) -> float:
    """Decode a timecode into seconds."""
    match = _TIMECODE_RE.match(text.strip())
    if match is None:
        raise MalformedTimecode(text)

    hours, minutes, secs, millis = match.groups()
    total_ms = (int(hours) * 3600 + int(minutes) * 60 + int(secs)) * 1000 + int(millis or 0)
    return total_ms / 1000
