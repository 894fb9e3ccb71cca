"""
SRT-style subtitle text <-> Track list conversion.

A subtitle document is a sequence of blocks separated by one blank line::

    1
    00:00:01.000 --> 00:00:02.500
    Hola

Parsing keeps only blocks with an index line, a ``start --> end`` line and at
least one text line; anything else is skipped without raising. Generation
writes the tracks in the order given, numbered from 1.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum

from trackmux.remuxer.timecode import MalformedTimecode, decode_timecode, encode_timecode
from trackmux.schemas import Track

logger = logging.getLogger(__name__)

_BLOCK_SEPARATOR = "\n\n"
_RANGE_SEPARATOR = "-->"


class SubtitleChannel(str, Enum):
    """Which text of a track a subtitle stream carries."""

    ORIGINAL = "original"
    TRANSLATED = "translated"


@dataclass(slots=True)
class SubtitleParseResult:
    tracks: list[Track] = field(default_factory=list)
    skipped_blocks: int = 0


def _parse_block(block: str) -> Track | None:
    lines = block.split("\n")
    if len(lines) < 3:
        return None

    start_text, separator, end_text = lines[1].partition(_RANGE_SEPARATOR)
    end_fields = end_text.split()
    if not separator or not end_fields:
        return None

    # Cue settings may follow the end timecode ("... --> 00:00:02,000 X1:40")
    try:
        start = decode_timecode(start_text)
        end = decode_timecode(end_fields[0])
    except MalformedTimecode:
        return None

    return Track(start=start, end=end, text="\n".join(lines[2:]))


def parse_subtitles_report(content: str) -> SubtitleParseResult:
    """
    Parse subtitle text and report how many blocks were dropped.

    Every returned track gets a fresh id and default dubbing metadata.
    """
    result = SubtitleParseResult()
    normalized = content.replace("\r\n", "\n").replace("\r", "\n").strip()
    if not normalized:
        return result

    for block in normalized.split(_BLOCK_SEPARATOR):
        block = block.strip("\n")
        if not block:
            continue
        track = _parse_block(block)
        if track is None:
            result.skipped_blocks += 1
            continue
        result.tracks.append(track)

    if result.skipped_blocks:
        logger.warning(
            "[subtitle_codec] Skipped %d malformed subtitle block(s), kept %d",
            result.skipped_blocks,
            len(result.tracks),
        )
    return result


def parse_subtitles(content: str) -> list[Track]:
    """Parse subtitle text into track stubs, silently dropping malformed blocks."""
    return parse_subtitles_report(content).tracks


def generate_subtitles(tracks: Sequence[Track], channel: SubtitleChannel = SubtitleChannel.ORIGINAL) -> str:
    """
    Render tracks as subtitle text for one channel.

    Blocks follow the input order (no sorting by time) and are numbered from
    1 regardless of track ids.
    """
    blocks = []
    for number, track in enumerate(tracks, start=1):
        text = track.translated_text if channel == SubtitleChannel.TRANSLATED else track.text
        blocks.append(f"{number}\n{encode_timecode(track.start)} --> {encode_timecode(track.end)}\n{text}")
    return _BLOCK_SEPARATOR.join(blocks)
