import logging

import pytest

from trackmux.remuxer.subtitle_codec import (
    SubtitleChannel,
    generate_subtitles,
    parse_subtitles,
    parse_subtitles_report,
)
from trackmux.schemas import Track


def test_parse_single_block():
    tracks = parse_subtitles("1\n00:00:01.000 --> 00:00:02.500\nHola")

    assert len(tracks) == 1
    track = tracks[0]
    assert track.start == 1.0
    assert track.end == 2.5
    assert track.text == "Hola"
    assert track.translated_text == ""
    assert track.speed == 1
    assert track.for_dubbing is False
    assert track.id


def test_parse_assigns_unique_ids():
    content = "1\n00:00:01.000 --> 00:00:02.000\nUno\n\n2\n00:00:03.000 --> 00:00:04.000\nDos"
    tracks = parse_subtitles(content)
    assert [t.text for t in tracks] == ["Uno", "Dos"]
    assert tracks[0].id != tracks[1].id


def test_parse_keeps_multiline_text():
    tracks = parse_subtitles("1\n00:00:01.000 --> 00:00:02.000\nline one\nline two\n")
    assert tracks[0].text == "line one\nline two"


def test_parse_handles_crlf_and_comma_timecodes():
    content = "1\r\n00:00:01,200 --> 00:00:03,400\r\nHello\r\n\r\n2\r\n00:00:05,000 --> 00:00:06,000\r\nWorld\r\n"
    tracks = parse_subtitles(content)
    assert [(t.start, t.end, t.text) for t in tracks] == [(1.2, 3.4, "Hello"), (5.0, 6.0, "World")]


def test_parse_ignores_cue_settings_after_end_timecode():
    tracks = parse_subtitles("1\n00:00:01.000 --> 00:00:02.000 X1:40 X2:600\nHi")
    assert tracks[0].end == 2.0


def test_parse_skips_malformed_blocks(caplog):
    content = (
        "1\n00:00:01.000 --> 00:00:02.000\nKept\n\n"
        "2\n00:00:03.000 --> 00:00:04.000\n\n"
        "3\nnot a range\nText\n\n"
        "4\n00:00:xx.000 --> 00:00:06.000\nBad time\n\n"
        "5\n00:00:07.000 --> 00:00:08.000\nAlso kept"
    )
    with caplog.at_level(logging.WARNING, logger="trackmux.remuxer.subtitle_codec"):
        report = parse_subtitles_report(content)

    assert [t.text for t in report.tracks] == ["Kept", "Also kept"]
    assert report.skipped_blocks == 3
    assert "Skipped 3 malformed subtitle block(s)" in caplog.text


@pytest.mark.parametrize("content", ["", "   ", "\n\n\n"])
def test_parse_empty_content(content):
    report = parse_subtitles_report(content)
    assert report.tracks == []
    assert report.skipped_blocks == 0


def test_parse_tolerates_extra_blank_lines_between_blocks():
    content = "1\n00:00:01.000 --> 00:00:02.000\nA\n\n\n\n2\n00:00:02.000 --> 00:00:03.000\nB"
    assert [t.text for t in parse_subtitles(content)] == ["A", "B"]


def _tracks():
    return [
        Track(start=1, end=2.5, text="Hola", translated_text="Hola (ca)"),
        Track(start=0.25, end=0.75, text="Primer", translated_text="Primer (ca)"),
    ]


def test_generate_original_channel_keeps_input_order():
    assert generate_subtitles(_tracks()) == (
        "1\n00:00:01.000 --> 00:00:02.500\nHola\n\n"
        "2\n00:00:00.250 --> 00:00:00.750\nPrimer"
    )


def test_generate_translated_channel():
    output = generate_subtitles(_tracks(), SubtitleChannel.TRANSLATED)
    assert output.split("\n\n")[0] == "1\n00:00:01.000 --> 00:00:02.500\nHola (ca)"


def test_generate_numbers_from_one_regardless_of_ids():
    tracks = [Track(id="z", start=0, end=1, text="a"), Track(id="a", start=1, end=2, text="b")]
    blocks = generate_subtitles(tracks).split("\n\n")
    assert [block.split("\n")[0] for block in blocks] == ["1", "2"]


def test_generate_empty_list():
    assert generate_subtitles([]) == ""


def test_generate_rejects_negative_times():
    with pytest.raises(ValueError):
        generate_subtitles([Track(start=-1, end=1, text="x")])


def test_generated_text_parses_back():
    tracks = _tracks()
    parsed = parse_subtitles(generate_subtitles(tracks, SubtitleChannel.TRANSLATED))
    assert [(t.start, t.end, t.text) for t in parsed] == [(t.start, t.end, t.translated_text) for t in tracks]
