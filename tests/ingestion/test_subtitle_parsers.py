"""Unit tests for subtitle parsers."""

import pytest

from src.ingestion.schemas import TranscriptItem
from src.ingestion.subtitle_parsers import (
    clean_caption_text,
    detect_subtitle_format,
    parse_clock_time,
    parse_srt,
    parse_subtitles,
    parse_ttml,
    parse_vtt,
    register_subtitle_parser,
)

TIMEDTEXT_XML = """<?xml version="1.0" encoding="utf-8" ?>
<transcript>
  <text start="0.5" dur="2.25">Welcome to &amp;#39;biology&amp;#39;</text>
  <text start="2.75" dur="3">Today: <b>cells</b></text>
  <text start="6" dur="1">   </text>
</transcript>
"""

SRV3_XML = """<timedtext format="3"><body>
<p t="1200" d="3400">first <s>line</s></p>
<p t="4600" d="abc">second line</p>
</body></timedtext>"""

TTML = """<tt xmlns="http://www.w3.org/ns/ttml"><body><div>
<p begin="00:00:01.000" end="00:00:03.500">Hello<br/>world</p>
<p begin="00:00:04.000" dur="2s">Again</p>
</div></body></tt>"""

VTT = """WEBVTT
Kind: captions
Language: en

NOTE This is a comment

STYLE
::cue { color: white }

00:00:00.000 --> 00:00:02.000 align:start position:0%
<c.colorE5E5E5>Photosynthesis</c> converts light

00:00:02.000 --> 00:00:04.500
Photosynthesis converts light

00:01:02.250 --> 00:01:05.000
into chemical energy
"""

SRT = """1
00:00:01,000 --> 00:00:02,500
First &amp; foremost

2
00:00:03,000 --> 00:00:04,000
<i>Second</i>
line

3
00:00:05,000 --> 00:00:06,000

"""


@pytest.mark.unit
class TestHelpers:
    """Test suite for text cleaning and time parsing."""

    def test_clean_caption_text_decodes_double_encoding(self) -> None:
        """Test double-encoded entities and tags are removed."""
        assert clean_caption_text("<c.colorE5E5E5>it&amp;#39;s</c> <i>fine</i>") == "it's fine"

    def test_clean_caption_text_strips_encoded_tags(self) -> None:
        """Test tags surfaced by entity decoding are removed too."""
        assert clean_caption_text("&lt;b&gt;bold&lt;/b&gt;   text") == "bold text"

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("01:01:01.500", 3_661_500),
            ("00:02,250", 2_250),
            ("00:xx:05,000", 5_000),
            ("12.5s", 12_500),
            ("1500ms", 1_500),
            ("2m", 120_000),
            ("00:00:01:12", 1_400),
            ("01:00:00:15", 3_600_500),
            ("", 0),
        ],
    )
    def test_parse_clock_time(self, value: str, expected: int) -> None:
        """Test clock and offset formats, with bad parts counting as zero."""
        assert parse_clock_time(value) == expected


@pytest.mark.unit
class TestTtmlParser:
    """Test suite for XML caption formats."""

    def test_timedtext_format(self) -> None:
        """Test YouTube <text start dur> captions in seconds."""
        items = parse_ttml(TIMEDTEXT_XML)

        assert items == [
            TranscriptItem(text="Welcome to 'biology'", offset_ms=500, duration_ms=2250),
            TranscriptItem(text="Today: cells", offset_ms=2750, duration_ms=3000),
        ]

    def test_srv3_format_in_milliseconds(self) -> None:
        """Test srv3 <p t d> captions, with bad duration as zero."""
        items = parse_ttml(SRV3_XML)

        assert items == [
            TranscriptItem(text="first line", offset_ms=1200, duration_ms=3400),
            TranscriptItem(text="second line", offset_ms=4600, duration_ms=0),
        ]

    def test_standard_ttml_begin_end_and_dur(self) -> None:
        """Test standard TTML cues with end or dur attributes."""
        items = parse_ttml(TTML)

        assert items == [
            TranscriptItem(text="Hello world", offset_ms=1000, duration_ms=2500),
            TranscriptItem(text="Again", offset_ms=4000, duration_ms=2000),
        ]

    def test_ttml_frame_clock_values(self) -> None:
        """Test HH:MM:SS:FF cue times keep their seconds."""
        items = parse_ttml(
            '<tt><body><p begin="00:00:01:12" end="00:00:03:00">Frames</p></body></tt>'
        )

        assert items == [TranscriptItem(text="Frames", offset_ms=1400, duration_ms=1600)]

    def test_no_cues(self) -> None:
        """Test XML without cues yields nothing."""
        assert parse_ttml("<transcript></transcript>") == []


@pytest.mark.unit
class TestCueParsers:
    """Test suite for WebVTT and SRT."""

    def test_vtt_skips_header_and_metadata_blocks(self) -> None:
        """Test header, NOTE and STYLE blocks are ignored."""
        items = parse_vtt(VTT)

        assert [item.text for item in items] == [
            "Photosynthesis converts light",
            "Photosynthesis converts light",
            "into chemical energy",
        ]
        assert [(item.offset_ms, item.duration_ms) for item in items] == [
            (0, 2000),
            (2000, 2500),
            (62_250, 2750),
        ]

    @pytest.mark.parametrize("parser", [parse_vtt, parse_srt])
    def test_repeated_lines_are_kept(self, parser) -> None:
        """Test a line spoken twice in a row yields two cues."""
        content = (
            "WEBVTT\n\n"
            "00:00:01.000 --> 00:00:02.000\nYes.\n\n"
            "00:00:03.000 --> 00:00:04.000\nYes.\n"
        )
        if parser is parse_srt:
            content = content.replace("WEBVTT\n\n", "").replace(".000", ",000")

        items = parser(content)

        assert items == [
            TranscriptItem(text="Yes.", offset_ms=1000, duration_ms=1000),
            TranscriptItem(text="Yes.", offset_ms=3000, duration_ms=1000),
        ]

    def test_srt(self) -> None:
        """Test SRT cues, multi-line text and empty cues."""
        items = parse_srt(SRT)

        assert items == [
            TranscriptItem(text="First & foremost", offset_ms=1000, duration_ms=1500),
            TranscriptItem(text="Second line", offset_ms=3000, duration_ms=1000),
        ]

    def test_srt_with_windows_line_endings(self) -> None:
        """Test CRLF files parse like LF files."""
        assert parse_srt(SRT.replace("\n", "\r\n")) == parse_srt(SRT)

    def test_malformed_timing_counts_as_zero(self) -> None:
        """Test unparseable timing components do not raise."""
        items = parse_srt("1\n00:00:aa,000 --> 00:00:02,000\nText\n")

        assert items == [TranscriptItem(text="Text", offset_ms=0, duration_ms=2000)]


@pytest.mark.unit
class TestDispatch:
    """Test suite for format detection and dispatch."""

    @pytest.mark.parametrize(
        ("content", "filename", "expected"),
        [
            (VTT, None, "vtt"),
            (TIMEDTEXT_XML, None, "ttml"),
            (SRT, None, "srt"),
            (SRT, "abc123.en.vtt", "vtt"),
            ("anything", "abc123.en.srv3", "srv3"),
        ],
    )
    def test_detect_format(self, content: str, filename: str | None, expected: str) -> None:
        """Test detection uses the file extension first, then the content."""
        assert detect_subtitle_format(content, filename) == expected

    def test_parse_subtitles_auto_detects(self) -> None:
        """Test parse_subtitles without a format matches the explicit parser."""
        assert parse_subtitles(VTT) == parse_vtt(VTT)
        assert parse_subtitles(TIMEDTEXT_XML) == parse_ttml(TIMEDTEXT_XML)
        assert parse_subtitles(SRT, "srt") == parse_srt(SRT)

    def test_parse_subtitles_blank_content(self) -> None:
        """Test blank content yields no items."""
        assert parse_subtitles("   \n") == []

    def test_parse_subtitles_unknown_format(self) -> None:
        """Test an unregistered format raises ValueError."""
        with pytest.raises(ValueError, match="Unsupported subtitle format"):
            parse_subtitles("content", "sbv")

    def test_register_subtitle_parser(self) -> None:
        """Test new formats can be registered without touching callers."""

        def parse_lines(content: str) -> list[TranscriptItem]:
            return [
                TranscriptItem(text=line, offset_ms=i * 1000)
                for i, line in enumerate(content.splitlines())
            ]

        register_subtitle_parser("lines", parse_lines)

        assert parse_subtitles("a\nb", "LINES") == [
            TranscriptItem(text="a", offset_ms=0),
            TranscriptItem(text="b", offset_ms=1000),
        ]
