"""Regex-based subtitle parsers for TTML, WebVTT and SRT.

All parsers share one contract: take the raw file content, return an ordered
list of TranscriptItem. They never raise on malformed cues; unparseable
numeric fields count as zero and cues without text are skipped. An empty
result is the caller's signal that the file was unusable.
"""

import html
import re
from collections.abc import Callable
from pathlib import PurePath

from .schemas import TranscriptItem

SubtitleParser = Callable[[str], list[TranscriptItem]]

_TAG_RE = re.compile(r"<[^>]+>")
_BREAK_RE = re.compile(r"<br\s*/?>", re.IGNORECASE)
_WHITESPACE_RE = re.compile(r"\s+")
_ATTR_RE = re.compile(r"([\w:.-]+)\s*=\s*\"([^\"]*)\"")

_TTML_TEXT_RE = re.compile(r"<text\b([^>]*)>(.*?)</text>", re.IGNORECASE | re.DOTALL)
_TTML_P_RE = re.compile(r"<p\b([^>]*)>(.*?)</p>", re.IGNORECASE | re.DOTALL)

_CUE_TIMING_RE = re.compile(r"^\s*(\S+)\s*-->\s*(\S+)")

TTML_FRAME_RATE = 30


# ==============================================================================
# Shared helpers
# ==============================================================================


def _to_int(value: str | None) -> int:
    try:
        return int(value) if value else 0
    except ValueError:
        return 0


def _to_float(value: str | None) -> float:
    try:
        return float(value) if value else 0.0
    except ValueError:
        return 0.0


def clean_caption_text(raw: str) -> str:
    """Strip markup and decode HTML entities from caption text.

    Caption sources frequently double-encode entities (``&amp;#39;``), so
    decoding is repeated once.

    Examples:
        >>> clean_caption_text("<c.colorE5E5E5>it&amp;#39;s</c> <i>fine</i>")
        "it's fine"
    """
    text = _BREAK_RE.sub(" ", raw)
    text = _TAG_RE.sub("", text)
    text = html.unescape(html.unescape(text))
    # Decoding may surface tags that were encoded, e.g. "&lt;b&gt;"
    text = _TAG_RE.sub("", text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def parse_clock_time(value: str) -> int:
    """Parse a subtitle clock value into milliseconds.

    Accepts ``HH:MM:SS.mmm``, ``MM:SS,mmm``, ``SS.mmm``, TTML frame clocks
    (``HH:MM:SS:FF`` at 30 fps) and TTML offset forms (``12.5s``, ``1500ms``,
    ``2m``, ``1h``). Any unparseable component counts as zero.

    Examples:
        >>> parse_clock_time("01:01:01.500")
        3661500
        >>> parse_clock_time("00:xx:05,000")
        5000
        >>> parse_clock_time("00:00:01:15")
        1500
    """
    value = value.strip()
    if not value:
        return 0

    offset_match = re.fullmatch(r"([\d.]+)(ms|s|m|h)", value)
    if offset_match:
        number = _to_float(offset_match.group(1))
        factor = {"ms": 1, "s": 1000, "m": 60_000, "h": 3_600_000}[offset_match.group(2)]
        return int(round(number * factor))

    clock, _, fraction = value.replace(",", ".").partition(".")
    parts = clock.split(":")
    hours, minutes, seconds = 0, 0, 0
    if len(parts) >= 4:
        # TTML HH:MM:SS:FF, frames counted at the default TTML frame rate
        hours, minutes, seconds, frames = (_to_int(p) for p in parts[:4])
        frame_ms = int(round(frames * 1000 / TTML_FRAME_RATE))
        return ((hours * 60 + minutes) * 60 + seconds) * 1000 + frame_ms
    if len(parts) == 3:
        hours, minutes, seconds = (_to_int(p) for p in parts)
    elif len(parts) == 2:
        minutes, seconds = (_to_int(p) for p in parts)
    else:
        seconds = _to_int(parts[0])

    millis = _to_int(fraction[:3].ljust(3, "0")) if fraction else 0
    return ((hours * 60 + minutes) * 60 + seconds) * 1000 + millis


# ==============================================================================
# Format parsers
# ==============================================================================


def parse_ttml(content: str) -> list[TranscriptItem]:
    """Parse XML caption formats.

    Handles YouTube timedtext (``<text start="1.2" dur="3.4">``), srv3
    (``<p t="1200" d="3400">`` in milliseconds) and standard TTML
    (``<p begin="00:00:01.200" end="00:00:04.600">`` or ``dur``).
    """
    items: list[TranscriptItem] = []

    for attrs_raw, body in _TTML_TEXT_RE.findall(content):
        attrs = dict(_ATTR_RE.findall(attrs_raw))
        text = clean_caption_text(body)
        if text:
            items.append(
                TranscriptItem(
                    text=text,
                    offset_ms=int(round(_to_float(attrs.get("start")) * 1000)),
                    duration_ms=int(round(_to_float(attrs.get("dur")) * 1000)),
                )
            )

    if items:
        return items

    for attrs_raw, body in _TTML_P_RE.findall(content):
        attrs = dict(_ATTR_RE.findall(attrs_raw))
        text = clean_caption_text(body)
        if not text:
            continue

        if "t" in attrs:
            offset_ms = _to_int(attrs.get("t"))
            duration_ms = _to_int(attrs.get("d"))
        else:
            offset_ms = parse_clock_time(attrs.get("begin", ""))
            if "end" in attrs:
                duration_ms = parse_clock_time(attrs["end"]) - offset_ms
            else:
                duration_ms = parse_clock_time(attrs.get("dur", ""))

        items.append(
            TranscriptItem(text=text, offset_ms=offset_ms, duration_ms=max(0, duration_ms))
        )

    return items


def _parse_cue_blocks(content: str, skip_prefixes: tuple[str, ...]) -> list[TranscriptItem]:
    items: list[TranscriptItem] = []
    blocks = re.split(r"\n\s*\n", content.replace("\r\n", "\n").replace("\r", "\n"))

    for block in blocks:
        lines = [line for line in block.split("\n") if line.strip()]
        if not lines or lines[0].strip().startswith(skip_prefixes):
            continue

        timing_index = next((i for i, line in enumerate(lines) if "-->" in line), None)
        if timing_index is None:
            continue

        timing = _CUE_TIMING_RE.match(lines[timing_index])
        if not timing:
            continue

        start_ms = parse_clock_time(timing.group(1))
        end_ms = parse_clock_time(timing.group(2))
        text = clean_caption_text(" ".join(lines[timing_index + 1 :]))
        if not text:
            continue

        items.append(
            TranscriptItem(text=text, offset_ms=start_ms, duration_ms=max(0, end_ms - start_ms))
        )

    return items


def parse_vtt(content: str) -> list[TranscriptItem]:
    """Parse a WebVTT file, skipping NOTE, STYLE and REGION blocks.

    The WEBVTT header block has no timing line and is dropped on its own.
    """
    return _parse_cue_blocks(content, skip_prefixes=("NOTE", "STYLE", "REGION"))


def parse_srt(content: str) -> list[TranscriptItem]:
    """Parse a SubRip file. Cue numbers are optional."""
    return _parse_cue_blocks(content, skip_prefixes=())


# ==============================================================================
# Dispatch
# ==============================================================================

_PARSERS: dict[str, SubtitleParser] = {
    "ttml": parse_ttml,
    "xml": parse_ttml,
    "srv3": parse_ttml,
    "vtt": parse_vtt,
    "srt": parse_srt,
}


def register_subtitle_parser(fmt: str, parser: SubtitleParser) -> None:
    """Register a parser for an additional subtitle format."""
    _PARSERS[fmt.lower()] = parser


def detect_subtitle_format(content: str, filename: str | None = None) -> str:
    """Guess the subtitle format from a file name, then from the content."""
    if filename:
        extension = PurePath(filename).suffix.lstrip(".").lower()
        if extension in _PARSERS:
            return extension

    head = content.lstrip()[:500]
    if head.startswith("WEBVTT"):
        return "vtt"
    if head.startswith("<") or "<tt" in head or "<transcript" in head or "<timedtext" in head:
        return "ttml"
    return "srt"


def parse_subtitles(content: str, fmt: str | None = None) -> list[TranscriptItem]:
    """Parse subtitle content into transcript items.

    Args:
        content: Raw subtitle file content.
        fmt: Format name ("ttml", "xml", "srv3", "vtt", "srt"). Detected from
            the content when None.

    Returns:
        Transcript items in file order. Empty if no usable cue was found.

    Raises:
        ValueError: If fmt names an unregistered format.
    """
    if not content or not content.strip():
        return []

    fmt = (fmt or detect_subtitle_format(content)).lower()
    parser = _PARSERS.get(fmt)
    if parser is None:
        raise ValueError(f"Unsupported subtitle format: {fmt}")

    return parser(content)
