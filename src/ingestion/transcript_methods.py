"""Independent transcript acquisition methods.

Each method exposes a ``name``, a ``timeout_seconds`` budget and an async
``fetch(video_id, video_url)`` returning transcript items. A method signals
failure by raising AcquisitionError (or any other exception); the chain in
youtube_service decides what happens next. Methods never call each other.
"""

import asyncio
import json
import re
import tempfile
from pathlib import Path
from typing import Any, Protocol

import httpx
from supadata import Supadata
from youtube_transcript_api import YouTubeTranscriptApi

from src.utils.logging import get_logger

from .config import IngestionConfig
from .exceptions import AcquisitionError
from .schemas import TranscriptItem
from .subtitle_parsers import clean_caption_text, detect_subtitle_format, parse_subtitles

logger = get_logger(__name__)

WATCH_URL = "https://www.youtube.com/watch"
TIMEDTEXT_URL = "https://video.google.com/timedtext"


class TranscriptMethod(Protocol):
    """Interface shared by every acquisition method."""

    name: str
    timeout_seconds: float

    async def fetch(self, video_id: str, video_url: str | None = None) -> list[TranscriptItem]:
        ...


def build_watch_url(video_id: str, offset_ms: int | None = None) -> str:
    """Build a YouTube watch URL, optionally starting at an offset.

    Examples:
        >>> build_watch_url("dQw4w9WgXcQ")
        "https://www.youtube.com/watch?v=dQw4w9WgXcQ"
        >>> build_watch_url("dQw4w9WgXcQ", 125500)
        "https://www.youtube.com/watch?v=dQw4w9WgXcQ&t=125s"
    """
    url = f"{WATCH_URL}?v={video_id}"
    if offset_ms is not None and offset_ms > 0:
        url += f"&t={offset_ms // 1000}s"
    return url


def language_matches(language: str, preferred: list[str]) -> bool:
    """Compare primary language subtags ("en-GB" matches "en")."""
    primary = language.lower().split("-")[0].split("_")[0]
    if not primary:
        return False
    return any(primary == p.lower().split("-")[0] for p in preferred)


def _coerce_ms(value: Any) -> int:
    try:
        return int(round(float(value)))
    except (TypeError, ValueError):
        return 0


# ==============================================================================
# Method 1: Supadata managed captioning API
# ==============================================================================


class SupadataMethod:
    """Managed captioning API. Fastest and least likely to trip bot defenses."""

    name = "supadata"

    def __init__(self, config: IngestionConfig, client: Supadata | None = None):
        self.config = config
        self.timeout_seconds = config.supadata_timeout_seconds
        self.client = client
        if self.client is None and self._api_key_usable():
            self.client = Supadata(api_key=config.supadata_api_key)

    def _api_key_usable(self) -> bool:
        key = self.config.supadata_api_key.strip()
        return len(key) >= 10 and "your-" not in key and "example" not in key

    async def fetch(self, video_id: str, video_url: str | None = None) -> list[TranscriptItem]:
        if self.client is None:
            raise AcquisitionError(self.name, "API key not configured")

        preferred = self.config.preferred_languages
        requested_lang = preferred[0] if preferred else None

        try:
            response = await asyncio.to_thread(
                self.client.youtube.transcript,
                video_id=video_id,
                lang=requested_lang,
                text=False,
            )
        except Exception as e:
            status_code = getattr(e, "status_code", None) or getattr(e, "status", None)
            raise AcquisitionError(
                self.name,
                f"{type(e).__name__}: {e}",
                language=requested_lang,
                status_code=status_code if isinstance(status_code, int) else None,
            ) from e

        received_lang = getattr(response, "lang", "") or ""
        available_langs = list(getattr(response, "available_langs", None) or [])

        logger.info(
            "supadata_transcript_received",
            video_id=video_id,
            lang=received_lang,
            available_langs=available_langs,
        )

        if received_lang and not language_matches(received_lang, preferred):
            preferred_available = any(language_matches(lang, preferred) for lang in available_langs)
            if preferred_available and self.config.strict_language_preference:
                raise AcquisitionError(
                    self.name,
                    f"received '{received_lang}' although a preferred language is available",
                    language=received_lang,
                )
            logger.warning(
                "supadata_non_preferred_language",
                video_id=video_id,
                lang=received_lang,
            )

        content = getattr(response, "content", None) or []
        if isinstance(content, str):
            raise AcquisitionError(self.name, "received plain text without timestamps")

        return [
            TranscriptItem(
                text=clean_caption_text(str(getattr(segment, "text", "") or "")),
                offset_ms=_coerce_ms(getattr(segment, "offset", 0)),
                duration_ms=_coerce_ms(getattr(segment, "duration", 0)),
            )
            for segment in content
        ]


# ==============================================================================
# Method 2: yt-dlp subtitle extraction
# ==============================================================================


class YtDlpMethod:
    """Download subtitle tracks only (no media) with yt-dlp.

    Runs yt-dlp as a subprocess in a temporary directory. If the attempt is
    cancelled the process is killed and the directory removed before the
    cancellation propagates.
    """

    name = "yt-dlp"

    def __init__(self, config: IngestionConfig):
        self.config = config
        self.timeout_seconds = config.ytdlp_timeout_seconds

    def _build_command(self, url: str, output_template: str) -> list[str]:
        return [
            *self.config.ytdlp_command,
            url,
            "--skip-download",
            "--write-subs",
            "--write-auto-subs",
            "--sub-langs",
            ",".join(self.config.preferred_languages),
            "--sub-format",
            "/".join(self.config.subtitle_formats),
            "--output",
            output_template,
            "--no-playlist",
            "--no-warnings",
            "--quiet",
        ]

    async def _run(self, command: list[str]) -> tuple[int, str]:
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise AcquisitionError(self.name, "yt-dlp executable not found") from e

        try:
            _, stderr = await process.communicate()
        except asyncio.CancelledError:
            process.kill()
            await process.wait()
            raise

        return process.returncode or 0, stderr.decode("utf-8", errors="replace")

    def _candidate_files(self, directory: Path, video_id: str) -> list[Path]:
        # Locale order first, then format order
        ordered: list[Path] = []
        for lang in self.config.preferred_languages:
            for fmt in self.config.subtitle_formats:
                path = directory / f"{video_id}.{lang}.{fmt}"
                if path.exists():
                    ordered.append(path)

        formats = tuple(f".{fmt}" for fmt in self.config.subtitle_formats)
        leftovers = sorted(
            path for path in directory.iterdir() if path.suffix in formats and path not in ordered
        )
        return ordered + leftovers

    async def fetch(self, video_id: str, video_url: str | None = None) -> list[TranscriptItem]:
        url = video_url or build_watch_url(video_id)

        with tempfile.TemporaryDirectory(prefix="learning-ytdlp-") as temp_dir:
            directory = Path(temp_dir)
            returncode, stderr = await self._run(
                self._build_command(url, str(directory / "%(id)s.%(ext)s"))
            )

            candidates = self._candidate_files(directory, video_id)
            if not candidates:
                reason = "no subtitle files written"
                if returncode != 0:
                    reason = f"exit code {returncode}: {stderr.strip()[-300:]}"
                raise AcquisitionError(self.name, reason)

            for path in candidates:
                content = path.read_text(encoding="utf-8", errors="replace")
                items = parse_subtitles(content, detect_subtitle_format(content, path.name))
                logger.info(
                    "ytdlp_subtitle_parsed",
                    video_id=video_id,
                    file=path.name,
                    items=len(items),
                )
                if items:
                    return items

        raise AcquisitionError(
            self.name,
            f"parsed {len(candidates)} subtitle file(s) but found no cues",
        )


# ==============================================================================
# Method 3: youtube-transcript-api library
# ==============================================================================


class TranscriptApiMethod:
    """Managed transcript library call, retried per language code."""

    name = "youtube-transcript-api"

    def __init__(self, config: IngestionConfig, api: YouTubeTranscriptApi | None = None):
        self.config = config
        self.timeout_seconds = config.transcript_api_timeout_seconds
        self.api = api or YouTubeTranscriptApi()

    async def fetch(self, video_id: str, video_url: str | None = None) -> list[TranscriptItem]:
        reasons: list[str] = []

        for lang in self.config.preferred_languages:
            try:
                fetched = await asyncio.to_thread(self.api.fetch, video_id, languages=[lang])
            except Exception as e:
                reasons.append(f"{lang}: {type(e).__name__}")
                logger.info(
                    "transcript_api_language_failed",
                    video_id=video_id,
                    lang=lang,
                    error_type=type(e).__name__,
                )
                continue

            items = [
                TranscriptItem(
                    text=clean_caption_text(snippet.text),
                    offset_ms=int(round(snippet.start * 1000)),
                    duration_ms=int(round(snippet.duration * 1000)),
                )
                for snippet in fetched
            ]
            items = [item for item in items if item.text]
            if items:
                return items

            reasons.append(f"{lang}: empty transcript")

        raise AcquisitionError(
            self.name,
            "; ".join(reasons) or "no languages configured",
            language=",".join(self.config.preferred_languages),
        )


# ==============================================================================
# Method 4: Direct timed-text endpoint
# ==============================================================================


class TimedTextMethod:
    """Unauthenticated fetch from the legacy timed-text endpoint."""

    name = "timedtext"

    def __init__(self, config: IngestionConfig, http_client: httpx.AsyncClient):
        self.config = config
        self.timeout_seconds = config.timedtext_timeout_seconds
        self.http_client = http_client

    async def fetch(self, video_id: str, video_url: str | None = None) -> list[TranscriptItem]:
        reasons: list[str] = []
        last_status: int | None = None

        for lang in self.config.preferred_languages:
            try:
                response = await self.http_client.get(
                    TIMEDTEXT_URL,
                    params={"lang": lang, "v": video_id},
                    headers={"User-Agent": self.config.user_agent},
                )
            except httpx.HTTPError as e:
                reasons.append(f"{lang}: {type(e).__name__}")
                continue

            last_status = response.status_code
            if response.status_code != 200:
                reasons.append(f"{lang}: HTTP {response.status_code}")
                continue

            items = parse_subtitles(response.text)
            if items:
                return items

            reasons.append(f"{lang}: no cues")

        raise AcquisitionError(
            self.name,
            "; ".join(reasons) or "no languages configured",
            language=",".join(self.config.preferred_languages),
            status_code=last_status,
        )


# ==============================================================================
# Method 5: Watch page scrape
# ==============================================================================


def _decode_json_after(html_text: str, pattern: str) -> Any:
    """Decode the first JSON value that directly follows a pattern match."""
    decoder = json.JSONDecoder()
    for match in re.finditer(pattern, html_text):
        try:
            value, _ = decoder.raw_decode(html_text, match.end())
        except json.JSONDecodeError:
            continue
        return value
    return None


def _tracks_from_player_response(html_text: str) -> list[dict[str, Any]]:
    player = _decode_json_after(html_text, r"ytInitialPlayerResponse\s*=\s*")
    if not isinstance(player, dict):
        return []
    renderer = (player.get("captions") or {}).get("playerCaptionsTracklistRenderer") or {}
    return renderer.get("captionTracks") or []


def _tracks_from_caption_tracks(html_text: str) -> list[dict[str, Any]]:
    tracks = _decode_json_after(html_text, r'"captionTracks"\s*:\s*')
    return tracks if isinstance(tracks, list) else []


def _tracks_from_tracklist_renderer(html_text: str) -> list[dict[str, Any]]:
    renderer = _decode_json_after(html_text, r'"playerCaptionsTracklistRenderer"\s*:\s*')
    if not isinstance(renderer, dict):
        return []
    return renderer.get("captionTracks") or []


CAPTION_TRACK_EXTRACTORS = (
    _tracks_from_player_response,
    _tracks_from_caption_tracks,
    _tracks_from_tracklist_renderer,
)


class PageScrapeMethod:
    """Find caption track URLs embedded in the watch page and fetch one."""

    name = "page-scrape"

    def __init__(self, config: IngestionConfig, http_client: httpx.AsyncClient):
        self.config = config
        self.timeout_seconds = config.page_scrape_timeout_seconds
        self.http_client = http_client

    def find_caption_tracks(self, html_text: str) -> list[dict[str, Any]]:
        """Return caption tracks, preferred languages first."""
        tracks: list[dict[str, Any]] = []
        for extractor in CAPTION_TRACK_EXTRACTORS:
            tracks = [t for t in extractor(html_text) if isinstance(t, dict) and t.get("baseUrl")]
            if tracks:
                break

        return sorted(
            tracks,
            key=lambda t: not language_matches(
                str(t.get("languageCode", "")), self.config.preferred_languages
            ),
        )

    async def fetch(self, video_id: str, video_url: str | None = None) -> list[TranscriptItem]:
        response = await self.http_client.get(
            WATCH_URL,
            params={"v": video_id, "hl": "en"},
            headers={
                "User-Agent": self.config.user_agent,
                "Accept-Language": "en-US,en;q=0.9",
            },
        )
        if response.status_code != 200:
            raise AcquisitionError(
                self.name, "watch page request failed", status_code=response.status_code
            )

        tracks = self.find_caption_tracks(response.text)
        if not tracks:
            raise AcquisitionError(self.name, "no caption tracks found in watch page")

        last_status: int | None = None
        for track in tracks:
            track_response = await self.http_client.get(
                str(track["baseUrl"]), headers={"User-Agent": self.config.user_agent}
            )
            last_status = track_response.status_code
            if track_response.status_code != 200:
                continue

            items = parse_subtitles(track_response.text)
            if items:
                logger.info(
                    "page_scrape_track_parsed",
                    video_id=video_id,
                    lang=track.get("languageCode"),
                    items=len(items),
                )
                return items

        raise AcquisitionError(
            self.name,
            f"none of {len(tracks)} caption track(s) produced cues",
            status_code=last_status,
        )


def build_default_methods(
    config: IngestionConfig, http_client: httpx.AsyncClient
) -> list[TranscriptMethod]:
    """Build the acquisition methods in priority order."""
    return [
        SupadataMethod(config),
        YtDlpMethod(config),
        TranscriptApiMethod(config),
        TimedTextMethod(config, http_client),
        PageScrapeMethod(config, http_client),
    ]
