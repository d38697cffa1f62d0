"""YouTube service for acquiring time-coded transcripts.

Transcripts are obtained through an ordered chain of independent methods
(see transcript_methods). Methods run one at a time; the first one that
returns at least one non-empty item wins. Failures and timeouts are logged
and the chain moves on. Only exhausting every method is an error.
"""

import asyncio
import re
from collections.abc import Sequence

import httpx

from src.utils.logging import get_logger

from .config import IngestionConfig
from .exceptions import AcquisitionError, TranscriptUnavailableError
from .schemas import TranscriptItem, TranscriptMetadata, TranscriptResult
from .transcript_methods import TranscriptMethod, build_default_methods

logger = get_logger(__name__)

_VIDEO_ID_URL = re.compile(
    r"(?:youtube\.com/watch\?(?:.*&)?v=|youtu\.be/|youtube(?:-nocookie)?\.com/(?:embed|shorts|live|v)/)([\w-]{6,})"
)
_BARE_VIDEO_ID = re.compile(r"^[\w-]{11}$")


def extract_video_id(url_or_id: str) -> str | None:
    """Extract a YouTube video ID from a URL or accept a bare ID.

    Examples:
        >>> extract_video_id("https://youtu.be/dQw4w9WgXcQ?t=10")
        "dQw4w9WgXcQ"
        >>> extract_video_id("dQw4w9WgXcQ")
        "dQw4w9WgXcQ"
    """
    candidate = url_or_id.strip()
    match = _VIDEO_ID_URL.search(candidate)
    if match:
        return match.group(1)

    if _BARE_VIDEO_ID.match(candidate):
        return candidate

    return None


def normalize_transcript_items(items: Sequence[TranscriptItem]) -> list[TranscriptItem]:
    """Drop blank items and order the rest by offset (stable)."""
    kept = [item for item in items if item.text and item.text.strip()]
    return sorted(kept, key=lambda item: item.offset_ms)


class YouTubeService:
    """Service for acquiring YouTube transcripts.

    The acquisition methods and the HTTP client are injectable so each method
    can be tested on its own and the chain can be tested with stubs.
    """

    def __init__(
        self,
        config: IngestionConfig,
        methods: Sequence[TranscriptMethod] | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        """Initialize YouTube service with configuration.

        Args:
            config: Configuration object with API keys, languages and timeouts.
            methods: Acquisition methods in priority order. Defaults to the
                Supadata, yt-dlp, transcript library, timed-text and page
                scrape methods.
            http_client: Shared client for the HTTP-based methods.
        """
        self.config = config
        self.http_client = http_client or httpx.AsyncClient(
            timeout=config.http_timeout_seconds,
            follow_redirects=True,
        )
        self.methods: list[TranscriptMethod] = list(
            methods if methods is not None else build_default_methods(config, self.http_client)
        )
        logger.info(
            "youtube_service_initialized",
            methods=[method.name for method in self.methods],
            api_key_present=bool(config.supadata_api_key),
        )

    async def aclose(self) -> None:
        """Release the shared HTTP client."""
        await self.http_client.aclose()

    async def _attempt(
        self, method: TranscriptMethod, video_id: str, video_url: str | None
    ) -> list[TranscriptItem]:
        try:
            items = await asyncio.wait_for(
                method.fetch(video_id, video_url),
                timeout=method.timeout_seconds,
            )
        except TimeoutError as e:
            raise AcquisitionError(
                method.name, f"timed out after {method.timeout_seconds:g}s"
            ) from e
        except AcquisitionError:
            raise
        except Exception as e:
            raise AcquisitionError(method.name, f"{type(e).__name__}: {e}") from e

        items = normalize_transcript_items(items or [])
        if not items:
            raise AcquisitionError(method.name, "returned no transcript items")
        return items

    async def acquire_transcript(
        self, video_id: str, video_url: str | None = None
    ) -> TranscriptResult:
        """Fetch a time-coded transcript for a video.

        Args:
            video_id: YouTube video ID.
            video_url: Original URL, if the caller has one.

        Returns:
            TranscriptResult with joined text, ordered items and metadata
            naming the method that succeeded.

        Raises:
            TranscriptUnavailableError: If every method failed. Lists each
                method and its failure reason.
        """
        logger.info("transcript_acquisition_started", video_id=video_id)
        failures: list[AcquisitionError] = []

        for position, method in enumerate(self.methods, start=1):
            logger.info(
                "transcript_method_started",
                video_id=video_id,
                method=method.name,
                position=position,
            )

            try:
                items = await self._attempt(method, video_id, video_url)
            except AcquisitionError as e:
                failures.append(e)
                logger.warning(
                    "transcript_method_failed",
                    video_id=video_id,
                    method=e.method,
                    reason=e.reason,
                    language=e.language,
                    status_code=e.status_code,
                )
                continue

            last = items[-1]
            result = TranscriptResult(
                transcript=" ".join(item.text for item in items),
                items=items,
                metadata=TranscriptMetadata(
                    video_id=video_id,
                    total_duration_ms=last.offset_ms + last.duration_ms,
                    source=method.name,
                ),
            )
            logger.info(
                "transcript_fetched",
                video_id=video_id,
                method=method.name,
                items=len(items),
                characters=len(result.transcript),
                total_duration_ms=result.metadata.total_duration_ms,
            )
            return result

        logger.error(
            "transcript_acquisition_exhausted",
            video_id=video_id,
            attempts=[str(failure) for failure in failures],
        )
        raise TranscriptUnavailableError(video_id, failures)
