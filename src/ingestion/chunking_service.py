"""Chunking service for boundary-aware text and transcript segmentation."""

from collections.abc import Sequence

from src.utils.logging import get_logger

from .config import IngestionConfig
from .schemas import Chunk, ExtractedText, TranscriptItem, TranscriptResult

logger = get_logger(__name__)

SENTENCE_TERMINATORS = (".", "!", "?", "\n")

# A sentence break is only used if the chunk keeps this share of chunk_size
MIN_BREAK_RATIO = 0.5


def format_timestamp(milliseconds: int) -> str:
    """Format an offset as H:MM:SS, omitting hours when zero.

    Examples:
        >>> format_timestamp(0)
        "0:00"
        >>> format_timestamp(125000)
        "2:05"
        >>> format_timestamp(3661000)
        "1:01:01"
    """
    total_seconds = max(0, int(milliseconds)) // 1000
    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)

    if hours > 0:
        return f"{hours}:{minutes:02d}:{seconds:02d}"
    return f"{minutes}:{seconds:02d}"


def _last_break(window: str) -> int:
    return max(window.rfind(terminator) for terminator in SENTENCE_TERMINATORS)


def chunk_text(text: str, chunk_size: int = 1000, overlap: int = 200) -> list[Chunk]:
    """Split text into overlapping, sentence-aware chunks.

    A window of chunk_size characters is cut at the last sentence terminator
    or newline inside it, provided the chunk keeps at least half of
    chunk_size; otherwise it is hard-cut at the window edge. The next window
    starts overlap characters before the previous end, and always strictly
    after the previous start. Chunk text is a verbatim slice of the input.

    Args:
        text: Normalized text.
        chunk_size: Target chunk length in characters.
        overlap: Look-back between consecutive chunks in characters.

    Returns:
        Chunks with zero-based contiguous indexes and character spans.

    Raises:
        ValueError: If chunk_size <= 0 or overlap is not in [0, chunk_size).
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    if not 0 <= overlap < chunk_size:
        raise ValueError("overlap must be >= 0 and smaller than chunk_size")

    chunks: list[Chunk] = []
    length = len(text)
    start = 0

    while start < length:
        end = min(start + chunk_size, length)

        if end < length:
            break_point = _last_break(text[start:end])
            if break_point + 1 >= chunk_size * MIN_BREAK_RATIO:
                end = start + break_point + 1

        chunks.append(
            Chunk(
                text=text[start:end],
                index=len(chunks),
                start_char=start,
                end_char=end,
            )
        )

        if end >= length:
            break
        start = max(end - overlap, start + 1)

    return chunks


def reconstruct_text(chunks: Sequence[Chunk]) -> str:
    """Rebuild the source text from chunks, discarding overlap regions.

    Chunks without character spans (transcript chunks) are joined with a
    single space.
    """
    if not chunks:
        return ""

    ordered = sorted(chunks, key=lambda chunk: chunk.index)
    if any(chunk.start_char is None or chunk.end_char is None for chunk in ordered):
        return " ".join(chunk.text for chunk in ordered)

    parts = [ordered[0].text]
    covered = ordered[0].end_char or 0
    for chunk in ordered[1:]:
        skip = covered - (chunk.start_char or 0)
        parts.append(chunk.text[max(0, skip):])
        covered = max(covered, chunk.end_char or 0)

    return "".join(parts)


def chunk_transcript_with_timestamps(
    items: Sequence[TranscriptItem], chunk_size: int = 1000
) -> list[Chunk]:
    """Group transcript items into chunks tagged with a start timestamp.

    Items are accumulated until the space-joined text would exceed
    chunk_size; the chunk is then flushed with the offset of its first item.
    A single item longer than chunk_size becomes its own chunk.

    Args:
        items: Ordered transcript items.
        chunk_size: Target chunk length in characters.

    Returns:
        Chunks with text, index, timestamp and start_offset_ms set.
    """
    chunks: list[Chunk] = []
    buffer: list[TranscriptItem] = []
    buffer_length = 0

    def flush() -> None:
        first = buffer[0]
        chunks.append(
            Chunk(
                text=" ".join(item.text for item in buffer),
                index=len(chunks),
                timestamp=format_timestamp(first.offset_ms),
                start_offset_ms=first.offset_ms,
            )
        )

    for item in items:
        added_length = len(item.text) + (1 if buffer else 0)
        if buffer and buffer_length + added_length > chunk_size:
            flush()
            buffer = []
            buffer_length = 0
            added_length = len(item.text)

        buffer.append(item)
        buffer_length += added_length

    if buffer:
        flush()

    return chunks


def annotate_pages(chunks: Sequence[Chunk], page_offsets: Sequence[int]) -> list[Chunk]:
    """Set the 1-based page a chunk starts on from page start offsets."""
    if not page_offsets:
        return list(chunks)

    annotated: list[Chunk] = []
    for chunk in chunks:
        start = chunk.start_char or 0
        page = sum(1 for offset in page_offsets if offset <= start) or 1
        annotated.append(chunk.model_copy(update={"page": page}))
    return annotated


class ChunkingService:
    """Service for chunking extracted text and transcripts.

    Applies the configured window sizes. The chunking functions themselves are
    pure and can be used directly.
    """

    def __init__(self, config: IngestionConfig):
        """Initialize chunking service with configuration.

        Args:
            config: Configuration object with chunk size and overlap.
        """
        self.config = config
        logger.info(
            "chunking_service_initialized",
            chunk_size=config.chunk_size,
            chunk_overlap=config.chunk_overlap,
            transcript_chunk_size=config.transcript_chunk_size,
        )

    def chunk_document(self, extracted: ExtractedText) -> list[Chunk]:
        """Chunk normalized document text, annotating PDF pages when known."""
        chunks = chunk_text(
            extracted.text,
            chunk_size=self.config.chunk_size,
            overlap=self.config.chunk_overlap,
        )
        chunks = annotate_pages(chunks, extracted.page_offsets)

        logger.info(
            "document_chunked",
            text_length=len(extracted.text),
            chunks_created=len(chunks),
        )
        return chunks

    def chunk_transcript(self, transcript: TranscriptResult) -> list[Chunk]:
        """Chunk a transcript into timestamp-citable chunks."""
        chunks = chunk_transcript_with_timestamps(
            transcript.items,
            chunk_size=self.config.transcript_chunk_size,
        )

        logger.info(
            "transcript_chunked",
            video_id=transcript.metadata.video_id,
            items=len(transcript.items),
            chunks_created=len(chunks),
        )
        return chunks
