"""Unit tests for chunking service."""

import pytest

from src.ingestion.chunking_service import (
    ChunkingService,
    annotate_pages,
    chunk_text,
    chunk_transcript_with_timestamps,
    format_timestamp,
    reconstruct_text,
)
from src.ingestion.config import IngestionConfig
from src.ingestion.schemas import (
    ExtractedText,
    TranscriptItem,
    TranscriptMetadata,
    TranscriptResult,
)

SAMPLE_TEXT = (
    "Photosynthesis converts light energy into chemical energy. "
    "It happens in the chloroplasts of plant cells!\n"
    "Is it the only way plants make energy? Not quite. "
    "Cellular respiration breaks glucose down again to release ATP. "
) * 12


@pytest.mark.unit
class TestChunkText:
    """Test suite for chunk_text."""

    @pytest.mark.parametrize(
        ("chunk_size", "overlap"),
        [(1000, 200), (100, 20), (57, 0), (10, 9), (1, 0), (300, 299)],
    )
    def test_reconstruction_is_lossless(self, chunk_size: int, overlap: int) -> None:
        """Test chunks rebuild the original text exactly."""
        chunks = chunk_text(SAMPLE_TEXT, chunk_size=chunk_size, overlap=overlap)

        assert reconstruct_text(chunks) == SAMPLE_TEXT

    def test_short_text_single_chunk(self) -> None:
        """Test text shorter than chunk_size yields exactly one chunk."""
        chunks = chunk_text("Short note.", chunk_size=1000, overlap=200)

        assert len(chunks) == 1
        assert chunks[0].index == 0
        assert chunks[0].text == "Short note."
        assert (chunks[0].start_char, chunks[0].end_char) == (0, 11)

    def test_empty_text(self) -> None:
        """Test empty text yields no chunks."""
        assert chunk_text("") == []

    def test_indexes_contiguous_and_sizes_bounded(self) -> None:
        """Test indexes are zero-based and contiguous, chunks never exceed size."""
        chunks = chunk_text(SAMPLE_TEXT, chunk_size=200, overlap=40)

        assert [chunk.index for chunk in chunks] == list(range(len(chunks)))
        assert all(len(chunk.text) <= 200 for chunk in chunks)
        assert all(chunk.text == SAMPLE_TEXT[chunk.start_char:chunk.end_char] for chunk in chunks)

    def test_breaks_at_sentence_boundary(self) -> None:
        """Test a window is cut after the last terminator when it keeps half the size."""
        text = "A" * 60 + ". " + "B" * 60
        chunks = chunk_text(text, chunk_size=100, overlap=10)

        assert chunks[0].text == "A" * 60 + "."
        assert chunks[1].start_char == 61 - 10

    def test_hard_cut_when_boundary_too_early(self) -> None:
        """Test an early terminator is ignored in favor of the window edge."""
        text = "Hi. " + "x" * 200
        chunks = chunk_text(text, chunk_size=100, overlap=0)

        assert chunks[0].text == text[:100]
        assert chunks[1].start_char == 100

    def test_newline_is_a_boundary(self) -> None:
        """Test newlines count as break points."""
        text = "y" * 70 + "\n" + "z" * 70
        chunks = chunk_text(text, chunk_size=100, overlap=0)

        assert chunks[0].text == "y" * 70 + "\n"

    def test_window_always_advances(self) -> None:
        """Test each chunk starts strictly after the previous one."""
        chunks = chunk_text("a.b.c.d.e.f.g.h.i.j." * 5, chunk_size=4, overlap=3)

        starts = [chunk.start_char for chunk in chunks]
        assert all(later > earlier for earlier, later in zip(starts, starts[1:], strict=False))

    @pytest.mark.parametrize(("chunk_size", "overlap"), [(100, 100), (100, 150), (0, 0), (-5, 0), (10, -1)])
    def test_invalid_window(self, chunk_size: int, overlap: int) -> None:
        """Test invalid window parameters raise ValueError."""
        with pytest.raises(ValueError):
            chunk_text("some text", chunk_size=chunk_size, overlap=overlap)


@pytest.mark.unit
class TestTimestampChunking:
    """Test suite for transcript chunking and timestamp formatting."""

    @pytest.mark.parametrize(
        ("milliseconds", "expected"),
        [(0, "0:00"), (5_999, "0:05"), (125_000, "2:05"), (3_600_000, "1:00:00"), (3_661_000, "1:01:01")],
    )
    def test_format_timestamp(self, milliseconds: int, expected: str) -> None:
        """Test H:MM:SS formatting with hours omitted when zero."""
        assert format_timestamp(milliseconds) == expected

    def test_groups_items_up_to_chunk_size(self) -> None:
        """Test items are accumulated until the joined text would exceed the size."""
        items = [
            TranscriptItem(text="aaaa", offset_ms=0),
            TranscriptItem(text="bbbb", offset_ms=61_000),
            TranscriptItem(text="cccc", offset_ms=125_000),
        ]

        chunks = chunk_transcript_with_timestamps(items, chunk_size=9)

        assert [chunk.text for chunk in chunks] == ["aaaa bbbb", "cccc"]
        assert [chunk.timestamp for chunk in chunks] == ["0:00", "2:05"]
        assert [chunk.start_offset_ms for chunk in chunks] == [0, 125_000]
        assert [chunk.index for chunk in chunks] == [0, 1]

    def test_oversized_item_is_own_chunk(self) -> None:
        """Test an item longer than chunk_size is not split or dropped."""
        items = [
            TranscriptItem(text="short", offset_ms=0),
            TranscriptItem(text="x" * 50, offset_ms=1_000),
            TranscriptItem(text="tail", offset_ms=2_000),
        ]

        chunks = chunk_transcript_with_timestamps(items, chunk_size=10)

        assert [chunk.text for chunk in chunks] == ["short", "x" * 50, "tail"]

    def test_no_items(self) -> None:
        """Test an empty transcript yields no chunks."""
        assert chunk_transcript_with_timestamps([], chunk_size=100) == []

    def test_reconstruct_transcript_chunks(self) -> None:
        """Test transcript chunks rebuild the space-joined transcript."""
        items = [TranscriptItem(text=word, offset_ms=i) for i, word in enumerate("one two three four".split())]

        chunks = chunk_transcript_with_timestamps(items, chunk_size=8)

        assert reconstruct_text(chunks) == "one two three four"


@pytest.mark.unit
class TestAnnotatePages:
    """Test suite for annotate_pages."""

    def test_pages_from_offsets(self) -> None:
        """Test each chunk gets the 1-based page it starts on."""
        text = "p1 text.\n\np2 text here.\n\np3."
        chunks = chunk_text(text, chunk_size=10, overlap=0)

        annotated = annotate_pages(chunks, [0, 10, 25])

        for chunk in annotated:
            expected = 1 if chunk.start_char < 10 else 2 if chunk.start_char < 25 else 3
            assert chunk.page == expected

    def test_no_offsets_leaves_pages_unset(self) -> None:
        """Test text without page offsets is not annotated."""
        chunks = chunk_text("plain text", chunk_size=100, overlap=0)

        assert annotate_pages(chunks, [])[0].page is None


@pytest.mark.unit
class TestChunkingService:
    """Test suite for ChunkingService class."""

    @pytest.fixture
    def config(self) -> IngestionConfig:
        """Create test configuration."""
        return IngestionConfig(chunk_size=120, chunk_overlap=30, transcript_chunk_size=20)

    def test_chunk_document_uses_config(self, config: IngestionConfig) -> None:
        """Test configured sizes and page annotation are applied."""
        service = ChunkingService(config)
        extracted = ExtractedText(text=SAMPLE_TEXT, page_offsets=[0, 500])

        chunks = service.chunk_document(extracted)

        assert all(len(chunk.text) <= 120 for chunk in chunks)
        assert chunks[0].page == 1
        assert chunks[-1].page == 2
        assert reconstruct_text(chunks) == SAMPLE_TEXT

    def test_chunk_transcript_uses_config(self, config: IngestionConfig) -> None:
        """Test transcript chunk size comes from configuration."""
        service = ChunkingService(config)
        items = [TranscriptItem(text=f"sentence {i}", offset_ms=i * 1000) for i in range(6)]
        transcript = TranscriptResult(
            transcript=" ".join(item.text for item in items),
            items=items,
            metadata=TranscriptMetadata(video_id="abc", total_duration_ms=6000, source="stub"),
        )

        chunks = service.chunk_transcript(transcript)

        # "sentence 0 sentence 1" is 21 characters, one over the limit
        assert [chunk.text for chunk in chunks] == [item.text for item in items]
        assert [chunk.timestamp for chunk in chunks] == [
            "0:00", "0:01", "0:02", "0:03", "0:04", "0:05"
        ]
