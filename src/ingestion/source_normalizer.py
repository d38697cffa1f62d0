"""Normalize PDF binaries and pasted text into plain text."""

from typing import Any

import fitz  # PyMuPDF

from src.utils.logging import get_logger

from .exceptions import (
    EmptyDocumentError,
    EncryptedPDFError,
    ImageOnlyPDFError,
    InvalidPDFError,
)
from .schemas import ExtractedText

logger = get_logger(__name__)

PAGE_SEPARATOR = "\n\n"


def extract_pdf(buffer: bytes) -> ExtractedText:
    """Extract plain text from a PDF binary.

    Pages are joined with a blank line and the character offset at which each
    page starts is recorded so chunks can later be annotated with a page.

    Args:
        buffer: Raw PDF bytes.

    Returns:
        ExtractedText with metadata {"pages": int, "info": dict}.

    Raises:
        EmptyDocumentError: If the buffer is empty (the parser is not invoked).
        InvalidPDFError: If the buffer is not a readable PDF.
        EncryptedPDFError: If the PDF requires a password.
        ImageOnlyPDFError: If the PDF contains no extractable text.
    """
    if not buffer:
        raise EmptyDocumentError("PDF buffer is empty.")

    logger.info("pdf_extraction_started", size_bytes=len(buffer))

    try:
        doc = fitz.open(stream=buffer, filetype="pdf")
    except Exception as e:
        logger.warning(
            "pdf_open_failed",
            error_type=type(e).__name__,
            error=str(e),
        )
        raise InvalidPDFError() from e

    with doc:
        if doc.needs_pass and not doc.authenticate(""):
            logger.warning("pdf_encrypted", pages=doc.page_count)
            raise EncryptedPDFError()

        try:
            page_texts = [page.get_text("text") for page in doc]
        except Exception as e:
            logger.warning(
                "pdf_text_extraction_failed",
                error_type=type(e).__name__,
                error=str(e),
            )
            raise InvalidPDFError(f"PDF text extraction failed: {e}") from e

        page_count = doc.page_count
        info: dict[str, Any] = {
            key: value for key, value in (doc.metadata or {}).items() if value
        }

    joined, page_offsets = _join_pages(page_texts)

    # Keep offsets aligned with the stripped text
    leading = len(joined) - len(joined.lstrip())
    text = joined.strip()
    page_offsets = [max(0, offset - leading) for offset in page_offsets]

    if not text:
        logger.warning("pdf_image_only", pages=page_count)
        raise ImageOnlyPDFError()

    logger.info(
        "pdf_extraction_completed",
        pages=page_count,
        text_length=len(text),
    )

    return ExtractedText(
        text=text,
        metadata={"pages": page_count, "info": info},
        page_offsets=page_offsets,
    )


def _join_pages(page_texts: list[str]) -> tuple[str, list[int]]:
    offsets: list[int] = []
    parts: list[str] = []
    position = 0

    for i, page_text in enumerate(page_texts):
        if i > 0:
            parts.append(PAGE_SEPARATOR)
            position += len(PAGE_SEPARATOR)
        offsets.append(position)
        parts.append(page_text)
        position += len(page_text)

    return "".join(parts), offsets


def normalize_text(text: str) -> ExtractedText:
    """Pass pasted text through unchanged.

    Raises:
        EmptyDocumentError: If the text is empty or whitespace-only.
    """
    if not text or not text.strip():
        raise EmptyDocumentError("Text content is empty.", hint="Paste some text to continue.")

    return ExtractedText(text=text, metadata={"length": len(text)})
