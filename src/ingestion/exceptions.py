"""Exception hierarchy for ingestion and retrieval.

Every error carries a short message and, where the user can do something
about it, a remediation hint.
"""


class PipelineError(Exception):
    """Base exception for all pipeline errors."""

    def __init__(self, message: str, hint: str | None = None):
        self.message = message
        self.hint = hint
        super().__init__(message)


# ==============================================================================
# Source extraction
# ==============================================================================


class ExtractionError(PipelineError):
    """Raised when a source cannot be normalized into plain text."""

    kind = "extraction_failed"
    default_message = "Text extraction failed."
    default_hint = "Try uploading the file again or paste the text manually."

    def __init__(self, message: str | None = None, hint: str | None = None):
        super().__init__(
            message=message or self.default_message,
            hint=hint or self.default_hint,
        )


class EmptyDocumentError(ExtractionError):
    """Raised for zero-length buffers or blank text."""

    kind = "empty"
    default_message = "The document is empty."
    default_hint = "Upload a non-empty file or paste some text."


class ImageOnlyPDFError(ExtractionError):
    """Raised when a PDF parses but contains no extractable text."""

    kind = "image_only"
    default_message = "PDF appears to be a scanned image and contains no extractable text."
    default_hint = "Run the document through OCR or paste the text manually."


class EncryptedPDFError(ExtractionError):
    """Raised for password-protected PDFs."""

    kind = "encrypted"
    default_message = "PDF is password-protected or encrypted."
    default_hint = "Remove the password and upload an unlocked copy."


class InvalidPDFError(ExtractionError):
    """Raised when the buffer is not a readable PDF."""

    kind = "invalid_format"
    default_message = "Invalid PDF file format."
    default_hint = "Make sure the file is a valid, uncorrupted PDF."


class InvalidVideoUrlError(ExtractionError):
    """Raised when no YouTube video ID can be found in the input."""

    kind = "invalid_url"
    default_message = "Could not find a YouTube video ID in the link."
    default_hint = "Paste a full YouTube link, e.g. https://www.youtube.com/watch?v=VIDEO_ID."


# ==============================================================================
# Transcript acquisition
# ==============================================================================


class AcquisitionError(PipelineError):
    """A single acquisition method failed. Non-fatal inside the chain."""

    def __init__(
        self,
        method: str,
        reason: str,
        language: str | None = None,
        status_code: int | None = None,
    ):
        self.method = method
        self.reason = reason
        self.language = language
        self.status_code = status_code
        super().__init__(f"{method}: {reason}")


class TranscriptUnavailableError(PipelineError):
    """Every acquisition method failed for a video."""

    user_message = (
        "No captions available for this video. "
        "Try a different video or paste the text manually."
    )

    def __init__(self, video_id: str, failures: list[AcquisitionError]):
        self.video_id = video_id
        self.failures = failures
        attempts = "; ".join(str(failure) for failure in failures) or "no methods configured"
        super().__init__(
            message=f"Unable to fetch transcript for video {video_id}. Attempts: {attempts}",
            hint=self.user_message,
        )


# ==============================================================================
# Embedding
# ==============================================================================


class EmbeddingError(PipelineError):
    """Embedding generation failed. Chunks stay usable via lexical retrieval."""


# ==============================================================================
# Lookup
# ==============================================================================


class ContentNotFoundError(PipelineError):
    """No processed record exists for a content item."""

    def __init__(self, content_id: str):
        self.content_id = content_id
        super().__init__(
            message=f"Content {content_id} has not been processed.",
            hint="Ingest the source before searching or reprocessing it.",
        )
