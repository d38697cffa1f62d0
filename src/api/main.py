"""FastAPI application for the learning material pipeline.

Provides ingestion endpoints for pasted text, PDFs and YouTube videos, plus
reprocessing and per-item search.
"""

import os
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from src.ingestion.config import get_config
from src.ingestion.exceptions import (
    ContentNotFoundError,
    ExtractionError,
    TranscriptUnavailableError,
)
from src.ingestion.pipeline import IngestionPipeline
from src.ingestion.schemas import ProcessedContent, RetrievalResult
from src.utils.logging import get_logger

logger = get_logger(__name__)

# Check if we're in production
is_production = os.getenv("ENVIRONMENT") == "production"

if not is_production:
    # Development: prioritize .env file
    project_root = Path(__file__).resolve().parent.parent.parent
    dotenv_path = project_root / ".env"
    load_dotenv(dotenv_path, override=True)
else:
    # Production: use cloud platform env vars only
    load_dotenv()

# Global pipeline initialized in lifespan
pipeline: IngestionPipeline | None = None


# ==============================================================================
# Lifespan Management
# ==============================================================================


async def lifespan(app: FastAPI):  # type: ignore[misc]
    """Lifecycle manager for the FastAPI application.

    Handles initialization and cleanup of resources.
    """
    global pipeline

    logger.info("application_startup_started")

    try:
        pipeline = IngestionPipeline(get_config())

        logger.info(
            "application_startup_completed",
            embeddings_enabled=pipeline.embedding_service is not None,
            storage_enabled=pipeline.storage_service is not None,
        )

    except Exception:
        logger.exception("application_startup_failed")
        raise

    yield  # Application runs here

    # Shutdown: Clean up resources
    logger.info("application_shutdown_started")

    if pipeline:
        await pipeline.aclose()

    logger.info("application_shutdown_completed")


# ==============================================================================
# FastAPI Application Setup
# ==============================================================================

app = FastAPI(
    title="Learning Material API",
    description="Ingestion and retrieval over PDFs, YouTube videos and pasted text",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ==============================================================================
# Error Handlers
# ==============================================================================


@app.exception_handler(ExtractionError)
async def extraction_error_handler(request: Request, exc: ExtractionError) -> JSONResponse:
    """Return extraction failures as 422 with an actionable hint."""
    return JSONResponse(
        status_code=422,
        content={"error": exc.kind, "message": exc.message, "hint": exc.hint},
    )


@app.exception_handler(TranscriptUnavailableError)
async def transcript_error_handler(
    request: Request, exc: TranscriptUnavailableError
) -> JSONResponse:
    """Return an exhausted acquisition chain as 422 with the per-method causes."""
    return JSONResponse(
        status_code=422,
        content={
            "error": "transcript_unavailable",
            "message": exc.user_message,
            "hint": exc.hint,
            "attempts": [
                {"method": failure.method, "reason": failure.reason}
                for failure in exc.failures
            ],
        },
    )


@app.exception_handler(ContentNotFoundError)
async def not_found_handler(request: Request, exc: ContentNotFoundError) -> JSONResponse:
    """Return unknown content as 404."""
    return JSONResponse(
        status_code=404,
        content={"error": "not_found", "message": exc.message, "hint": exc.hint},
    )


# ==============================================================================
# Request/Response Models
# ==============================================================================


class TextIngestRequest(BaseModel):
    """Request model for pasted text ingestion."""

    content_id: str
    text: str


class YouTubeIngestRequest(BaseModel):
    """Request model for YouTube ingestion."""

    content_id: str
    url: str


class SearchRequest(BaseModel):
    """Request model for per-item search."""

    query: str
    top_k: int | None = Field(default=None, ge=0)


class ContentSummary(BaseModel):
    """Summary of a processed content item."""

    content_id: str
    source_type: str
    status: str
    chunks: int
    has_embeddings: bool
    metadata: dict[str, Any]

    @classmethod
    def from_content(cls, content: ProcessedContent) -> "ContentSummary":
        return cls(
            content_id=content.content_id,
            source_type=content.source_type.value,
            status="completed",
            chunks=len(content.chunks),
            has_embeddings=content.has_valid_embeddings,
            metadata=content.extracted_text.metadata,
        )


class SearchResponse(BaseModel):
    """Response model for per-item search."""

    content_id: str
    query: str
    results: list[RetrievalResult]


# ==============================================================================
# Helper Functions
# ==============================================================================


def get_pipeline() -> IngestionPipeline:
    """Return the initialized pipeline or fail with 503."""
    if pipeline is None:
        logger.error("pipeline_not_initialized")
        raise HTTPException(status_code=503, detail="Pipeline not initialized")
    return pipeline


# ==============================================================================
# API Endpoints
# ==============================================================================


@app.get("/health")
async def health_check():
    """Health check endpoint.

    Returns:
        Health status and timestamp.
    """
    return {
        "status": "healthy",
        "timestamp": datetime.now(UTC).isoformat(),
        "services": {
            "pipeline": pipeline is not None,
            "embeddings": pipeline is not None and pipeline.embedding_service is not None,
            "storage": pipeline is not None and pipeline.storage_service is not None,
        },
    }


@app.post("/api/ingest/text", response_model=ContentSummary)
async def ingest_text(request: TextIngestRequest) -> ContentSummary:
    """Ingest pasted text."""
    logger.info("ingest_text_request", content_id=request.content_id, length=len(request.text))
    content = await get_pipeline().ingest_text(request.content_id, request.text)
    return ContentSummary.from_content(content)


@app.post("/api/ingest/youtube", response_model=ContentSummary)
async def ingest_youtube(request: YouTubeIngestRequest) -> ContentSummary:
    """Ingest a YouTube video by URL or ID."""
    logger.info("ingest_youtube_request", content_id=request.content_id, url=request.url)
    content = await get_pipeline().ingest_youtube(request.content_id, request.url)
    return ContentSummary.from_content(content)


@app.post("/api/ingest/pdf", response_model=ContentSummary)
async def ingest_pdf(
    request: Request,
    content_id: str = Query(...),
    filename: str = Query(default=""),
) -> ContentSummary:
    """Ingest a PDF sent as the raw request body."""
    buffer = await request.body()
    logger.info("ingest_pdf_request", content_id=content_id, size_bytes=len(buffer))
    content = await get_pipeline().ingest_pdf(content_id, buffer, raw_location=filename)
    return ContentSummary.from_content(content)


@app.post("/api/content/{content_id}/reprocess", response_model=ContentSummary)
async def reprocess_content(content_id: str) -> ContentSummary:
    """Rebuild chunks and embeddings of a processed item."""
    logger.info("reprocess_request", content_id=content_id)
    content = await get_pipeline().reprocess(content_id)
    return ContentSummary.from_content(content)


@app.post("/api/content/{content_id}/search", response_model=SearchResponse)
async def search_content(content_id: str, request: SearchRequest) -> SearchResponse:
    """Search the chunks of a processed item."""
    logger.info("search_request", content_id=content_id, query_length=len(request.query))
    results = await get_pipeline().search(content_id, request.query, request.top_k)
    return SearchResponse(content_id=content_id, query=request.query, results=results)
