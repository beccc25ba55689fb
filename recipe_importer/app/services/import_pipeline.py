# recipe_importer/app/services/import_pipeline.py
"""
Background processing of one import job, from a PENDING row to a terminal one.

run() never raises: every outcome, including unexpected crashes, ends with
an attempt to write COMPLETED or FAILED to the Job Ledger.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from recipe_importer.app.config import Settings
from recipe_importer.app.domain.errors import ImportJobError
from recipe_importer.app.domain.models import ExtractionResult, ImportRequest, SourceKind
from recipe_importer.app.infra.db.base import ImportJobRepository
from recipe_importer.app.services.materializer import RecipeMaterializer
from recipe_importer.services.errors import FetchFailedError, InvalidURLError, ServiceError
from recipe_importer.services.extraction import RecipeExtractor
from recipe_importer.services.fetcher import PlatformFetcher
from recipe_importer.services.ids import extract_content_id
from recipe_importer.services.transcript import TranscriptRetriever
from recipe_importer.services.types import ContentMetadata

logger = logging.getLogger(__name__)

UNSUPPORTED_SOURCE_MESSAGE = (
    "Unsupported content source: {reference}. "
    "Supported: YouTube, Instagram and TikTok videos, recipe web pages and photos."
)
COMPLETION_REJECTED_MESSAGE = "Import could not be saved. Please try again."


@dataclass
class PipelineOutcome:
    result: ExtractionResult
    metadata: Optional[ContentMetadata] = None
    diagnostics: dict[str, Any] = field(default_factory=dict)


class ImportPipeline:
    def __init__(
        self,
        jobs: ImportJobRepository,
        fetcher: PlatformFetcher,
        transcripts: TranscriptRetriever,
        extractor: RecipeExtractor,
        materializer: RecipeMaterializer,
        settings: Settings,
    ) -> None:
        self.jobs = jobs
        self.fetcher = fetcher
        self.transcripts = transcripts
        self.extractor = extractor
        self.materializer = materializer
        self.settings = settings

    def run(self, request: ImportRequest) -> None:
        try:
            self._run(request)
        except Exception as error:
            logger.exception("[%s] Unexpected error during import", request.job_id)
            message = str(error) or error.__class__.__name__
            self.jobs.mark_failed(request.job_id, message)

    def _run(self, request: ImportRequest) -> None:
        job_id = request.job_id
        kind = request.source_kind

        if kind is SourceKind.UNKNOWN:
            logger.warning("[%s] Unsupported content source: %s", job_id, request.content_reference)
            self.jobs.mark_failed(
                job_id, UNSUPPORTED_SOURCE_MESSAGE.format(reference=request.content_reference),
            )
            return

        if not self.jobs.mark_processing(job_id):
            logger.warning("[%s] Job is no longer pending, skipping", job_id)
            return

        started = time.monotonic()
        logger.info("[%s] Starting %s import: %s", job_id, kind.value, request.content_reference)

        try:
            if kind.is_video:
                outcome = self._gather_video(request)
            elif kind is SourceKind.WEB:
                outcome = self._gather_web(request)
            else:
                outcome = self._gather_image(request)
        except ServiceError as error:
            logger.error("[%s] Import failed before extraction: %s", job_id, error)
            self.jobs.mark_failed(job_id, str(error))
            return

        self._finish(request, outcome, started)

    def _gather_video(self, request: ImportRequest) -> PipelineOutcome:
        job_id = request.job_id
        content_id = extract_content_id(request.content_reference, request.source_kind)
        if not content_id:
            raise InvalidURLError(f"Could not extract video ID from URL: {request.content_reference}")

        try:
            metadata = self.fetcher.fetch(request.source_kind, content_id)
        except ServiceError as error:
            raise FetchFailedError(f"Failed to fetch metadata: {error}") from error
        logger.info("[%s] Metadata fetched: %s", job_id, metadata.title)

        diagnostics: dict[str, Any] = {"metadata_len": len(metadata.description or "")}
        context: Optional[str] = None

        if request.source_kind is SourceKind.VIDEO_YOUTUBE:
            transcript = self.transcripts.fetch_youtube_transcript(content_id)
            diagnostics["transcript_status"] = transcript.describe()
            logger.info("[%s] Transcript: %s", job_id, transcript.describe())
            context = transcript.text

        if not context and metadata.description:
            external = self.transcripts.fetch_external_content(metadata.description)
            diagnostics["external_link"] = external.links[0] if external.links else None
            diagnostics["external_content_len"] = len(external.text)
            if external.has_text:
                logger.info("[%s] Using content from %d linked page(s)", job_id, len(external.links))
                context = external.text

        result = self.extractor.extract_from_video(metadata, context)
        return PipelineOutcome(result=result, metadata=metadata, diagnostics=diagnostics)

    def _gather_web(self, request: ImportRequest) -> PipelineOutcome:
        page = self.fetcher.fetch_web_page(request.content_reference)
        logger.info("[%s] Page fetched: %s (%d chars)", request.job_id, page.metadata.title, len(page.html))
        result = self.extractor.extract_from_web(page.metadata, page.html)
        return PipelineOutcome(
            result=result,
            metadata=page.metadata,
            diagnostics={"html_len": len(page.html)},
        )

    def _gather_image(self, request: ImportRequest) -> PipelineOutcome:
        if not request.image_bytes:
            raise InvalidURLError("No image data supplied")
        mime_type = request.mime_type or "image/jpeg"
        result = self.extractor.extract_from_image(request.image_bytes, mime_type)
        return PipelineOutcome(result=result, diagnostics={"image_bytes": len(request.image_bytes)})

    def _finish(self, request: ImportRequest, outcome: PipelineOutcome, started: float) -> None:
        job_id = request.job_id
        result = outcome.result
        threshold = self.settings.confidence_threshold(request.source_kind)
        parsed_data = self._snapshot(outcome, started)

        logger.info(
            "[%s] Extraction complete. Success: %s, Confidence: %.2f (threshold %.2f)",
            job_id, result.success, result.confidence, threshold,
        )

        if not result.is_acceptable(threshold):
            message = result.error or f"Low confidence: {result.confidence}"
            self.jobs.mark_failed(job_id, message, result.confidence, parsed_data)
            return

        try:
            materialized = self.materializer.materialize(
                request.user_id, job_id, request.source_kind, result, outcome.metadata,
            )
        except ImportJobError as error:
            logger.error("[%s] Materialization failed: %s", job_id, error)
            self.jobs.mark_failed(job_id, str(error), result.confidence, parsed_data)
            return

        parsed_data["recipe_id"] = str(materialized.recipe_id)
        parsed_data["insertion"] = {
            "ingredients_extracted": materialized.ingredients_extracted,
            "steps_extracted": materialized.steps_extracted,
            "ingredients_inserted": materialized.ingredients_inserted,
            "steps_inserted": materialized.steps_inserted,
        }
        if self.jobs.mark_completed(job_id, materialized.recipe_id, result.confidence, parsed_data):
            return

        # A recipe may only exist behind a completed job.
        logger.error("[%s] Completion write rejected, deleting recipe %s", job_id, materialized.recipe_id)
        self.materializer.discard(materialized.recipe_id)
        parsed_data.pop("recipe_id")
        self.jobs.mark_failed(job_id, COMPLETION_REJECTED_MESSAGE, result.confidence, parsed_data)

    def _snapshot(self, outcome: PipelineOutcome, started: float) -> dict[str, Any]:
        return {
            "extraction_layer": outcome.result.extraction_layer.value,
            "confidence_score": outcome.result.confidence,
            "metadata": outcome.metadata.to_snapshot() if outcome.metadata else None,
            "processing_time_ms": int((time.monotonic() - started) * 1000),
            "completed_at": datetime.now(timezone.utc).isoformat(),
            "diagnostics": outcome.diagnostics,
        }
