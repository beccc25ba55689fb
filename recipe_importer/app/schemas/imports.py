from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from recipe_importer.app.domain.models import ImportJob


class ImportUrlRequest(BaseModel):
    content_reference: str = Field(..., min_length=1, description="Video or web page URL")
    source_hint: Optional[Literal["video", "web"]] = Field(
        None, description="Restrict handling to video platforms or to generic web pages"
    )


class ImportPhotoRequest(BaseModel):
    image_base64: str = Field(..., min_length=1, description="Base64 encoded image bytes")
    mime_type: str = Field(default="image/jpeg", description="Image MIME type, e.g. image/png")


class ImportSubmittedResponse(BaseModel):
    id: str
    status: str
    source_type: str


class ImportStatusResponse(BaseModel):
    id: str
    status: str = Field(..., description="pending, processing, completed or failed")
    recipe_id: Optional[str] = None
    error_message: Optional[str] = None
    confidence_score: Optional[float] = None


class ImportJobResponse(ImportStatusResponse):
    source_type: str
    content_reference: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ImportJobListResponse(BaseModel):
    jobs: list[ImportJobResponse]
    limit: int
    offset: int


def to_submitted(job: ImportJob) -> ImportSubmittedResponse:
    return ImportSubmittedResponse(id=str(job.id), status=job.status.value, source_type=job.source_kind.value)


def to_status(job: ImportJob) -> ImportStatusResponse:
    return ImportStatusResponse(
        id=str(job.id),
        status=job.status.value,
        recipe_id=str(job.recipe_id) if job.recipe_id else None,
        error_message=job.error_message,
        confidence_score=job.confidence_score,
    )


def to_job(job: ImportJob) -> ImportJobResponse:
    return ImportJobResponse(
        **to_status(job).model_dump(),
        source_type=job.source_kind.value,
        content_reference=job.content_reference,
        created_at=job.created_at,
        updated_at=job.updated_at,
    )
