from __future__ import annotations

import logging
from typing import Awaitable, Callable, Optional
from uuid import UUID

from starlette.concurrency import run_in_threadpool

from recipe_importer.app.domain.errors import JobNotFoundError
from recipe_importer.app.domain.models import ImportJob, ImportRequest, SourceKind
from recipe_importer.app.infra.db.base import ImportJobRepository
from recipe_importer.services.ids import classify

logger = logging.getLogger(__name__)

IMAGE_CONTENT_MARKER = "image-upload"

Dispatcher = Callable[[ImportRequest], Awaitable[None]]


def resolve_source_kind(url: str, source_hint: Optional[str] = None) -> SourceKind:
    """
    Classify a submitted URL. A "web" hint forces generic page handling and a
    "video" hint rejects anything that is not a supported video platform.
    """
    kind = classify(url)
    if kind is None:
        return SourceKind.UNKNOWN
    if source_hint == "web":
        return SourceKind.WEB
    if source_hint == "video" and not kind.is_video:
        return SourceKind.UNKNOWN
    return kind


class ImportService:
    def __init__(self, jobs: ImportJobRepository, dispatch: Dispatcher) -> None:
        self.jobs = jobs
        self.dispatch = dispatch

    async def submit_url(self, user_id: UUID, url: str, source_hint: Optional[str] = None) -> ImportJob:
        url = url.strip()
        kind = resolve_source_kind(url, source_hint)
        job = await run_in_threadpool(self.jobs.create_job, user_id, kind, url)
        await self.dispatch(
            ImportRequest(job_id=job.id, user_id=user_id, source_kind=kind, content_reference=url)
        )
        return job

    async def submit_image(self, user_id: UUID, image_bytes: bytes, mime_type: str) -> ImportJob:
        job = await run_in_threadpool(self.jobs.create_job, user_id, SourceKind.IMAGE, IMAGE_CONTENT_MARKER)
        await self.dispatch(
            ImportRequest(
                job_id=job.id,
                user_id=user_id,
                source_kind=SourceKind.IMAGE,
                content_reference=IMAGE_CONTENT_MARKER,
                image_bytes=image_bytes,
                mime_type=mime_type,
            )
        )
        return job

    async def get_status(self, job_id: UUID, user_id: UUID) -> ImportJob:
        job = await run_in_threadpool(self.jobs.get_job_by_id, job_id, user_id)
        if job is None:
            raise JobNotFoundError(str(job_id))
        return job

    async def list_jobs(self, user_id: UUID, limit: int = 20, offset: int = 0) -> list[ImportJob]:
        return await run_in_threadpool(self.jobs.get_jobs_by_user, user_id, limit, offset)

    async def get_active_job(self, user_id: UUID) -> Optional[ImportJob]:
        return await run_in_threadpool(self.jobs.get_active_job, user_id)
