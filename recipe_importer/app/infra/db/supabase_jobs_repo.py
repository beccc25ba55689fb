from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID, uuid4

import httpx
from supabase import Client, PostgrestAPIError

from recipe_importer.app.domain.errors import JobRepositoryError
from recipe_importer.app.domain.models import ImportJob, JobStatus, SourceKind
from recipe_importer.app.infra.db.base import ImportJobRepository

logger = logging.getLogger(__name__)

STALE_JOB_MESSAGE = "Import timed out while processing. Please try again."
ORPHANED_JOB_MESSAGE = "Import was never started. Please try again."
ACTIVE_STATUSES = [JobStatus.PENDING.value, JobStatus.PROCESSING.value]

STORAGE_ERRORS = (PostgrestAPIError, httpx.HTTPError, ConnectionError, TimeoutError)


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _parse_datetime(value: str | datetime | None) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        return None

    try:
        normalized = value.replace("Z", "+00:00") if value.endswith("Z") else value
        return datetime.fromisoformat(normalized)
    except ValueError:
        return None


def _safe_float(value: object) -> float | None:
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def _parse_source_kind(value: object) -> SourceKind:
    try:
        return SourceKind(str(value))
    except ValueError:
        return SourceKind.UNKNOWN


def _row_to_job(row: dict[str, Any]) -> ImportJob:
    parsed_data = row.get("parsed_data")
    return ImportJob(
        id=UUID(str(row["id"])),
        user_id=UUID(str(row["user_id"])),
        source_kind=_parse_source_kind(row.get("source_type")),
        content_reference=str(row.get("content_payload") or ""),
        status=JobStatus(str(row["status"])),
        recipe_id=UUID(str(row["recipe_id"])) if row.get("recipe_id") else None,
        error_message=str(row["error_message"]) if row.get("error_message") else None,
        confidence_score=_safe_float(row.get("confidence_score")),
        metadata=parsed_data if isinstance(parsed_data, dict) else None,
        created_at=_parse_datetime(row.get("created_at")),
        updated_at=_parse_datetime(row.get("updated_at")),
    )


class SupabaseImportJobRepository(ImportJobRepository):
    TABLE_NAME = "recipe_imports"

    def __init__(self, client: Client):
        self._client = client

    def _table(self):
        return self._client.table(self.TABLE_NAME)

    def create_job(
        self,
        user_id: UUID,
        source_kind: SourceKind,
        content_reference: str,
    ) -> ImportJob:
        now = _now_utc().isoformat()
        job_data = {
            "id": str(uuid4()),
            "user_id": str(user_id),
            "source_type": source_kind.value,
            "content_payload": content_reference,
            "status": JobStatus.PENDING.value,
            "created_at": now,
            "updated_at": now,
        }

        try:
            result = self._table().insert(job_data).execute()
        except STORAGE_ERRORS as error:
            logger.error("Storage error creating import job: %s", error)
            raise JobRepositoryError("create_job", str(error)) from error

        if not result.data:
            raise JobRepositoryError("create_job", "insert returned no rows")

        job = _row_to_job(result.data[0])
        logger.info("Created import job: id=%s, user=%s, source=%s", job.id, user_id, source_kind.value)
        return job

    def get_job_by_id(self, job_id: UUID, user_id: UUID | None = None) -> ImportJob | None:
        query = self._table().select("*").eq("id", str(job_id))
        if user_id:
            query = query.eq("user_id", str(user_id))

        try:
            result = query.limit(1).execute()
        except STORAGE_ERRORS as error:
            logger.error("Storage error getting import job: %s", error)
            raise JobRepositoryError("get_job_by_id", str(error)) from error

        return _row_to_job(result.data[0]) if result.data else None

    def get_jobs_by_user(self, user_id: UUID, limit: int = 20, offset: int = 0) -> list[ImportJob]:
        try:
            result = (
                self._table()
                .select("*")
                .eq("user_id", str(user_id))
                .order("created_at", desc=True)
                .range(offset, offset + limit - 1)
                .execute()
            )
        except STORAGE_ERRORS as error:
            logger.error("Storage error listing import jobs: %s", error)
            raise JobRepositoryError("get_jobs_by_user", str(error)) from error

        return [_row_to_job(row) for row in (result.data or [])]

    def get_active_job(self, user_id: UUID) -> ImportJob | None:
        try:
            result = (
                self._table()
                .select("*")
                .eq("user_id", str(user_id))
                .in_("status", ACTIVE_STATUSES)
                .order("created_at", desc=True)
                .limit(1)
                .execute()
            )
        except STORAGE_ERRORS as error:
            logger.error("Storage error getting active import job: %s", error)
            raise JobRepositoryError("get_active_job", str(error)) from error

        return _row_to_job(result.data[0]) if result.data else None

    def _conditional_update(
        self,
        job_id: UUID,
        update_data: dict[str, Any],
        expected: list[JobStatus],
    ) -> bool:
        update_data["updated_at"] = _now_utc().isoformat()
        try:
            result = (
                self._table()
                .update(update_data)
                .eq("id", str(job_id))
                .in_("status", [status.value for status in expected])
                .execute()
            )
        except STORAGE_ERRORS as error:
            logger.error("Storage error updating import job %s: %s", job_id, error)
            return False

        if not result.data:
            logger.warning(
                "Import job %s not updated to %s: not in status %s",
                job_id, update_data.get("status"), [status.value for status in expected],
            )
            return False
        return True

    def mark_processing(self, job_id: UUID) -> bool:
        updated = self._conditional_update(
            job_id,
            {"status": JobStatus.PROCESSING.value},
            [JobStatus.PENDING],
        )
        if updated:
            logger.info("Import job marked as PROCESSING: id=%s", job_id)
        return updated

    def mark_completed(
        self,
        job_id: UUID,
        recipe_id: UUID,
        confidence_score: float,
        parsed_data: dict[str, Any],
    ) -> bool:
        updated = self._conditional_update(
            job_id,
            {
                "status": JobStatus.COMPLETED.value,
                "recipe_id": str(recipe_id),
                "confidence_score": confidence_score,
                "parsed_data": parsed_data,
                "error_message": None,
            },
            [JobStatus.PROCESSING],
        )
        if updated:
            logger.info("Import job completed: id=%s, recipe=%s", job_id, recipe_id)
        return updated

    def mark_failed(
        self,
        job_id: UUID,
        error_message: str,
        confidence_score: float | None = None,
        parsed_data: dict[str, Any] | None = None,
    ) -> bool:
        update_data: dict[str, Any] = {
            "status": JobStatus.FAILED.value,
            "error_message": error_message,
        }
        if confidence_score is not None:
            update_data["confidence_score"] = confidence_score
        if parsed_data is not None:
            update_data["parsed_data"] = parsed_data

        updated = self._conditional_update(
            job_id,
            update_data,
            [JobStatus.PENDING, JobStatus.PROCESSING],
        )
        if updated:
            logger.error("Import job failed: id=%s, error=%s", job_id, error_message)
        return updated

    def release_stale_jobs(self, stale_after_minutes: int = 15) -> int:
        cutoff = (_now_utc() - timedelta(minutes=stale_after_minutes)).isoformat()
        # PENDING requests live only in the in-memory queue; past the cutoff they are orphaned.
        released = self._fail_older_than(JobStatus.PROCESSING, "updated_at", cutoff, STALE_JOB_MESSAGE)
        released += self._fail_older_than(JobStatus.PENDING, "created_at", cutoff, ORPHANED_JOB_MESSAGE)
        if released:
            logger.info("Released %d stale import jobs", released)
        return released

    def _fail_older_than(self, status: JobStatus, column: str, cutoff: str, message: str) -> int:
        try:
            result = (
                self._table()
                .update({
                    "status": JobStatus.FAILED.value,
                    "error_message": message,
                    "updated_at": _now_utc().isoformat(),
                })
                .eq("status", status.value)
                .lt(column, cutoff)
                .execute()
            )
        except STORAGE_ERRORS as error:
            logger.error("Storage error releasing stale %s import jobs: %s", status.value, error)
            return 0

        rows = result.data or []
        for row in rows:
            logger.warning("Released stale %s import job: id=%s", status.value, row.get("id"))
        return len(rows)
