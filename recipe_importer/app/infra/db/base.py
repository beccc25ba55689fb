# recipe_importer/app/infra/db/base.py
"""
Abstract repositories for the Job Ledger and for recipe persistence.
The pipeline depends only on these interfaces, so tests can pass in-memory stubs.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional
from uuid import UUID

from recipe_importer.app.domain.models import ImportJob, SourceKind


class ImportJobRepository(ABC):
    """
    Storage for import jobs.

    Every status update is conditional on the row's current status, so a
    write that arrives after the job reached a terminal status is a no-op.
    """

    @abstractmethod
    def create_job(
        self,
        user_id: UUID,
        source_kind: SourceKind,
        content_reference: str,
    ) -> ImportJob:
        """
        Create a new import job in PENDING status.

        Args:
            user_id: Owner of the job
            source_kind: Classified origin of the content
            content_reference: Submitted URL, or an opaque marker for uploads

        Returns:
            The created ImportJob
        """
        pass

    @abstractmethod
    def get_job_by_id(
        self,
        job_id: UUID,
        user_id: Optional[UUID] = None,
    ) -> Optional[ImportJob]:
        """
        Get a job by its ID, optionally filtering by user.

        Returns:
            The job, or None if not found
        """
        pass

    @abstractmethod
    def get_jobs_by_user(
        self,
        user_id: UUID,
        limit: int = 20,
        offset: int = 0,
    ) -> list[ImportJob]:
        """Jobs for a user, newest first."""
        pass

    @abstractmethod
    def get_active_job(self, user_id: UUID) -> Optional[ImportJob]:
        """Most recent PENDING or PROCESSING job for a user, if any."""
        pass

    @abstractmethod
    def mark_processing(self, job_id: UUID) -> bool:
        """
        Move a PENDING job to PROCESSING.

        Returns:
            True if the row was updated
        """
        pass

    @abstractmethod
    def mark_completed(
        self,
        job_id: UUID,
        recipe_id: UUID,
        confidence_score: float,
        parsed_data: dict[str, Any],
    ) -> bool:
        """
        Move a PROCESSING job to COMPLETED, writing every terminal column in one update.

        Returns:
            True if the row was updated
        """
        pass

    @abstractmethod
    def mark_failed(
        self,
        job_id: UUID,
        error_message: str,
        confidence_score: Optional[float] = None,
        parsed_data: Optional[dict[str, Any]] = None,
    ) -> bool:
        """
        Move a PENDING or PROCESSING job to FAILED in one update.

        Returns:
            True if the row was updated
        """
        pass

    @abstractmethod
    def release_stale_jobs(self, stale_after_minutes: int = 15) -> int:
        """
        Fail PROCESSING jobs not updated within `stale_after_minutes`
        (worker crashed or process restarted mid-import) and PENDING jobs
        created before that window (queued request lost on restart).

        Returns:
            Number of jobs released
        """
        pass


class RecipeRepository(ABC):
    @abstractmethod
    def get_household_id(self, user_id: UUID) -> Optional[str]:
        """Household the user belongs to, or None."""
        pass

    @abstractmethod
    def create_recipe_with_children(
        self,
        recipe_row: dict[str, Any],
        ingredient_rows: list[dict[str, Any]],
        step_rows: list[dict[str, Any]],
    ) -> tuple[UUID, int, int]:
        """
        Insert a recipe and its ingredient and step rows.

        If any child insert fails the recipe row is deleted (children cascade)
        and MaterializationError is raised.

        Returns:
            (recipe_id, ingredients_inserted, steps_inserted)
        """
        pass

    @abstractmethod
    def delete_recipe(self, recipe_id: UUID) -> None:
        """Delete a recipe row; ingredient and step rows cascade."""
        pass
