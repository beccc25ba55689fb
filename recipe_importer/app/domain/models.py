# recipe_importer/app/domain/models.py
"""
Domain models for the recipe import pipeline.
These are pure data structures with no infrastructure dependencies.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from recipe_importer.app.domain.errors import InvalidJobTransitionError


class SourceKind(str, Enum):
    """Origin classification of submitted content."""
    VIDEO_YOUTUBE = "video-youtube"
    VIDEO_INSTAGRAM = "video-instagram"
    VIDEO_TIKTOK = "video-tiktok"
    WEB = "web"
    IMAGE = "image"
    UNKNOWN = "unknown"

    @property
    def is_video(self) -> bool:
        return self in (SourceKind.VIDEO_YOUTUBE, SourceKind.VIDEO_INSTAGRAM, SourceKind.VIDEO_TIKTOK)

    @property
    def platform(self) -> str:
        """Platform marker stored on the persisted recipe."""
        return _PLATFORM_MARKERS[self]


_PLATFORM_MARKERS = {
    SourceKind.VIDEO_YOUTUBE: "youtube",
    SourceKind.VIDEO_INSTAGRAM: "instagram",
    SourceKind.VIDEO_TIKTOK: "tiktok",
    SourceKind.WEB: "web",
    SourceKind.IMAGE: "image_scan",
    SourceKind.UNKNOWN: "unknown",
}


class JobStatus(str, Enum):
    """Status enum for import jobs."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})

ALLOWED_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.PROCESSING, JobStatus.FAILED}),
    JobStatus.PROCESSING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
}


def validate_transition(
    current: JobStatus,
    target: JobStatus,
    recipe_id: Optional[UUID | str] = None,
    error_message: Optional[str] = None,
) -> None:
    """
    Raise InvalidJobTransitionError unless moving from `current` to `target`
    is legal and the terminal row would be self-consistent.
    """
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidJobTransitionError(current.value, target.value)
    if target is JobStatus.COMPLETED and not recipe_id:
        raise InvalidJobTransitionError(current.value, target.value, "completed job requires a recipe reference")
    if target is JobStatus.FAILED and not error_message:
        raise InvalidJobTransitionError(current.value, target.value, "failed job requires an error message")


class ExtractionLayer(str, Enum):
    """Which context layer produced an extraction."""
    METADATA = "metadata"
    TRANSCRIPT = "transcript"
    WEB_SCRAPING = "web_scraping"
    IMAGE_VISION = "image_vision"


@dataclass
class Ingredient:
    name: str
    quantity: Optional[str] = None
    unit: Optional[str] = None


@dataclass
class RecipeStep:
    step_number: int
    instruction: str
    section_title: Optional[str] = None


@dataclass
class RecipePayload:
    """Recipe as returned by the model, before persistence."""
    title: str
    description: Optional[str] = None
    servings: Optional[int] = None
    prep_time_minutes: Optional[int] = None
    cook_time_minutes: Optional[int] = None
    is_vegetarian: Optional[bool] = None
    ingredients: list[Ingredient] = field(default_factory=list)
    steps: list[RecipeStep] = field(default_factory=list)


@dataclass
class ExtractionResult:
    success: bool
    confidence: float
    extraction_layer: ExtractionLayer
    recipe: Optional[RecipePayload] = None
    error: Optional[str] = None

    @property
    def has_steps(self) -> bool:
        return bool(self.recipe and self.recipe.steps)

    def is_acceptable(self, threshold: float) -> bool:
        """Check if this result may be materialized."""
        return self.success and self.has_steps and self.confidence >= threshold

    @classmethod
    def failure(cls, error: str, layer: ExtractionLayer, confidence: float = 0.0) -> "ExtractionResult":
        return cls(success=False, confidence=confidence, extraction_layer=layer, error=error)


@dataclass
class ImportJob:
    """
    One row of the Job Ledger: a single extraction attempt.
    Polled by the client until it reaches a terminal status.
    """
    id: UUID
    user_id: UUID
    source_kind: SourceKind
    content_reference: str
    status: JobStatus

    recipe_id: Optional[UUID] = None
    error_message: Optional[str] = None
    confidence_score: Optional[float] = None
    metadata: Optional[dict[str, Any]] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def can_transition_to(self, target: JobStatus) -> bool:
        return target in ALLOWED_TRANSITIONS[self.status]


@dataclass
class ImportRequest:
    """Unit of work handed from submission to the background pipeline."""
    job_id: UUID
    user_id: UUID
    source_kind: SourceKind
    content_reference: str
    image_bytes: Optional[bytes] = field(default=None, repr=False)
    mime_type: Optional[str] = None


@dataclass
class MaterializedRecipe:
    """Outcome of persisting an extraction result."""
    recipe_id: UUID
    ingredients_extracted: int
    steps_extracted: int
    ingredients_inserted: int
    steps_inserted: int

    @property
    def is_partial(self) -> bool:
        return (
            self.ingredients_inserted != self.ingredients_extracted
            or self.steps_inserted != self.steps_extracted
        )
