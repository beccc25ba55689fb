# recipe_importer/app/services/materializer.py
"""
Writes an accepted ExtractionResult as relational rows under the user's household.
"""
from __future__ import annotations

import logging
import re
from typing import Any, Optional
from uuid import UUID

from recipe_importer.app.domain.errors import HouseholdNotFoundError, InvalidExtractionError
from recipe_importer.app.domain.models import (
    ExtractionResult,
    Ingredient,
    MaterializedRecipe,
    RecipePayload,
    SourceKind,
)
from recipe_importer.app.infra.db.base import RecipeRepository
from recipe_importer.services.types import ContentMetadata

logger = logging.getLogger(__name__)

DEFAULT_SERVINGS = 4
IMAGE_DESCRIPTION = "Imported from image"
IMAGE_SOURCE_URL = "import://{job_id}"

NUMBER_PATTERN = re.compile(r"\d+(?:\.\d+)?")
MIXED_FRACTION_PATTERN = re.compile(r"^(\d+)\s+(\d+)\s*/\s*(\d+)\b")


def _leading_number(value: str) -> Optional[float]:
    match = NUMBER_PATTERN.match(value.strip())
    return float(match.group(0)) if match else None


def parse_quantity(value: Any) -> Optional[float]:
    """
    Normalize a free-text quantity to a number.

    "2-3 cups" is the midpoint and "1/2 cup" or "1 1/2" are fractions. Unit text
    after a number is ignored. Anything else falls back to the first number in
    the text. Returns None when nothing parses.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)

    text = str(value).strip()
    if not text:
        return None

    mixed = MIXED_FRACTION_PATTERN.match(text)
    if mixed:
        whole, numerator, denominator = (int(group) for group in mixed.groups())
        if denominator:
            return whole + numerator / denominator

    if "-" in text:
        parts = [_leading_number(part) for part in text.split("-")]
        if len(parts) == 2 and None not in parts:
            return (parts[0] + parts[1]) / 2

    if "/" in text:
        parts = [_leading_number(part) for part in text.split("/")]
        if len(parts) == 2 and None not in parts and parts[1] != 0:
            return parts[0] / parts[1]

    match = NUMBER_PATTERN.search(text)
    return float(match.group(0)) if match else None


def raw_ingredient_text(ingredient: Ingredient) -> str:
    return f"{ingredient.quantity or ''} {ingredient.unit or ''} {ingredient.name}".strip()


class RecipeMaterializer:
    def __init__(self, recipes: RecipeRepository) -> None:
        self.recipes = recipes

    def materialize(
        self,
        user_id: UUID,
        job_id: UUID,
        kind: SourceKind,
        result: ExtractionResult,
        metadata: Optional[ContentMetadata] = None,
    ) -> MaterializedRecipe:
        if not result.success or not result.recipe:
            raise InvalidExtractionError("Cannot materialize an unsuccessful extraction")
        if not result.recipe.steps:
            raise InvalidExtractionError("Cannot materialize a recipe without steps")

        household_id = self.recipes.get_household_id(user_id)
        if not household_id:
            raise HouseholdNotFoundError(str(user_id))

        recipe = result.recipe
        recipe_row = self._recipe_row(household_id, job_id, kind, recipe, metadata)
        ingredient_rows = [
            {
                "name": ingredient.name,
                "quantity": parse_quantity(ingredient.quantity),
                "unit": ingredient.unit,
                "order_index": index,
                "raw_text": raw_ingredient_text(ingredient),
            }
            for index, ingredient in enumerate(recipe.ingredients)
        ]
        step_rows = [
            {
                "step_number": step.step_number,
                "instruction_text": step.instruction,
                "section_label": step.section_title,
            }
            for step in recipe.steps
        ]

        recipe_id, ingredients_inserted, steps_inserted = self.recipes.create_recipe_with_children(
            recipe_row, ingredient_rows, step_rows,
        )

        materialized = MaterializedRecipe(
            recipe_id=recipe_id,
            ingredients_extracted=len(ingredient_rows),
            steps_extracted=len(step_rows),
            ingredients_inserted=ingredients_inserted,
            steps_inserted=steps_inserted,
        )
        if materialized.is_partial:
            logger.warning(
                "[%s] Partial insert: ingredients %d/%d, steps %d/%d",
                job_id,
                ingredients_inserted, materialized.ingredients_extracted,
                steps_inserted, materialized.steps_extracted,
            )
        return materialized

    def _recipe_row(
        self,
        household_id: str,
        job_id: UUID,
        kind: SourceKind,
        recipe: RecipePayload,
        metadata: Optional[ContentMetadata],
    ) -> dict[str, Any]:
        if kind is SourceKind.IMAGE:
            description = recipe.description or IMAGE_DESCRIPTION
            source_url = IMAGE_SOURCE_URL.format(job_id=job_id)
            image_url = None
        else:
            description = recipe.description
            if not description and kind is SourceKind.WEB and metadata:
                description = metadata.description
            source_url = metadata.url if metadata else None
            image_url = metadata.thumbnail_url if metadata else None

        return {
            "household_id": household_id,
            "title": recipe.title,
            "description": description,
            "servings": recipe.servings or DEFAULT_SERVINGS,
            "prep_time_minutes": recipe.prep_time_minutes,
            "cook_time_minutes": recipe.cook_time_minutes,
            "is_vegetarian": recipe.is_vegetarian,
            "image_url": image_url,
            "source_url": source_url,
            "source_platform": kind.platform,
        }

    def discard(self, recipe_id: UUID) -> None:
        """Remove a materialized recipe whose job could not be marked completed."""
        self.recipes.delete_recipe(recipe_id)
