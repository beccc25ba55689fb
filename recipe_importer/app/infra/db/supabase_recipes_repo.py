from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from supabase import Client

from recipe_importer.app.domain.errors import MaterializationError
from recipe_importer.app.infra.db.base import RecipeRepository
from recipe_importer.app.infra.db.supabase_jobs_repo import STORAGE_ERRORS

logger = logging.getLogger(__name__)


class SupabaseRecipeRepository(RecipeRepository):
    RECIPES_TABLE = "recipes"
    INGREDIENTS_TABLE = "recipe_ingredients"
    STEPS_TABLE = "recipe_steps"
    MEMBERS_TABLE = "household_members"

    def __init__(self, client: Client):
        self._client = client

    def get_household_id(self, user_id: UUID) -> str | None:
        result = (
            self._client.table(self.MEMBERS_TABLE)
            .select("household_id")
            .eq("user_id", str(user_id))
            .limit(1)
            .execute()
        )
        if not result.data:
            return None
        return result.data[0].get("household_id")

    def create_recipe_with_children(
        self,
        recipe_row: dict[str, Any],
        ingredient_rows: list[dict[str, Any]],
        step_rows: list[dict[str, Any]],
    ) -> tuple[UUID, int, int]:
        try:
            result = self._client.table(self.RECIPES_TABLE).insert(recipe_row).execute()
        except STORAGE_ERRORS as error:
            raise MaterializationError("recipe", str(error)) from error
        if not result.data:
            raise MaterializationError("recipe", "insert returned no rows")

        recipe_id = str(result.data[0]["id"])

        try:
            ingredients_inserted = self._insert_children(self.INGREDIENTS_TABLE, recipe_id, ingredient_rows)
        except STORAGE_ERRORS as error:
            self._delete_recipe(recipe_id)
            raise MaterializationError("ingredients", str(error), recipe_id) from error

        try:
            steps_inserted = self._insert_children(self.STEPS_TABLE, recipe_id, step_rows)
        except STORAGE_ERRORS as error:
            self._delete_recipe(recipe_id)
            raise MaterializationError("steps", str(error), recipe_id) from error

        logger.info(
            "Recipe created: id=%s, ingredients=%d, steps=%d",
            recipe_id, ingredients_inserted, steps_inserted,
        )
        return UUID(recipe_id), ingredients_inserted, steps_inserted

    def _insert_children(self, table: str, recipe_id: str, rows: list[dict[str, Any]]) -> int:
        if not rows:
            return 0
        payload = [{**row, "recipe_id": recipe_id} for row in rows]
        result = self._client.table(table).insert(payload).execute()
        return len(result.data or [])

    def delete_recipe(self, recipe_id: UUID) -> None:
        self._delete_recipe(str(recipe_id))

    def _delete_recipe(self, recipe_id: str) -> None:
        try:
            self._client.table(self.RECIPES_TABLE).delete().eq("id", recipe_id).execute()
            logger.warning("Deleted recipe: id=%s", recipe_id)
        except STORAGE_ERRORS as error:
            logger.error("Failed to delete recipe %s: %s", recipe_id, error)
