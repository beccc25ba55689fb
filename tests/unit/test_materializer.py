from __future__ import annotations

import json
from uuid import uuid4

import pytest

from recipe_importer.app.domain.errors import HouseholdNotFoundError, InvalidExtractionError
from recipe_importer.app.domain.models import ExtractionLayer, ExtractionResult, SourceKind
from recipe_importer.app.services.materializer import RecipeMaterializer, parse_quantity
from recipe_importer.services.response_parser import build_extraction_result
from recipe_importer.services.types import ContentMetadata
from tests.unit.stubs import RecipeRepositoryStub, create_video_metadata, recipe_reply


def extraction(steps: int = 3, ingredients: int = 2, layer: ExtractionLayer = ExtractionLayer.TRANSCRIPT) -> ExtractionResult:
    return build_extraction_result(json.loads(recipe_reply(steps=steps, ingredients=ingredients)), layer)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("2-3", 2.5),
        ("1/2", 0.5),
        ("1 1/2", 1.5),
        ("1/2 cup", 0.5),
        ("2-3 cups", 2.5),
        ("1 1/2 cups", 1.5),
        ("3/4tsp", 0.75),
        ("200g", 200.0),
        ("2", 2.0),
        ("about 3 cloves", 3.0),
        (1.25, 1.25),
        ("", None),
        ("to taste", None),
        (None, None),
    ],
)
def test_parse_quantity(raw, expected) -> None:
    assert parse_quantity(raw) == expected


def test_parse_quantity_ignores_zero_denominator() -> None:
    assert parse_quantity("1/0") == 1.0


class TestRecipeMaterializer:
    def test_writes_recipe_with_children(self) -> None:
        repo = RecipeRepositoryStub()
        materializer = RecipeMaterializer(repo)

        outcome = materializer.materialize(
            uuid4(), uuid4(), SourceKind.VIDEO_YOUTUBE, extraction(), create_video_metadata(),
        )

        stored = repo.recipes[outcome.recipe_id]
        assert stored["recipe"]["household_id"] == "household-1"
        assert stored["recipe"]["source_platform"] == "youtube"
        assert stored["recipe"]["source_url"] == "https://www.youtube.com/watch?v=dQw4w9WgXcQ"
        assert stored["recipe"]["servings"] == 2
        assert stored["ingredients"][0] == {
            "name": "Ingredient 1",
            "quantity": 1.5,
            "unit": "cups",
            "order_index": 0,
            "raw_text": "1 1/2 cups Ingredient 1",
        }
        assert [row["step_number"] for row in stored["steps"]] == [1, 2, 3]
        assert outcome.ingredients_inserted == 2
        assert outcome.steps_inserted == 3
        assert not outcome.is_partial

    def test_image_defaults(self) -> None:
        repo = RecipeRepositoryStub()
        job_id = uuid4()
        result = extraction(layer=ExtractionLayer.IMAGE_VISION)
        result.recipe.description = None
        result.recipe.servings = None

        outcome = RecipeMaterializer(repo).materialize(uuid4(), job_id, SourceKind.IMAGE, result)

        row = repo.recipes[outcome.recipe_id]["recipe"]
        assert row["description"] == "Imported from image"
        assert row["source_url"] == f"import://{job_id}"
        assert row["image_url"] is None
        assert row["servings"] == 4

    def test_web_description_falls_back_to_page(self) -> None:
        repo = RecipeRepositoryStub()
        result = extraction(layer=ExtractionLayer.WEB_SCRAPING)
        result.recipe.description = None
        metadata = ContentMetadata(
            platform="web",
            url="https://food.example.com/pie",
            description="Grandma's apple pie",
        )

        outcome = RecipeMaterializer(repo).materialize(uuid4(), uuid4(), SourceKind.WEB, result, metadata)

        assert repo.recipes[outcome.recipe_id]["recipe"]["description"] == "Grandma's apple pie"

    def test_missing_household(self) -> None:
        materializer = RecipeMaterializer(RecipeRepositoryStub(household_id=None))

        with pytest.raises(HouseholdNotFoundError, match="Could not find user household"):
            materializer.materialize(uuid4(), uuid4(), SourceKind.WEB, extraction())

    def test_rejects_unsuccessful_extraction(self) -> None:
        failed = ExtractionResult.failure("nope", ExtractionLayer.WEB_SCRAPING)

        with pytest.raises(InvalidExtractionError):
            RecipeMaterializer(RecipeRepositoryStub()).materialize(uuid4(), uuid4(), SourceKind.WEB, failed)

    def test_partial_insert_is_reported(self, caplog) -> None:
        repo = RecipeRepositoryStub()
        repo.drop_steps = 1

        with caplog.at_level("WARNING"):
            outcome = RecipeMaterializer(repo).materialize(uuid4(), uuid4(), SourceKind.WEB, extraction(steps=4))

        assert outcome.steps_extracted == 4
        assert outcome.steps_inserted == 3
        assert outcome.is_partial
        assert "Partial insert" in caplog.text
