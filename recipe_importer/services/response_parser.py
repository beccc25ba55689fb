"""
Defensive parsing of free-form model output into a trusted extraction shape.

Model replies are noisy: markdown fences, prose around the JSON, braces inside
string values. Nothing here raises on bad input; every path ends in one of the
ParseOutcome variants.
"""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Optional, Union

from recipe_importer.app.domain.models import (
    ExtractionLayer,
    ExtractionResult,
    Ingredient,
    RecipePayload,
    RecipeStep,
)

logger = logging.getLogger(__name__)

CODE_FENCE_PATTERN = re.compile(r"```(?:json|JSON)?")
GREEDY_OBJECT_PATTERN = re.compile(r"\{.*\}", re.DOTALL)
_CLOSERS = {"{": "}", "[": "]"}


@dataclass(frozen=True)
class ParsedExtraction:
    payload: dict[str, Any]


@dataclass(frozen=True)
class ParseFailure:
    message: str


@dataclass(frozen=True)
class SafetyBlocked:
    reason: str


ParseOutcome = Union[ParsedExtraction, ParseFailure, SafetyBlocked]


def strip_code_fences(text: str) -> str:
    return CODE_FENCE_PATTERN.sub("", text).strip()


def find_json_bounds(text: str, start: int = 0) -> Optional[tuple[int, int]]:
    """
    Locate the first JSON object or array at/after `start` and the index of its
    matching close. Depth counting skips characters inside string literals.
    Returns (open_index, close_index) or None when unbalanced.
    """
    open_index = -1
    for index in range(start, len(text)):
        if text[index] in _CLOSERS:
            open_index = index
            break
    if open_index == -1:
        return None

    open_char = text[open_index]
    close_char = _CLOSERS[open_char]
    depth = 0
    in_string = False
    escaped = False

    for index in range(open_index, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char == open_char:
            depth += 1
        elif char == close_char:
            depth -= 1
            if depth == 0:
                return open_index, index

    return None


def _has_valid_shape(parsed: Any) -> bool:
    if not isinstance(parsed, dict):
        return False
    confidence = parsed.get("confidence")
    return (
        isinstance(parsed.get("success"), bool)
        and isinstance(confidence, (int, float))
        and not isinstance(confidence, bool)
    )


def _validate(parsed: Any) -> ParseOutcome:
    if isinstance(parsed, list):
        parsed = parsed[0] if parsed else None
    if not _has_valid_shape(parsed):
        return ParseFailure("Invalid response structure: missing success or confidence")
    return ParsedExtraction(payload=parsed)


def parse_model_response(text: Optional[str], block_reason: Optional[str] = None) -> ParseOutcome:
    if block_reason:
        return SafetyBlocked(reason=block_reason)
    if not text or not text.strip():
        return ParseFailure("No response text from model")

    clean = strip_code_fences(text)
    bounds = find_json_bounds(clean)
    candidate = clean[bounds[0]:bounds[1] + 1] if bounds else clean

    failure = ParseFailure("Failed to parse AI response")
    try:
        outcome = _validate(json.loads(candidate))
        if isinstance(outcome, ParsedExtraction):
            return outcome
        failure = outcome
    except json.JSONDecodeError as error:
        logger.warning("Strict JSON parse failed, trying greedy match: %s", error)

    match = GREEDY_OBJECT_PATTERN.search(text)
    if match and match.group(0) != candidate:
        try:
            outcome = _validate(json.loads(match.group(0)))
            if isinstance(outcome, ParsedExtraction):
                return outcome
        except json.JSONDecodeError as error:
            logger.warning("Greedy JSON parse failed: %s", error)

    return failure


def _clean_str(value: Any) -> Optional[str]:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


def _to_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def _to_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    return None


def _clamp_confidence(value: Any) -> float:
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return 0.0
    return max(0.0, min(1.0, confidence))


def coerce_ingredients(value: Any) -> list[Ingredient]:
    if not isinstance(value, list):
        return []
    items: list[Ingredient] = []
    for entry in value:
        if not isinstance(entry, dict):
            continue
        name = _clean_str(entry.get("name"))
        if not name:
            continue
        items.append(
            Ingredient(
                name=name,
                quantity=_clean_str(entry.get("quantity")),
                unit=_clean_str(entry.get("unit")),
            )
        )
    return items


def coerce_steps(value: Any) -> list[RecipeStep]:
    """Steps in source order; missing step numbers continue the sequence."""
    if not isinstance(value, list):
        return []
    steps: list[RecipeStep] = []
    for entry in value:
        if not isinstance(entry, dict):
            continue
        instruction = _clean_str(entry.get("instruction"))
        if not instruction:
            continue
        number = _to_int(entry.get("step_number"))
        if number is None:
            number = steps[-1].step_number + 1 if steps else 1
        steps.append(
            RecipeStep(
                step_number=number,
                instruction=instruction,
                section_title=_clean_str(entry.get("section_title")),
            )
        )
    return steps


def coerce_recipe(value: Any) -> Optional[RecipePayload]:
    if not isinstance(value, dict):
        return None
    return RecipePayload(
        title=_clean_str(value.get("title")) or "Untitled Recipe",
        description=_clean_str(value.get("description")),
        servings=_to_int(value.get("servings")),
        prep_time_minutes=_to_int(value.get("prep_time_minutes")),
        cook_time_minutes=_to_int(value.get("cook_time_minutes")),
        is_vegetarian=_to_bool(value.get("is_vegetarian")),
        ingredients=coerce_ingredients(value.get("ingredients")),
        steps=coerce_steps(value.get("steps")),
    )


def build_extraction_result(payload: dict[str, Any], layer: ExtractionLayer) -> ExtractionResult:
    recipe = coerce_recipe(payload.get("recipe"))
    confidence = _clamp_confidence(payload.get("confidence"))
    error = _clean_str(payload.get("error"))
    success = bool(payload.get("success"))

    if success and not (recipe and recipe.steps):
        return ExtractionResult(
            success=False,
            confidence=confidence,
            extraction_layer=layer,
            recipe=recipe,
            error=error or "Extraction returned a recipe without steps",
        )

    return ExtractionResult(
        success=success,
        confidence=confidence,
        extraction_layer=layer,
        recipe=recipe,
        error=error,
    )


def outcome_to_result(outcome: ParseOutcome, layer: ExtractionLayer) -> ExtractionResult:
    if isinstance(outcome, SafetyBlocked):
        return ExtractionResult.failure(f"AI safety block: {outcome.reason}", layer)
    if isinstance(outcome, ParseFailure):
        return ExtractionResult.failure(outcome.message, layer)
    return build_extraction_result(outcome.payload, layer)
