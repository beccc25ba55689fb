"""
Turns gathered context into an ExtractionResult.

Video imports run up to two sequential model passes: the main extraction and,
when its steps look thin, a step-refinement pass over the same context.
"""
from __future__ import annotations

import logging
from typing import Optional, Protocol

from recipe_importer.app.config import Settings
from recipe_importer.app.domain.models import ExtractionLayer, ExtractionResult

from . import prompts
from .errors import ServiceError
from .response_parser import outcome_to_result, parse_model_response
from .types import ContentMetadata

logger = logging.getLogger(__name__)

MIN_STEPS_BEFORE_REFINEMENT = 3
MIN_INSTRUCTION_CHARS = 10


class ModelClient(Protocol):
    def generate(self, prompt: str, image: bytes | None = None, mime_type: str | None = None): ...


def needs_step_refinement(result: ExtractionResult, context: Optional[str]) -> bool:
    if not context or not result.success or not result.recipe:
        return False
    steps = result.recipe.steps
    return len(steps) < MIN_STEPS_BEFORE_REFINEMENT or any(
        len(step.instruction) < MIN_INSTRUCTION_CHARS for step in steps
    )


def merge_refined_steps(first: ExtractionResult, refined: ExtractionResult) -> bool:
    """Adopt refined steps only when there are strictly more of them. Returns True when merged."""
    if not first.recipe or not refined.success or not refined.recipe:
        return False
    if len(refined.recipe.steps) <= len(first.recipe.steps):
        return False
    first.recipe.steps = refined.recipe.steps
    return True


class RecipeExtractor:
    def __init__(self, model: ModelClient, settings: Settings) -> None:
        self.model = model
        self.settings = settings

    def _call(
        self,
        prompt: str,
        layer: ExtractionLayer,
        image: bytes | None = None,
        mime_type: str | None = None,
    ) -> ExtractionResult:
        try:
            reply = self.model.generate(prompt, image=image, mime_type=mime_type)
        except ServiceError as error:
            logger.error("Model call failed (%s): %s", layer.value, error)
            return ExtractionResult.failure(str(error), layer)
        return outcome_to_result(parse_model_response(reply.text, reply.block_reason), layer)

    def extract_from_video(self, metadata: ContentMetadata, context: Optional[str]) -> ExtractionResult:
        layer = ExtractionLayer.TRANSCRIPT if context else ExtractionLayer.METADATA

        logger.info("Extraction pass 1 (%s): %s", layer.value, metadata.url)
        prompt = prompts.build_video_prompt(metadata, context, self.settings.TRANSCRIPT_CHAR_LIMIT)
        result = self._call(prompt, layer)
        if not result.success:
            return result

        if needs_step_refinement(result, context):
            current = len(result.recipe.steps)
            logger.info("Extraction pass 2 (step refinement), steps found: %d", current)
            refine_prompt = prompts.build_step_refinement_prompt(
                metadata.title or result.recipe.title,
                context,
                result.recipe.ingredients,
                self.settings.REFINEMENT_CHAR_LIMIT,
            )
            refined = self._call(refine_prompt, layer)
            if merge_refined_steps(result, refined):
                logger.info("Pass 2 improved steps from %d to %d", current, len(result.recipe.steps))
            else:
                logger.info("Pass 2 did not improve steps, keeping pass 1")

        return result

    def extract_from_web(self, metadata: ContentMetadata, html: str) -> ExtractionResult:
        prompt = prompts.build_web_prompt(metadata, html, self.settings.WEB_HTML_CHAR_LIMIT)
        return self._call(prompt, ExtractionLayer.WEB_SCRAPING)

    def extract_from_image(self, image_bytes: bytes, mime_type: str) -> ExtractionResult:
        return self._call(
            prompts.build_image_prompt(),
            ExtractionLayer.IMAGE_VISION,
            image=image_bytes,
            mime_type=mime_type,
        )
