from __future__ import annotations

import json
from dataclasses import asdict
from functools import lru_cache
from pathlib import Path
from string import Template

from recipe_importer.app.domain.models import Ingredient

from .errors import GeminiPromptError
from .text import truncate
from .types import ContentMetadata

PROMPTS_DIR = Path(__file__).resolve().parent.parent / "prompts"

VIDEO_PROMPT = "video.txt"
STEP_REFINEMENT_PROMPT = "step_refinement.txt"
WEB_PROMPT = "web.txt"
IMAGE_PROMPT = "image.txt"

NOT_AVAILABLE = "N/A"


@lru_cache(maxsize=None)
def load_template(name: str, directory: Path = PROMPTS_DIR) -> Template:
    file_path = directory / name
    try:
        return Template(file_path.read_text(encoding="utf-8"))
    except FileNotFoundError as not_found_error:
        raise GeminiPromptError(f"Prompt file not found: {file_path}") from not_found_error
    except OSError as io_error:
        raise GeminiPromptError(f"Unable to read prompt file: {io_error}") from io_error


def _render(name: str, **values: str) -> str:
    try:
        return load_template(name).substitute(**values)
    except (KeyError, ValueError) as error:
        raise GeminiPromptError(f"Invalid placeholder in prompt {name}: {error}") from error


def build_video_prompt(metadata: ContentMetadata, context: str | None, char_limit: int) -> str:
    if context:
        content_section = (
            "CONTENT SOURCE (Transcript or External Page):\n"
            f"{truncate(context, char_limit)}..."
        )
    else:
        content_section = "Content Source: Not available"

    return _render(
        VIDEO_PROMPT,
        platform=metadata.platform,
        title=metadata.title or NOT_AVAILABLE,
        description=metadata.description or NOT_AVAILABLE,
        creator=metadata.creator or NOT_AVAILABLE,
        caption=metadata.caption or NOT_AVAILABLE,
        hashtags=", ".join(metadata.hashtags) or NOT_AVAILABLE,
        content_section=content_section,
    )


def build_step_refinement_prompt(
    title: str,
    context: str,
    ingredients: list[Ingredient],
    char_limit: int,
) -> str:
    return _render(
        STEP_REFINEMENT_PROMPT,
        title=title,
        content=truncate(context, char_limit),
        ingredients=json.dumps([asdict(item) for item in ingredients], ensure_ascii=False),
    )


def build_web_prompt(metadata: ContentMetadata, html: str, char_limit: int) -> str:
    return _render(
        WEB_PROMPT,
        url=metadata.url,
        title=metadata.title or NOT_AVAILABLE,
        site_name=metadata.creator or NOT_AVAILABLE,
        content=truncate(html, char_limit),
    )


def build_image_prompt() -> str:
    return _render(IMAGE_PROMPT)
