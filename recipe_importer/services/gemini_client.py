from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import httpx
from google import genai
from google.genai import errors, types

from .errors import GeminiConfigurationError, ModelInvocationError, RateLimitedError

logger = logging.getLogger(__name__)

TEMPERATURE = 0.2
MAX_OUTPUT_TOKENS = 8192
SAFETY_FINISH_REASONS = {"SAFETY", "PROHIBITED_CONTENT", "BLOCKLIST", "SPII"}


@dataclass(frozen=True)
class ModelReply:
    text: Optional[str]
    block_reason: Optional[str] = None


def _enum_name(value) -> Optional[str]:
    if value is None:
        return None
    return getattr(value, "name", None) or str(value)


def _reply_from_response(response: types.GenerateContentResponse) -> ModelReply:
    feedback = getattr(response, "prompt_feedback", None)
    block_reason = _enum_name(getattr(feedback, "block_reason", None))
    if block_reason:
        return ModelReply(text=None, block_reason=block_reason)

    candidates = response.candidates or []
    if not candidates:
        return ModelReply(text=None)

    finish_reason = _enum_name(candidates[0].finish_reason)
    parts = (candidates[0].content.parts or []) if candidates[0].content else []
    text = "".join(part.text for part in parts if getattr(part, "text", None))
    if not text and finish_reason in SAFETY_FINISH_REASONS:
        return ModelReply(text=None, block_reason=finish_reason)
    return ModelReply(text=text or None)


class GeminiClient:
    def __init__(
        self,
        api_key: str,
        model_name: str = "gemini-2.5-flash",
        timeout_seconds: float = 120.0,
        client: genai.Client | None = None,
    ) -> None:
        if not api_key and client is None:
            raise GeminiConfigurationError("Missing Google API key.")
        self.model_name = model_name
        self.timeout_seconds = timeout_seconds
        self._client = client or genai.Client(
            api_key=api_key,
            http_options=types.HttpOptions(timeout=int(timeout_seconds * 1000)),
        )
        self._config = types.GenerateContentConfig(
            temperature=TEMPERATURE,
            max_output_tokens=MAX_OUTPUT_TOKENS,
        )

    def generate(self, prompt: str, image: bytes | None = None, mime_type: str | None = None) -> ModelReply:
        contents: list = [prompt]
        if image is not None:
            contents.append(types.Part.from_bytes(data=image, mime_type=mime_type or "image/jpeg"))

        try:
            response = self._client.models.generate_content(
                model=self.model_name,
                contents=contents,
                config=self._config,
            )
        except errors.APIError as err:
            status_code = getattr(err, "code", None)
            message = str(err)
            if status_code == 429 or "RESOURCE_EXHAUSTED" in message:
                raise RateLimitedError(
                    "Gemini API rate limit reached. Please try again in a few moments."
                ) from err
            raise ModelInvocationError(message, status_code) from err
        except httpx.TimeoutException as err:
            raise ModelInvocationError(f"Timed out after {self.timeout_seconds}s") from err
        except httpx.HTTPError as err:
            raise ModelInvocationError(str(err)) from err

        reply = _reply_from_response(response)
        if reply.block_reason:
            logger.warning("Gemini reply blocked: reason=%s", reply.block_reason)
        return reply
