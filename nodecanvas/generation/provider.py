"""
Image providers used by the out-of-band generation action.

A provider turns ``(prompt, optional reference image)`` into one image, or
raises one of the GenerationError subclasses. The graph and the service only
ever see those three failures, never an SDK exception.
"""
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, List, Optional

import httpx
from google import genai
from google.genai import errors, types

from ..core.Errors import NoImageInResponse, ProviderRejected, ProviderUnavailable
from ..noderegistry.ImageNodes import ImageData

logger = logging.getLogger(__name__)

DEFAULT_GEMINI_MODEL = "gemini-2.5-flash-image"
GENERATION_SUFFIX = "Generate an image."

_GENERATION_VERB = re.compile(r"\b(generate|draw|create|make)", re.IGNORECASE)


def augment_prompt(prompt: Optional[str]) -> str:
    """Make sure the model is asked for an image, not a description."""
    prompt = (prompt or "").strip()
    if not prompt:
        return GENERATION_SUFFIX
    if _GENERATION_VERB.search(prompt):
        return prompt
    return f"{prompt} {GENERATION_SUFFIX}"


class ImageProvider(ABC):

    @abstractmethod
    async def generate(self, prompt: str, reference: Optional[ImageData] = None) -> ImageData:
        """
        Raises:
            ProviderRejected: the provider refused the request (safety, quota, bad input)
            ProviderUnavailable: network failure, server error or timeout
            NoImageInResponse: the provider answered without an image
        """
        pass


class UnconfiguredProvider(ImageProvider):
    """Stands in when no API key is configured; every request fails as unavailable."""

    def __init__(self, detail: str = "GEMINI_API_KEY is not set"):
        self.detail = detail

    async def generate(self, prompt: str, reference: Optional[ImageData] = None) -> ImageData:
        raise ProviderUnavailable(self.detail)


def _enum_name(value: Any) -> str:
    return getattr(value, "name", None) or str(value)


class GeminiImageProvider(ImageProvider):
    def __init__(self, api_key: Optional[str] = None, model: str = DEFAULT_GEMINI_MODEL,
                 client: Optional[genai.Client] = None):
        self.model = model
        self.client = client or genai.Client(api_key=api_key)

    def build_contents(self, prompt: str, reference: Optional[ImageData]) -> List[types.Part]:
        parts: List[types.Part] = []
        if reference is not None:
            parts.append(types.Part(inline_data=types.Blob(data=reference.data, mime_type=reference.mime_type)))
        parts.append(types.Part(text=augment_prompt(prompt)))
        return parts

    async def generate(self, prompt: str, reference: Optional[ImageData] = None) -> ImageData:
        contents = self.build_contents(prompt, reference)
        logger.info("Requesting image from %s (reference=%s)", self.model, reference is not None)
        try:
            response = await self.client.aio.models.generate_content(
                model=self.model,
                contents=[types.Content(role="user", parts=contents)],
                config=types.GenerateContentConfig(response_modalities=["IMAGE", "TEXT"]),
            )
        except errors.APIError as e:
            if e.code is not None and e.code >= 500:
                raise ProviderUnavailable(f"{e.code} {e.message or e.status or ''}".strip()) from e
            raise ProviderRejected(e.message or str(e)) from e
        except (httpx.TransportError, OSError) as e:
            raise ProviderUnavailable(str(e) or type(e).__name__) from e

        return self.extract_image(response)

    @staticmethod
    def extract_image(response: types.GenerateContentResponse) -> ImageData:
        feedback = getattr(response, "prompt_feedback", None)
        if feedback is not None and feedback.block_reason:
            raise ProviderRejected(f"Prompt was blocked ({_enum_name(feedback.block_reason)})")

        if not response.candidates:
            raise NoImageInResponse()
        candidate = response.candidates[0]

        reason = candidate.finish_reason
        if reason is not None and _enum_name(reason) != "STOP":
            name = _enum_name(reason)
            if name == "SAFETY":
                raise ProviderRejected("The request was blocked by the safety filter")
            if name == "MAX_TOKENS":
                raise ProviderRejected("The response exceeded the maximum token limit")
            raise ProviderRejected(f"Generation stopped early ({name})")

        texts = []
        parts = candidate.content.parts if candidate.content and candidate.content.parts else []
        for part in parts:
            if part.inline_data is not None and part.inline_data.data:
                return ImageData(part.inline_data.data, part.inline_data.mime_type or "image/png")
            if part.text:
                texts.append(part.text)

        raise NoImageInResponse(" ".join(texts) or None)
