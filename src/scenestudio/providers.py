"""Image generation providers for product scenes."""

import asyncio
import base64
import logging
from abc import ABC, abstractmethod
from typing import Any, List, Sequence
from urllib.parse import quote

import aiohttp
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from scenestudio.error_handling import ErrorAnalyzer, ProviderTransientError
from scenestudio.models import (
    ImageCandidate,
    PromptPair,
    ProviderKind,
    ReferenceImage,
    SceneArchetype,
)
from scenestudio.prompt_engineering import build_fallback_prompt, build_generation_instructions
from scenestudio.quality import detect_image_format


logger = logging.getLogger(__name__)

# Best quality first, then fast, then legacy
DEFAULT_PRIMARY_MODELS = (
    "gemini-3-pro-image-preview",
    "gemini-2.5-flash-image",
    "gemini-2.0-flash-exp",
)

POLLINATIONS_BASE_URL = "https://image.pollinations.ai/prompt/"
POLLINATIONS_MODEL = "flux"
DEFAULT_FALLBACK_SIZE = 1024

DEFAULT_PRIMARY_TIMEOUT = 120.0
DEFAULT_FALLBACK_TIMEOUT = 60.0


class SceneGenerationProvider(ABC):
    """Abstract base class for scene image providers."""

    kind: ProviderKind = ProviderKind.PRIMARY

    @property
    @abstractmethod
    def name(self) -> str:
        """Model or endpoint identifier used in logs and provenance."""

    @abstractmethod
    async def generate(
        self,
        prompt: PromptPair,
        reference_images: Sequence[ReferenceImage],
        *,
        archetype: SceneArchetype,
        product_name: str = "",
        timeout: float | None = None,
    ) -> ImageCandidate:
        """Produce one candidate image or raise a ``ProviderError``."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class GeminiImageProvider(SceneGenerationProvider):
    """Reference-conditioned generation through one Gemini image model."""

    kind = ProviderKind.PRIMARY

    def __init__(self, api_key: str | None = None, model: str = DEFAULT_PRIMARY_MODELS[0], client: Any = None):
        if client is None:
            if not api_key:
                raise ValueError("A Gemini API key is required for the primary provider")
            client = genai.Client(api_key=api_key)
        self._client = client
        self.model = model

    @property
    def name(self) -> str:
        return self.model

    def _build_contents(
        self,
        prompt: PromptPair,
        reference_images: Sequence[ReferenceImage],
        archetype: SceneArchetype,
    ) -> List[types.Part]:
        instructions = build_generation_instructions(
            prompt, archetype, additional_image_count=len(reference_images) - 1
        )
        parts = [types.Part.from_text(text=instructions)]
        for image in reference_images:
            parts.append(types.Part.from_bytes(data=image.data, mime_type=image.mime_type))
        return parts

    def _extract_image(self, response: Any) -> ImageCandidate:
        candidates = getattr(response, "candidates", None) or []
        if candidates and candidates[0].content is not None:
            for part in candidates[0].content.parts or []:
                inline_data = getattr(part, "inline_data", None)
                if inline_data is None or not (inline_data.mime_type or "").startswith("image/"):
                    continue
                data = inline_data.data
                if not data:
                    continue
                if isinstance(data, str):
                    data = base64.b64decode(data)
                return ImageCandidate(data=data, mime_type=inline_data.mime_type, model=self.model)

        raise ProviderTransientError(f"{self.model} returned no image in response", provider=self.model)

    async def generate(
        self,
        prompt: PromptPair,
        reference_images: Sequence[ReferenceImage],
        *,
        archetype: SceneArchetype,
        product_name: str = "",
        timeout: float | None = None,
    ) -> ImageCandidate:
        if not reference_images:
            raise ValueError("At least one reference image is required")

        contents = self._build_contents(prompt, reference_images, archetype)
        config = types.GenerateContentConfig(response_modalities=["TEXT", "IMAGE"])

        try:
            response = await asyncio.wait_for(
                self._client.aio.models.generate_content(
                    model=self.model,
                    contents=contents,
                    config=config,
                ),
                timeout=timeout,
            )
        except genai_errors.APIError as exc:
            raise ErrorAnalyzer.to_provider_error(
                exc,
                provider=self.model,
                status_code=exc.code,
                message=exc.message or str(exc),
            ) from exc
        except asyncio.TimeoutError as exc:
            raise ProviderTransientError(
                f"{self.model} timed out after {timeout}s", provider=self.model
            ) from exc
        except Exception as exc:
            raise ErrorAnalyzer.to_provider_error(exc, provider=self.model) from exc

        return self._extract_image(response)


class PollinationsProvider(SceneGenerationProvider):
    """Credential-free, text-only fallback. Best effort: it never sees the product."""

    kind = ProviderKind.FALLBACK

    def __init__(
        self,
        base_url: str = POLLINATIONS_BASE_URL,
        model: str = POLLINATIONS_MODEL,
        size: int = DEFAULT_FALLBACK_SIZE,
    ):
        self.base_url = base_url
        self.model = model
        self.size = size

    @property
    def name(self) -> str:
        return f"pollinations-{self.model}"

    def build_url(self, text_prompt: str) -> str:
        return f"{self.base_url}{quote(text_prompt, safe='')}"

    def build_params(self) -> dict:
        return {
            "width": str(self.size),
            "height": str(self.size),
            "model": self.model,
            "nologo": "true",
            "enhance": "true",
        }

    async def generate(
        self,
        prompt: PromptPair,
        reference_images: Sequence[ReferenceImage] = (),
        *,
        archetype: SceneArchetype,
        product_name: str = "",
        timeout: float | None = DEFAULT_FALLBACK_TIMEOUT,
    ) -> ImageCandidate:
        text_prompt = build_fallback_prompt(prompt, product_name)
        url = self.build_url(text_prompt)
        client_timeout = aiohttp.ClientTimeout(total=timeout) if timeout is not None else None

        logger.info("Requesting %s scene from %s", archetype.value, self.name)
        try:
            async with aiohttp.ClientSession(timeout=client_timeout) as session:
                async with session.get(url, params=self.build_params()) as response:
                    if response.status != 200:
                        error_text = await response.text(errors="replace")
                        raise ErrorAnalyzer.error_for_status(
                            response.status,
                            f"HTTP {response.status}: {error_text[:200]}",
                            provider=self.name,
                        )
                    image_bytes = await response.read()
                    header_type = response.headers.get("Content-Type", "")
        except asyncio.TimeoutError as exc:
            raise ProviderTransientError(
                f"{self.name} timed out after {timeout}s", provider=self.name
            ) from exc
        except aiohttp.ClientError as exc:
            raise ErrorAnalyzer.to_provider_error(exc, provider=self.name) from exc

        mime_type = detect_image_format(image_bytes)
        if mime_type is None:
            mime_type = header_type.split(";")[0].strip() if header_type.startswith("image/") else "image/jpeg"
        return ImageCandidate(data=image_bytes, mime_type=mime_type, model=self.name)


class ProviderFactory:
    """Factory for creating scene generation providers."""

    @staticmethod
    def primary_cascade(
        credential: str | None,
        models: Sequence[str] = DEFAULT_PRIMARY_MODELS,
        client: Any = None,
    ) -> List[GeminiImageProvider]:
        """One provider per model variant, sharing a single client."""
        if not credential and client is None:
            logger.error("Cannot initialize Gemini provider: API key is missing")
            raise ValueError("A Gemini API key is required for scene generation")
        if not models:
            raise ValueError("At least one primary model must be configured")

        shared_client = client or genai.Client(api_key=credential)
        return [GeminiImageProvider(model=model, client=shared_client) for model in models]

    @staticmethod
    def fallback(size: int = DEFAULT_FALLBACK_SIZE) -> PollinationsProvider:
        return PollinationsProvider(size=size)
