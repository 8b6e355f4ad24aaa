"""Data models for mood interpretation and product scene generation."""

from __future__ import annotations

import base64
import binascii
import mimetypes
import re
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import List, Tuple

from pydantic import BaseModel, Field, field_validator, model_validator


MAX_SCENES_PER_BATCH = 3
MAX_ADDITIONAL_IMAGES = 4

_DATA_URL_RE = re.compile(r"^data:(?P<mime>image/[\w.+-]+);base64,(?P<data>.*)$", re.DOTALL)


class SceneArchetype(str, Enum):
    """Fixed, policy-governed photography styles."""
    STUDIO = "studio"
    LIFESTYLE = "lifestyle"
    EDITORIAL = "editorial"


class Temperature(str, Enum):
    """Color temperature dimension of a mood."""
    WARM = "warm"
    NEUTRAL = "neutral"
    COOL = "cool"


class Energy(str, Enum):
    """Tonal energy dimension of a mood."""
    CALM = "calm"
    MODERATE = "moderate"
    VIBRANT = "vibrant"


class MaterialBias(str, Enum):
    """Preferred surface material for scenes that allow surfaces."""
    NONE = "none"
    MARBLE = "marble"
    WOOD = "wood"
    CONCRETE = "concrete"
    FABRIC = "fabric"
    METAL = "metal"
    CERAMIC = "ceramic"


class LightQuality(str, Enum):
    """Quality of light requested by the mood."""
    SOFT_DIFFUSED = "soft-diffused"
    GOLDEN_HOUR = "golden-hour"
    DIRECTIONAL = "directional"
    BRIGHT_EVEN = "bright-even"


class ProviderKind(str, Enum):
    """Which provider family produced a scene."""
    PRIMARY = "primary"
    FALLBACK = "fallback"


class ArchetypePolicy(BaseModel):
    """Locked photographic policy for one scene archetype."""
    archetype: SceneArchetype = Field(description="Archetype this policy governs")
    subject: str = Field(description="Opening sentence, with a {product} placeholder")
    background: Tuple[str, ...] = Field(description="Background sentences, may use a {surface} placeholder")
    lighting: Tuple[str, ...] = Field(description="Lighting rig sentences")
    composition: Tuple[str, ...] = Field(description="Camera and composition sentences")
    props_policy: str = Field(description="What props or surfaces are allowed")
    finish: Tuple[str, ...] = Field(default=(), description="Camera body and quality bar sentences")
    surface_phrase: str | None = Field(
        default=None,
        description="Format for a material hint ({material}); None forbids surface hints",
    )
    default_surface: str = Field(default="", description="Surface used when the mood names no material")
    negative_exclusions: Tuple[str, ...] = Field(description="Terms that must never appear")

    @property
    def allows_surfaces(self) -> bool:
        return self.surface_phrase is not None

    model_config = {"frozen": True}


class MoodClassification(BaseModel):
    """Raw classifier output before scene policy is applied."""
    temperature: Temperature = Temperature.NEUTRAL
    energy: Energy = Energy.MODERATE
    material_bias: MaterialBias = MaterialBias.NONE
    light_quality: LightQuality = LightQuality.SOFT_DIFFUSED

    model_config = {"frozen": True}


class MoodInterpretation(BaseModel):
    """Bounded, structured reading of the user's mood for one batch."""
    temperature: Temperature = Field(default=Temperature.NEUTRAL)
    energy: Energy = Field(default=Energy.CALM)
    material_bias: MaterialBias = Field(default=MaterialBias.NONE)
    light_quality: LightQuality = Field(default=LightQuality.SOFT_DIFFUSED)
    raw_input: str = Field(default="", description="Mood text exactly as supplied")
    was_overridden: bool = Field(default=False, description="True if scene policy replaced a classified value")
    override_notes: Tuple[str, ...] = Field(default=(), description="One note per policy override, in order")

    model_config = {"frozen": True}


class ReferenceImage(BaseModel):
    """A product reference image held as raw bytes."""
    data: bytes = Field(description="Raw image bytes")
    mime_type: str = Field(default="image/png", description="Image MIME type")

    @classmethod
    def from_base64(cls, value: str, mime_type: str | None = None) -> "ReferenceImage":
        """Build from plain base64 or a ``data:image/...;base64,`` URL."""
        match = _DATA_URL_RE.match(value.strip())
        if match:
            mime_type = match.group("mime")
            value = match.group("data")
        try:
            raw = base64.b64decode(value, validate=False)
        except (binascii.Error, ValueError) as exc:
            raise ValueError("Reference image is not valid base64 data") from exc
        return cls(data=raw, mime_type=mime_type or "image/png")

    @classmethod
    def from_data_url(cls, value: str) -> "ReferenceImage":
        if not _DATA_URL_RE.match(value.strip()):
            raise ValueError("Expected a data:image/...;base64, URL")
        return cls.from_base64(value)

    @classmethod
    def from_path(cls, path: str | Path) -> "ReferenceImage":
        file_path = Path(path)
        mime_type, _ = mimetypes.guess_type(file_path.name)
        return cls(data=file_path.read_bytes(), mime_type=mime_type or "image/png")

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("utf-8")

    def to_data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.to_base64()}"


class ProductDescriptor(BaseModel):
    """The physical product to be photographed. Read-only for the pipeline."""
    product_name: str = Field(description="Human-readable product name")
    primary_image: ReferenceImage = Field(description="Primary reference view")
    additional_images: List[ReferenceImage] = Field(
        default_factory=list,
        description="Extra reference angles of the same product",
    )

    @field_validator("product_name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("product_name must not be empty")
        return value

    @field_validator("additional_images")
    @classmethod
    def _cap_additional_images(cls, value: List[ReferenceImage]) -> List[ReferenceImage]:
        if len(value) > MAX_ADDITIONAL_IMAGES:
            raise ValueError(
                f"At most {MAX_ADDITIONAL_IMAGES} additional reference images are supported"
            )
        return value

    @property
    def reference_images(self) -> List[ReferenceImage]:
        """Primary view first, then the additional angles."""
        return [self.primary_image, *self.additional_images]


class BusinessContext(BaseModel):
    """Optional brand context, used only as tonal guidance."""
    business_name: str | None = Field(default=None, description="Brand or business name")
    business_description: str | None = Field(default=None, description="What the business does")
    brand_tone: str | None = Field(default=None, description="Tone of voice of the brand")

    def is_empty(self) -> bool:
        return not any(
            (value or "").strip()
            for value in (self.business_name, self.business_description, self.brand_tone)
        )


class SceneGenerationRequest(BaseModel):
    """One generation batch as submitted by a caller."""
    product: ProductDescriptor
    scenes: List[SceneArchetype] = Field(description="Requested scenes, in output order")
    mood_text: str = Field(default="", description="Free-text mood description")
    business_context: BusinessContext | None = Field(default=None)
    brand_palette: List[str] = Field(default_factory=list, description="Optional brand colors")
    interpretation: MoodInterpretation | None = Field(
        default=None,
        description="Precomputed interpretation; derived from mood_text when absent",
    )

    @model_validator(mode="after")
    def _check_scene_count(self):
        if not 1 <= len(self.scenes) <= MAX_SCENES_PER_BATCH:
            raise ValueError(
                f"A batch must request between 1 and {MAX_SCENES_PER_BATCH} scenes, got {len(self.scenes)}"
            )
        return self


class PromptPair(BaseModel):
    """Positive and negative prompt compiled for one scene."""
    positive: str
    negative: str

    model_config = {"frozen": True}


class ImageCandidate(BaseModel):
    """A raw image payload returned by a provider, before validation."""
    data: bytes
    mime_type: str = "image/png"
    model: str = Field(description="Model or endpoint that produced the image")

    def to_data_url(self) -> str:
        encoded = base64.b64encode(self.data).decode("utf-8")
        return f"data:{self.mime_type};base64,{encoded}"


class GeneratedScene(BaseModel):
    """A validated scene image with its provenance."""
    scene_archetype: SceneArchetype
    image_data: str = Field(description="Image as a data URL")
    prompt_used: str = Field(description="Positive prompt submitted to the provider")
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    provider: ProviderKind
    model: str = Field(default="", description="Model that produced the accepted image")
    quality_score: int = Field(default=0, description="Heuristic quality score 0-100")

    model_config = {"frozen": True}
