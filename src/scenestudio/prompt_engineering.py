"""Locked prompt templates for product scene photography.

Each scene archetype owns a fixed template that supplies almost all of the
prompt. User mood can only reach the output through three narrow channels:
a short color-temperature/tonal modifier, a material surface hint for scenes
that allow surfaces, and a clearly labeled brand-context suffix.
"""

import logging
from types import MappingProxyType
from typing import Iterable, List, Mapping, Sequence

from scenestudio.interpretation import resolve_for_scene
from scenestudio.models import (
    ArchetypePolicy,
    BusinessContext,
    Energy,
    MaterialBias,
    MoodInterpretation,
    PromptPair,
    SceneArchetype,
    SceneGenerationRequest,
    Temperature,
)


logger = logging.getLogger(__name__)


SYSTEM_DIRECTIVE = """You are a senior commercial product photographer with 20 years of experience shooting for high-end e-commerce, catalogs, and editorial campaigns.

YOUR MANDATE:
- Produce REAL, physically plausible product photography
- Every image must look like it was shot with professional equipment in a controlled environment
- Slightly boring is acceptable. Unrealistic is NOT.
- If the result would not be accepted on a professional product page, it has FAILED.

ABSOLUTE PROHIBITIONS:
- NO AI-looking artifacts, exaggeration, or synthetic appearance
- NO cinematic effects, lens flares, god rays, or dramatic color grading
- NO hyperreal shine, artificial gloss, or plastic-looking surfaces
- NO stylized lighting, neon accents, or gradient backgrounds
- NO text, watermarks, logos, or branding overlays
- NO distortion, hallucination, or modification of the product
- NO multiple copies of the product
- NO people, faces, hands, or body parts

PRODUCT FIDELITY IS SACRED:
- The product in the reference image must appear EXACTLY as-is
- Same shape, proportions, materials, colors, textures, details
- Product is always the clear focal point, properly scaled
- Material rendering must be physically accurate (metal looks like metal, glass like glass, fabric like fabric)"""

QUALITY_MANDATE = """QUALITY MANDATE:
- Generate a single photograph that looks like a real photograph taken by a professional photographer
- If it looks like AI-generated art, it has FAILED
- Product must be identical to the reference image
- Lighting must be physically plausible
- No synthetic appearance, no artificial gloss, no hyperreal textures
- Conservative, disciplined, professional output ONLY"""

CONSISTENCY_DIRECTIVE = (
    "MULTI-SCENE CONSISTENCY: This is part of a multi-scene product shoot. "
    "Maintain identical product proportions, materials, and colors across all scenes in this batch. "
    "Maintain consistent product scale and detail rendering. "
)

BRAND_CONTEXT_LABEL = (
    "BRAND CONTEXT (guidance only: use as subtle tonal guidance, do NOT change "
    "lighting, composition, or scene structure)"
)


STUDIO_POLICY = ArchetypePolicy(
    archetype=SceneArchetype.STUDIO,
    subject="Professional commercial product photography of {product}",
    background=(
        "shot in a professional photography studio",
        "neutral off-white seamless paper background with very subtle warm grey tone",
    ),
    lighting=(
        "soft diffused studio lighting from two large softboxes at 45-degree angles",
        "gentle fill light from below to reduce harsh shadows",
        "physically realistic soft shadows on the background surface",
        "accurate material rendering with true-to-life surface textures",
        "neutral color science, no color cast",
    ),
    composition=(
        "product centered in frame filling approximately 60-65% of the composition",
        "straight-on camera angle with very slight 10-degree overhead elevation",
        "sharp focus throughout the entire product with high depth of field",
    ),
    props_policy="isolated product with no props, surfaces, or context objects",
    finish=(
        "shot on medium format digital camera, f/8-f/11 aperture",
        "high-end e-commerce catalog quality, ready for product page",
        "completely realistic, no AI artifacts, no synthetic appearance",
    ),
    negative_exclusions=(
        'props', 'decoration', 'surface texture', 'table', 'shelf', 'floor visible',
        'environment', 'room', 'interior', 'lifestyle elements', 'context objects',
        'hands', 'people', 'faces', 'bodies', 'fingers', 'human presence',
        'text', 'watermark', 'logo', 'branding', 'label overlay', 'typography',
        'distorted product', 'hallucinated features', 'wrong proportions', 'multiple products',
        'blurry', 'soft focus', 'motion blur', 'out of focus areas',
        'low quality', 'low resolution', 'jpeg artifacts', 'noise', 'grain',
        'illustration', 'painting', 'drawing', 'cartoon', 'anime', 'sketch',
        'dramatic lighting', 'rim light', 'spotlight', 'harsh shadows', 'deep shadows',
        'lens flare', 'god rays', 'light leaks', 'bokeh', 'chromatic aberration',
        'cinematic', 'film grain', 'color grading', 'split toning', 'cross processing',
        'neon', 'gradients', 'color splash', 'HDR effect', 'over-saturated',
        'hyperreal', 'glossy', 'plastic appearance', 'synthetic look', 'AI artifacts',
        'vignette', 'fisheye', 'wide angle distortion', 'tilt shift',
        'reflections of studio equipment', 'visible light source',
    ),
)

LIFESTYLE_POLICY = ArchetypePolicy(
    archetype=SceneArchetype.LIFESTYLE,
    subject="Lifestyle product photography of {product}",
    background=(
        "placed naturally in a realistic minimal interior setting",
        "product resting on {surface}",
    ),
    lighting=(
        "soft natural daylight from a window source, ambient fill",
        "no direct sunlight or harsh beams",
        "physically accurate shadows, soft and natural",
        "neutral to warm natural color palette",
    ),
    composition=(
        "product is the clear primary focal point in the composition",
        "off-center product placement with breathing room and negative space",
        "shallow but controlled depth of field, product entirely sharp",
        "background gently out of focus but recognizably real",
    ),
    props_policy="uncluttered calm environment with only 1-2 very subtle contextual elements",
    finish=(
        "environment feels lived-in but deliberately styled",
        "shot on full-frame camera, natural perspective",
        "high-end brand lifestyle photography quality",
        "completely realistic, no AI artifacts",
    ),
    surface_phrase="{material}",
    default_surface="clean natural light wood or white surface",
    negative_exclusions=(
        'people', 'faces', 'hands', 'bodies', 'fashion posing', 'human presence',
        'cluttered background', 'busy interior', 'decorative overload', 'maximalist',
        'too many props', 'obvious staging', 'fake plants', 'stock photo feel',
        'text', 'watermark', 'logo', 'brand name', 'label', 'typography',
        'distorted product', 'hallucinated features', 'multiple copies', 'wrong scale',
        'illustration', 'painting', 'cartoon', 'synthetic look', 'AI appearance',
        'dramatic shadows', 'cinematic flares', 'surreal effects', 'HDR',
        'over-saturated colors', 'neon lighting', 'colored lighting gels',
        'lens flare', 'god rays', 'bokeh balls', 'light leaks',
        'heavy color grading', 'film emulation', 'cross processing',
        'hyperreal textures', 'plastic surfaces', 'artificial gloss',
        'studio lighting visible', 'flash photography', 'harsh direct light',
        'blurry product', 'motion blur', 'low quality', 'jpeg artifacts',
    ),
)

EDITORIAL_POLICY = ArchetypePolicy(
    archetype=SceneArchetype.EDITORIAL,
    subject="Editorial product photography of {product}",
    background=(
        "{surface} backdrop with considered spatial composition",
    ),
    lighting=(
        "intentional directional lighting from a single controlled source",
        "physically plausible shadows with clear directionality",
        "shadow edges are soft-medium, never harsh or razor-sharp",
        "restrained neutral color palette with quiet visual authority",
    ),
    composition=(
        "asymmetric composition with generous negative space",
        "product positioned as a sculptural focal object within the frame",
        "architectural sense of scale and environment",
    ),
    props_policy="no commercial gloss, no trend-driven styling, no decoration",
    finish=(
        "disciplined visual language, every element has purpose",
        "shot on medium format camera with professional lens",
        "art-directed campaign-grade photography",
        "completely realistic, absolutely no AI artifacts",
    ),
    surface_phrase="architectural {material}",
    default_surface="sculptural matte concrete or natural stone architectural",
    negative_exclusions=(
        'people', 'faces', 'hands', 'bodies', 'human presence',
        'cluttered', 'busy background', 'visual noise', 'over-stylized', 'maximalist',
        'text', 'watermark', 'logo', 'brand name', 'typography overlay',
        'distorted product', 'hallucinated features', 'multiple products', 'wrong proportions',
        'flat lighting', 'even lighting', 'no shadows', 'shadowless',
        'snapshot quality', 'amateur photography', 'phone camera',
        'commercial gloss', 'product catalog feel', 'stock photo',
        'illustration', 'painting', 'cartoon', 'digital art', 'AI appearance',
        'cinematic flare', 'lens flare', 'god rays', 'light leaks',
        'neon', 'gradients', 'color splash', 'trendy aesthetic',
        'surrealism', 'fantasy', 'sci-fi', 'futuristic',
        'heavy color grading', 'cross processing', 'film emulation',
        'hyperreal', 'plastic surfaces', 'artificial shine',
        'bokeh', 'tilt shift', 'fisheye', 'wide angle distortion',
        'blurry', 'low quality', 'jpeg artifacts', 'noise',
    ),
)

ARCHETYPE_POLICIES: Mapping[SceneArchetype, ArchetypePolicy] = MappingProxyType({
    SceneArchetype.STUDIO: STUDIO_POLICY,
    SceneArchetype.LIFESTYLE: LIFESTYLE_POLICY,
    SceneArchetype.EDITORIAL: EDITORIAL_POLICY,
})

MATERIAL_SURFACES: Mapping[MaterialBias, str] = MappingProxyType({
    MaterialBias.MARBLE: "polished marble or stone surface",
    MaterialBias.WOOD: "natural light wood surface",
    MaterialBias.CONCRETE: "matte concrete surface",
    MaterialBias.FABRIC: "clean linen or cotton textile surface",
    MaterialBias.METAL: "brushed metal surface",
    MaterialBias.CERAMIC: "ceramic surface",
})

TEMPERATURE_MODIFIERS: Mapping[Temperature, str] = MappingProxyType({
    Temperature.WARM: "very slightly warm color temperature",
    Temperature.COOL: "very slightly cool color temperature",
})

ENERGY_MODIFIERS: Mapping[Energy, str] = MappingProxyType({
    Energy.CALM: "muted, restrained tonal palette",
    Energy.VIBRANT: "slightly richer color saturation, maintaining realism",
})


def build_mood_modifier(interpretation: MoodInterpretation) -> str:
    """Short tonal hint derived only from temperature and energy.

    Neutral temperature and moderate energy contribute nothing.
    """
    parts = [
        TEMPERATURE_MODIFIERS.get(interpretation.temperature, ""),
        ENERGY_MODIFIERS.get(interpretation.energy, ""),
    ]
    return ", ".join(part for part in parts if part)


def build_material_hint(interpretation: MoodInterpretation, archetype: SceneArchetype) -> str:
    """Surface description for scenes that allow one; empty for studio."""
    policy = ARCHETYPE_POLICIES[archetype]
    if not policy.allows_surfaces:
        return ""
    return MATERIAL_SURFACES.get(interpretation.material_bias, "")


def build_business_suffix(business_context: BusinessContext | None) -> str:
    if business_context is None or business_context.is_empty():
        return ""

    parts: List[str] = []
    if business_context.business_name:
        parts.append(f"Brand: {business_context.business_name.strip()}")
    if business_context.business_description:
        parts.append(f"About: {business_context.business_description.strip()}")
    if business_context.brand_tone:
        parts.append(f"Brand tone: {business_context.brand_tone.strip()}")
    return f"\n\n{BRAND_CONTEXT_LABEL}: {'. '.join(parts)}."


def build_palette_suffix(brand_palette: Sequence[str] | None) -> str:
    colors = [color.strip() for color in brand_palette or () if color and color.strip()]
    if not colors:
        return ""
    return f" Very subtle color palette influence: {', '.join(colors)}."


class PromptCompiler:
    """Compiles one locked prompt pair per scene archetype."""

    def __init__(self, policies: Mapping[SceneArchetype, ArchetypePolicy] = ARCHETYPE_POLICIES):
        self.policies = policies

    def _surface(self, policy: ArchetypePolicy, interpretation: MoodInterpretation) -> str:
        if policy.surface_phrase is None:
            return ""
        material = build_material_hint(interpretation, policy.archetype)
        if not material:
            return policy.default_surface
        return policy.surface_phrase.format(material=material)

    def compile(
        self,
        archetype: SceneArchetype,
        interpretation: MoodInterpretation,
        product_name: str,
        business_context: BusinessContext | None = None,
        brand_palette: Sequence[str] | None = None,
    ) -> PromptPair:
        """Build the positive/negative pair for a single scene.

        Identical inputs always produce an identical pair.
        """
        policy = self.policies[archetype]
        surface = self._surface(policy, interpretation)

        sentences: Iterable[str] = (
            policy.subject.format(product=product_name),
            *(line.format(surface=surface) for line in policy.background),
            policy.props_policy,
            *policy.lighting,
            *policy.composition,
            *policy.finish,
            build_mood_modifier(interpretation),
        )
        positive = ". ".join(sentence for sentence in sentences if sentence) + "."
        positive += build_business_suffix(business_context)
        positive += build_palette_suffix(brand_palette)

        return PromptPair(positive=positive, negative=", ".join(policy.negative_exclusions))


def apply_consistency_directive(prompts: Sequence[PromptPair]) -> List[PromptPair]:
    """Prefix every positive prompt with the consistency directive for multi-scene batches."""
    if len(prompts) <= 1:
        return list(prompts)
    return [
        PromptPair(positive=CONSISTENCY_DIRECTIVE + prompt.positive, negative=prompt.negative)
        for prompt in prompts
    ]


def compile_batch(
    request: SceneGenerationRequest,
    interpretation: MoodInterpretation,
    compiler: PromptCompiler | None = None,
) -> List[PromptPair]:
    """Compile prompt pairs for every requested scene, in request order."""
    compiler = compiler or PromptCompiler()
    prompts = [
        compiler.compile(
            archetype,
            resolve_for_scene(interpretation, archetype),
            request.product.product_name,
            business_context=request.business_context,
            brand_palette=request.brand_palette,
        )
        for archetype in request.scenes
    ]
    logger.debug("Compiled %d prompt pair(s) for scenes %s", len(prompts), [s.value for s in request.scenes])
    return apply_consistency_directive(prompts)


def build_reference_note(additional_image_count: int) -> str:
    if additional_image_count <= 0:
        return ""
    return (
        f"\n\nADDITIONAL REFERENCE ANGLES: {additional_image_count} additional view(s) of the same "
        "product are provided. Use them to understand the product's complete 3D form, materials, "
        "and construction details. The first image is the primary view."
    )


def build_generation_instructions(
    prompt: PromptPair,
    archetype: SceneArchetype,
    additional_image_count: int = 0,
) -> str:
    """Full text instruction sent alongside the reference images."""
    return (
        f"{SYSTEM_DIRECTIVE}\n\n"
        f"SCENE TYPE: {archetype.value.upper()}\n\n"
        f"SCENE SPECIFICATION:\n{prompt.positive}\n"
        f"{build_reference_note(additional_image_count)}\n\n"
        f"ABSOLUTE EXCLUSIONS (must not appear in the generated image):\n{prompt.negative}\n\n"
        f"{QUALITY_MANDATE}"
    )


def build_fallback_prompt(prompt: PromptPair, product_name: str) -> str:
    """Best-effort text-only prompt for providers that cannot take a reference image."""
    sentences = [
        prompt.positive,
        f'The product "{product_name}" must be the clear focal point',
        "Real photograph, not AI art. Professional commercial photography. No text overlays",
    ]
    return ". ".join(sentence.rstrip().rstrip(".") for sentence in sentences) + "."
