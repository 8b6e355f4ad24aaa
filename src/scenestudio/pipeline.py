"""Batch entry point: interpret, compile, then generate scenes in order."""

import logging
from typing import Callable, List, Optional, Sequence, Tuple

from scenestudio.context import StudioContext
from scenestudio.error_handling import error_monitoring_context
from scenestudio.interpretation import interpret_mood
from scenestudio.models import (
    BusinessContext,
    GeneratedScene,
    ProductDescriptor,
    PromptPair,
    SceneArchetype,
    SceneGenerationRequest,
)
from scenestudio.orchestrator import GenerationDeadline, SceneGenerationOrchestrator
from scenestudio.prompt_engineering import PromptCompiler, compile_batch
from scenestudio.providers import ProviderFactory, SceneGenerationProvider
from scenestudio.quality import QualityValidator


logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, SceneArchetype], None]


class ScenePipeline:
    """Stateless between batches; every call builds its own orchestrator."""

    def __init__(
        self,
        context: Optional[StudioContext] = None,
        primary_providers: Optional[Sequence[SceneGenerationProvider]] = None,
        fallback_provider: Optional[SceneGenerationProvider] = None,
        compiler: Optional[PromptCompiler] = None,
        validator: Optional[QualityValidator] = None,
    ):
        self.context = context or StudioContext()
        self._primary_providers = primary_providers
        self._fallback_provider = fallback_provider
        self.compiler = compiler or PromptCompiler()
        self.validator = validator or QualityValidator()

    def build_orchestrator(self, credential: Optional[str]) -> SceneGenerationOrchestrator:
        if self._primary_providers is not None:
            primary = list(self._primary_providers)
        else:
            primary = ProviderFactory.primary_cascade(
                credential or self.context.gemini_api_key,
                models=self.context.primary_models,
            )

        fallback = self._fallback_provider
        if fallback is None and self.context.fallback_enabled:
            fallback = ProviderFactory.fallback(size=self.context.fallback_image_size)

        return SceneGenerationOrchestrator(
            primary,
            fallback,
            validator=self.validator,
            primary_timeout=self.context.primary_timeout,
            fallback_timeout=self.context.fallback_timeout,
            retry_base_delay=self.context.retry_base_delay,
        )

    async def _append_scene(
        self,
        produced: Tuple[GeneratedScene, ...],
        archetype: SceneArchetype,
        prompt: PromptPair,
        product: ProductDescriptor,
        orchestrator: SceneGenerationOrchestrator,
        deadline: GenerationDeadline,
    ) -> Tuple[GeneratedScene, ...]:
        deadline.check()
        scene = await orchestrator.generate_scene(archetype, prompt, product, deadline)
        return produced + (scene,)

    async def generate(
        self,
        request: SceneGenerationRequest,
        credential: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
        deadline: Optional[GenerationDeadline] = None,
    ) -> List[GeneratedScene]:
        """Generate every requested scene, in request order.

        The first scene that exhausts all providers aborts the batch; scenes
        after it are never attempted.
        """
        if deadline is None:
            deadline = GenerationDeadline(self.context.batch_deadline)

        interpretation = request.interpretation or interpret_mood(request.mood_text, request.scenes)
        if interpretation.was_overridden:
            for note in interpretation.override_notes:
                logger.info(f"Mood override: {note}")

        prompts = compile_batch(request, interpretation, self.compiler)
        orchestrator = self.build_orchestrator(credential)
        total = len(request.scenes)

        produced: Tuple[GeneratedScene, ...] = ()
        async with error_monitoring_context(f"scene batch for {request.product.product_name}"):
            for index, (archetype, prompt) in enumerate(zip(request.scenes, prompts), start=1):
                if on_progress is not None:
                    on_progress(index, total, archetype)
                produced = await self._append_scene(
                    produced, archetype, prompt, request.product, orchestrator, deadline
                )

        return list(produced)


async def generate_scenes(
    product: ProductDescriptor,
    scenes: Sequence[SceneArchetype],
    mood_text: str,
    credential: Optional[str],
    on_progress: Optional[ProgressCallback] = None,
    business_context: Optional[BusinessContext] = None,
    brand_palette: Optional[Sequence[str]] = None,
    deadline: Optional[GenerationDeadline] = None,
    context: Optional[StudioContext] = None,
) -> List[GeneratedScene]:
    """Convenience wrapper that builds the request and runs a default pipeline."""
    request = SceneGenerationRequest(
        product=product,
        scenes=list(scenes),
        mood_text=mood_text,
        business_context=business_context,
        brand_palette=list(brand_palette or []),
    )
    return await ScenePipeline(context=context).generate(
        request, credential, on_progress=on_progress, deadline=deadline
    )
