"""Per-scene generation: primary model cascade, quality scoring and fallback."""

import asyncio
import logging
import time
from enum import Enum
from typing import Awaitable, Callable, Optional, Sequence, Tuple

from scenestudio.error_handling import (
    AllProvidersExhausted,
    GenerationCancelled,
    ImageQualityReject,
    ProviderError,
    RecoveryStrategy,
)
from scenestudio.models import (
    GeneratedScene,
    ImageCandidate,
    ProductDescriptor,
    PromptPair,
    ProviderKind,
    SceneArchetype,
)
from scenestudio.providers import (
    DEFAULT_FALLBACK_TIMEOUT,
    DEFAULT_PRIMARY_TIMEOUT,
    SceneGenerationProvider,
)
from scenestudio.quality import QualityAssessment, QualityValidator, QualityVerdict


logger = logging.getLogger(__name__)

MAX_ATTEMPTS_PER_MODEL = 2


class SceneStage(str, Enum):
    """States a single scene passes through."""
    PENDING = "pending"
    TRYING_MODEL = "trying_model"
    SCORING = "scoring"
    RETRY_SAME_MODEL = "retry_same_model"
    NEXT_MODEL = "next_model"
    FALLBACK_PROVIDER = "fallback_provider"
    ACCEPTED = "accepted"
    FAILED = "failed"


class GenerationDeadline:
    """Cancellation and deadline context shared by every call in one batch."""

    def __init__(self, seconds: float | None = None, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._expires_at = clock() + seconds if seconds is not None else None
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or None when unbounded."""
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - self._clock())

    @property
    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def check(self) -> None:
        if self._cancelled:
            raise GenerationCancelled("Scene generation was cancelled")
        if self.expired:
            raise GenerationCancelled("Scene generation deadline exceeded")

    def timeout_for(self, default: float | None) -> float | None:
        """Cap a per-call timeout at the time left in the batch."""
        remaining = self.remaining()
        if remaining is None:
            return default
        if default is None:
            return remaining
        return min(default, remaining)


class SceneGenerationOrchestrator:
    """Runs one scene through the primary cascade and, if needed, the fallback."""

    def __init__(
        self,
        primary_providers: Sequence[SceneGenerationProvider],
        fallback_provider: Optional[SceneGenerationProvider] = None,
        validator: Optional[QualityValidator] = None,
        max_attempts_per_model: int = MAX_ATTEMPTS_PER_MODEL,
        primary_timeout: float | None = DEFAULT_PRIMARY_TIMEOUT,
        fallback_timeout: float | None = DEFAULT_FALLBACK_TIMEOUT,
        retry_base_delay: float = 0.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.primary_providers = list(primary_providers)
        self.fallback_provider = fallback_provider
        self.validator = validator or QualityValidator()
        self.max_attempts_per_model = max_attempts_per_model
        self.primary_timeout = primary_timeout
        self.fallback_timeout = fallback_timeout
        self.retry_base_delay = retry_base_delay
        self._sleep = sleep

    @staticmethod
    def _transition(archetype: SceneArchetype, stage: SceneStage, detail: str = "") -> None:
        if detail:
            logger.info("[%s] %s: %s", archetype.value, stage.value, detail)
        else:
            logger.info("[%s] %s", archetype.value, stage.value)

    def _accept(
        self,
        archetype: SceneArchetype,
        prompt: PromptPair,
        candidate: ImageCandidate,
        assessment: QualityAssessment,
        kind: ProviderKind,
    ) -> GeneratedScene:
        self._transition(
            archetype,
            SceneStage.ACCEPTED,
            f"{candidate.model} via {kind.value} (score: {assessment.score})",
        )
        return GeneratedScene(
            scene_archetype=archetype,
            image_data=candidate.to_data_url(),
            prompt_used=prompt.positive,
            provider=kind,
            model=candidate.model,
            quality_score=assessment.score,
        )

    async def _try_model(
        self,
        provider: SceneGenerationProvider,
        archetype: SceneArchetype,
        prompt: PromptPair,
        product: ProductDescriptor,
        deadline: GenerationDeadline,
    ) -> Tuple[Optional[GeneratedScene], Optional[BaseException], bool]:
        """Run up to the attempt ceiling on one model variant.

        Returns the accepted scene (if any), the last error seen, and whether
        the rest of the primary cascade should be skipped.
        """
        best: Optional[Tuple[ImageCandidate, QualityAssessment]] = None
        last_error: Optional[BaseException] = None
        abort = False
        attempt = 0

        while attempt < self.max_attempts_per_model:
            deadline.check()
            attempt += 1
            self._transition(
                archetype,
                SceneStage.TRYING_MODEL,
                f"{provider.name} attempt {attempt}/{self.max_attempts_per_model}",
            )
            try:
                candidate = await provider.generate(
                    prompt,
                    product.reference_images,
                    archetype=archetype,
                    product_name=product.product_name,
                    timeout=deadline.timeout_for(self.primary_timeout),
                )
            except ProviderError as exc:
                last_error = exc
                logger.warning(f"{provider.name} attempt {attempt} failed: {exc}")
                action = RecoveryStrategy.get_recovery_action(
                    exc, attempt, self.max_attempts_per_model, self.retry_base_delay
                )
                if action.action_type == "abort_primary":
                    logger.error(f"Credential rejected by {provider.name}; skipping remaining models")
                    abort = True
                    break
                if action.action_type == "retry":
                    self._transition(archetype, SceneStage.RETRY_SAME_MODEL, str(exc))
                    if action.delay_seconds > 0:
                        deadline.check()
                        await self._sleep(deadline.timeout_for(action.delay_seconds) or 0.0)
                    continue
                break

            self._transition(archetype, SceneStage.SCORING, provider.name)
            assessment = self.validator.assess(candidate.data)
            logger.info(f"Quality score: {assessment.score} ({assessment.reason})")

            if best is None or assessment.score > best[1].score:
                best = (candidate, assessment)
            if assessment.verdict == QualityVerdict.ACCEPT:
                return self._accept(archetype, prompt, candidate, assessment, provider.kind), None, False
            if attempt < self.max_attempts_per_model:
                self._transition(archetype, SceneStage.RETRY_SAME_MODEL, f"score {assessment.score}")

        if best is not None:
            candidate, assessment = best
            if assessment.is_usable:
                return self._accept(archetype, prompt, candidate, assessment, provider.kind), None, False
            if not abort:
                logger.warning(f"Rejecting {provider.name} output (score: {assessment.score}), trying next model")
                last_error = ImageQualityReject(
                    f"{provider.name} output quality too low (score: {assessment.score})",
                    score=assessment.score,
                )
        return None, last_error, abort

    async def _try_fallback(
        self,
        archetype: SceneArchetype,
        prompt: PromptPair,
        product: ProductDescriptor,
        deadline: GenerationDeadline,
    ) -> Tuple[Optional[GeneratedScene], Optional[BaseException]]:
        provider = self.fallback_provider
        if provider is None:
            return None, None

        deadline.check()
        self._transition(archetype, SceneStage.FALLBACK_PROVIDER, provider.name)
        try:
            candidate = await provider.generate(
                prompt,
                (),
                archetype=archetype,
                product_name=product.product_name,
                timeout=deadline.timeout_for(self.fallback_timeout),
            )
        except ProviderError as exc:
            logger.warning(f"Fallback {provider.name} failed: {exc}")
            return None, exc

        assessment = self.validator.assess(candidate.data)
        logger.info(f"Fallback quality score: {assessment.score} ({assessment.reason})")
        if assessment.is_usable:
            return self._accept(archetype, prompt, candidate, assessment, provider.kind), None
        return None, ImageQualityReject(
            f"{provider.name} output quality too low (score: {assessment.score})",
            score=assessment.score,
        )

    async def generate_scene(
        self,
        archetype: SceneArchetype,
        prompt: PromptPair,
        product: ProductDescriptor,
        deadline: Optional[GenerationDeadline] = None,
    ) -> GeneratedScene:
        """Produce one accepted scene or raise ``AllProvidersExhausted``."""
        deadline = deadline or GenerationDeadline()
        self._transition(archetype, SceneStage.PENDING)

        primary_error: Optional[BaseException] = None
        for index, provider in enumerate(self.primary_providers):
            scene, error, abort = await self._try_model(provider, archetype, prompt, product, deadline)
            if scene is not None:
                return scene
            primary_error = error or primary_error
            if abort:
                break
            if index + 1 < len(self.primary_providers):
                self._transition(archetype, SceneStage.NEXT_MODEL)

        scene, fallback_error = await self._try_fallback(archetype, prompt, product, deadline)
        if scene is not None:
            return scene

        deadline.check()
        self._transition(archetype, SceneStage.FAILED)
        error = AllProvidersExhausted(archetype.value, primary_error, fallback_error)
        logger.error(str(error))
        raise error
