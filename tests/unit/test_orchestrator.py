"""Unit tests for the per-scene generation orchestrator."""

from unittest.mock import AsyncMock

import pytest

from scenestudio.error_handling import (
    AllProvidersExhausted,
    ErrorCategory,
    GenerationCancelled,
    ProviderAuthError,
    ProviderQuotaError,
    ProviderTransientError,
)
from scenestudio.models import PromptPair, ProviderKind, SceneArchetype
from scenestudio.orchestrator import (
    MAX_ATTEMPTS_PER_MODEL,
    GenerationDeadline,
    SceneGenerationOrchestrator,
)


PROMPT = PromptPair(positive="Professional commercial product photography of ceramic mug.", negative="props")
STUDIO = SceneArchetype.STUDIO


class FakeClock:
    def __init__(self, now=100.0):
        self.now = now

    def __call__(self):
        return self.now


class TestGenerationDeadline:
    """Test the cancellation and deadline context."""

    def test_unbounded(self):
        deadline = GenerationDeadline()
        assert deadline.remaining() is None
        assert deadline.timeout_for(120) == 120
        deadline.check()

    def test_cancel(self):
        deadline = GenerationDeadline()
        deadline.cancel()
        assert deadline.cancelled
        with pytest.raises(GenerationCancelled):
            deadline.check()

    def test_timeouts_capped_by_remaining_time(self):
        clock = FakeClock()
        deadline = GenerationDeadline(30, clock=clock)
        assert deadline.timeout_for(120) == 30
        clock.now += 25
        assert deadline.timeout_for(120) == pytest.approx(5)
        assert deadline.timeout_for(None) == pytest.approx(5)

    def test_expiry(self):
        clock = FakeClock()
        deadline = GenerationDeadline(10, clock=clock)
        clock.now += 11
        assert deadline.expired
        with pytest.raises(GenerationCancelled, match="deadline"):
            deadline.check()


class TestPrimaryCascade:
    """Test model variants, retries and quality scoring."""

    @pytest.mark.asyncio
    async def test_accepts_first_good_image(self, scripted_provider, png_bytes, sample_product):
        first = scripted_provider("model-a", [png_bytes(80)])
        second = scripted_provider("model-b", [])
        orchestrator = SceneGenerationOrchestrator([first, second])

        scene = await orchestrator.generate_scene(STUDIO, PROMPT, sample_product)

        assert scene.provider == ProviderKind.PRIMARY
        assert scene.model == "model-a"
        assert scene.quality_score == 100
        assert scene.prompt_used == PROMPT.positive
        assert scene.image_data.startswith("data:image/png;base64,")
        assert len(first.calls) == 1
        assert second.calls == []

    @pytest.mark.asyncio
    async def test_passes_reference_images_and_product_name(self, scripted_provider, png_bytes, sample_product):
        provider = scripted_provider("model-a", [png_bytes(80)])
        await SceneGenerationOrchestrator([provider]).generate_scene(STUDIO, PROMPT, sample_product)

        call = provider.calls[0]
        assert call["reference_images"] == sample_product.reference_images
        assert call["product_name"] == "ceramic mug"
        assert call["archetype"] == STUDIO
        assert call["timeout"] == 120.0

    @pytest.mark.asyncio
    async def test_usable_image_retried_then_best_kept(self, scripted_provider, png_bytes, sample_product):
        """Two usable-but-unaccepted samples: the better one is returned, no further models tried."""
        first = scripted_provider("model-a", [png_bytes(20), png_bytes(40)])
        second = scripted_provider("model-b", [])
        orchestrator = SceneGenerationOrchestrator([first, second])

        scene = await orchestrator.generate_scene(STUDIO, PROMPT, sample_product)

        assert len(first.calls) == MAX_ATTEMPTS_PER_MODEL
        assert scene.model == "model-a"
        assert scene.quality_score == 50
        assert second.calls == []

    @pytest.mark.asyncio
    async def test_unusable_output_moves_to_next_model(self, scripted_provider, png_bytes, sample_product):
        first = scripted_provider("model-a", [png_bytes(10), png_bytes(2)])
        second = scripted_provider("model-b", [png_bytes(60)])
        orchestrator = SceneGenerationOrchestrator([first, second])

        scene = await orchestrator.generate_scene(STUDIO, PROMPT, sample_product)

        assert scene.model == "model-b"
        assert len(first.calls) == 2

    @pytest.mark.asyncio
    async def test_transient_error_retries_same_model(self, scripted_provider, png_bytes, sample_product):
        first = scripted_provider("model-a", [ProviderTransientError("flaky"), png_bytes(60)])
        orchestrator = SceneGenerationOrchestrator([first])

        scene = await orchestrator.generate_scene(STUDIO, PROMPT, sample_product)

        assert scene.model == "model-a"
        assert len(first.calls) == 2

    @pytest.mark.asyncio
    async def test_retry_delay_uses_sleep(self, scripted_provider, png_bytes, sample_product):
        sleep = AsyncMock()
        first = scripted_provider("model-a", [ProviderTransientError("flaky"), png_bytes(60)])
        orchestrator = SceneGenerationOrchestrator([first], retry_base_delay=2.0, sleep=sleep)

        await orchestrator.generate_scene(STUDIO, PROMPT, sample_product)

        sleep.assert_awaited_once_with(2.0)

    @pytest.mark.asyncio
    async def test_quota_error_skips_to_next_model(self, scripted_provider, png_bytes, sample_product):
        first = scripted_provider("model-a", [ProviderQuotaError("quota exceeded")])
        second = scripted_provider("model-b", [png_bytes(60)])
        orchestrator = SceneGenerationOrchestrator([first, second])

        scene = await orchestrator.generate_scene(STUDIO, PROMPT, sample_product)

        assert len(first.calls) == 1
        assert scene.model == "model-b"

    @pytest.mark.asyncio
    async def test_auth_error_aborts_primary_cascade(self, scripted_provider, png_bytes, sample_product):
        first = scripted_provider("model-a", [ProviderAuthError("API key not valid", status_code=401)])
        second = scripted_provider("model-b", [png_bytes(60)])
        fallback = scripted_provider("pollinations", [png_bytes(60)], kind=ProviderKind.FALLBACK)
        orchestrator = SceneGenerationOrchestrator([first, second], fallback)

        scene = await orchestrator.generate_scene(STUDIO, PROMPT, sample_product)

        assert second.calls == []
        assert scene.provider == ProviderKind.FALLBACK
        assert scene.model == "pollinations"

    @pytest.mark.asyncio
    async def test_auth_error_keeps_earlier_usable_candidate(self, scripted_provider, png_bytes, sample_product):
        first = scripted_provider(
            "model-a",
            [png_bytes(40), ProviderAuthError("permission denied", status_code=403)],
        )
        second = scripted_provider("model-b", [png_bytes(60)])
        orchestrator = SceneGenerationOrchestrator([first, second], None)

        scene = await orchestrator.generate_scene(STUDIO, PROMPT, sample_product)

        assert scene.provider == ProviderKind.PRIMARY
        assert scene.model == "model-a"
        assert scene.quality_score == 50
        assert len(first.calls) == 2
        assert second.calls == []

    @pytest.mark.asyncio
    async def test_auth_error_after_unusable_candidate_reports_auth(
        self, scripted_provider, png_bytes, sample_product
    ):
        first = scripted_provider(
            "model-a",
            [png_bytes(10), ProviderAuthError("permission denied", status_code=403)],
        )
        orchestrator = SceneGenerationOrchestrator([first], None)

        with pytest.raises(AllProvidersExhausted) as exc_info:
            await orchestrator.generate_scene(STUDIO, PROMPT, sample_product)
        assert exc_info.value.category == ErrorCategory.AUTHENTICATION_ERROR


class TestFallback:
    """Test the credential-free fallback path."""

    @pytest.mark.asyncio
    async def test_fallback_receives_no_reference_images(self, scripted_provider, png_bytes, sample_product):
        primary = scripted_provider("model-a", [ProviderQuotaError("429")])
        fallback = scripted_provider("pollinations", [png_bytes(40)], kind=ProviderKind.FALLBACK)
        orchestrator = SceneGenerationOrchestrator([primary], fallback, fallback_timeout=45)

        scene = await orchestrator.generate_scene(STUDIO, PROMPT, sample_product)

        assert scene.provider == ProviderKind.FALLBACK
        assert fallback.calls[0]["reference_images"] == []
        assert fallback.calls[0]["product_name"] == "ceramic mug"
        assert fallback.calls[0]["timeout"] == 45

    @pytest.mark.asyncio
    async def test_unusable_fallback_output_fails(self, scripted_provider, png_bytes, sample_product):
        primary = scripted_provider("model-a", [ProviderQuotaError("429")])
        fallback = scripted_provider("pollinations", [png_bytes(3)], kind=ProviderKind.FALLBACK)
        orchestrator = SceneGenerationOrchestrator([primary], fallback)

        with pytest.raises(AllProvidersExhausted) as exc_info:
            await orchestrator.generate_scene(STUDIO, PROMPT, sample_product)
        assert "quality too low" in str(exc_info.value.fallback_error)

    @pytest.mark.asyncio
    async def test_both_fail(self, scripted_provider, sample_product):
        primary = scripted_provider("model-a", [ProviderAuthError("401 Unauthorized", status_code=401)])
        fallback = scripted_provider(
            "pollinations", [ProviderTransientError("HTTP 502")], kind=ProviderKind.FALLBACK
        )
        orchestrator = SceneGenerationOrchestrator([primary], fallback)

        with pytest.raises(AllProvidersExhausted) as exc_info:
            await orchestrator.generate_scene(STUDIO, PROMPT, sample_product)

        error = exc_info.value
        assert error.scene == "studio"
        assert error.category == ErrorCategory.AUTHENTICATION_ERROR
        assert isinstance(error.primary_error, ProviderAuthError)
        assert str(error.fallback_error) == "HTTP 502"

    @pytest.mark.asyncio
    async def test_no_fallback_configured(self, scripted_provider, sample_product):
        primary = scripted_provider("model-a", [ProviderQuotaError("429")])
        orchestrator = SceneGenerationOrchestrator([primary], None)

        with pytest.raises(AllProvidersExhausted) as exc_info:
            await orchestrator.generate_scene(STUDIO, PROMPT, sample_product)
        assert exc_info.value.fallback_error is None


class TestCancellation:
    """Test deadline checks between attempts."""

    @pytest.mark.asyncio
    async def test_cancelled_before_first_attempt(self, scripted_provider, png_bytes, sample_product):
        provider = scripted_provider("model-a", [png_bytes(60)])
        deadline = GenerationDeadline()
        deadline.cancel()

        with pytest.raises(GenerationCancelled):
            await SceneGenerationOrchestrator([provider]).generate_scene(STUDIO, PROMPT, sample_product, deadline)
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_cancelled_between_attempts(self, png_bytes, sample_product):
        deadline = GenerationDeadline()

        class CancellingProvider:
            kind = ProviderKind.PRIMARY
            name = "model-a"
            calls = 0

            async def generate(self, prompt, reference_images, *, archetype, product_name="", timeout=None):
                CancellingProvider.calls += 1
                deadline.cancel()
                raise ProviderTransientError("flaky")

        fallback = AsyncMock()
        orchestrator = SceneGenerationOrchestrator([CancellingProvider()], fallback)

        with pytest.raises(GenerationCancelled):
            await orchestrator.generate_scene(STUDIO, PROMPT, sample_product, deadline)
        assert CancellingProvider.calls == 1
        fallback.generate.assert_not_called()

    @pytest.mark.asyncio
    async def test_provider_timeout_capped_by_deadline(self, scripted_provider, png_bytes, sample_product):
        clock = FakeClock()
        deadline = GenerationDeadline(15, clock=clock)
        provider = scripted_provider("model-a", [png_bytes(60)])

        await SceneGenerationOrchestrator([provider]).generate_scene(STUDIO, PROMPT, sample_product, deadline)

        assert provider.calls[0]["timeout"] == 15
