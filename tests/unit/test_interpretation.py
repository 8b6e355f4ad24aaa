"""Unit tests for mood sanitizing, classification and conflict resolution."""

import logging

import pytest

from scenestudio.interpretation import (
    MAX_MOOD_LENGTH,
    ConflictResolver,
    MoodClassifier,
    interpret_mood,
    pick_category,
    resolve_for_scene,
    sanitize_mood_text,
    score_categories,
    tokenize,
    TEMPERATURE_KEYWORDS,
)
from scenestudio.models import (
    Energy,
    LightQuality,
    MaterialBias,
    MoodClassification,
    MoodInterpretation,
    SceneArchetype,
    Temperature,
)


STUDIO = SceneArchetype.STUDIO
LIFESTYLE = SceneArchetype.LIFESTYLE
EDITORIAL = SceneArchetype.EDITORIAL


class TestSanitizer:
    """Test mood text sanitizing."""

    def test_plain_text_passes_through(self):
        assert sanitize_mood_text("warm cozy") == "warm cozy"

    def test_none_and_empty(self):
        assert sanitize_mood_text(None) == ""
        assert sanitize_mood_text("") == ""

    def test_lowercases_and_collapses_whitespace(self):
        assert sanitize_mood_text("  Warm   \n COZY  ") == "warm cozy"

    def test_strips_urls(self):
        assert sanitize_mood_text("calm https://example.com/moodboard wood") == "calm wood"

    def test_strips_emoji(self):
        assert sanitize_mood_text("calm \U0001F60D wood ☀") == "calm wood"

    def test_strips_brands_case_insensitively(self):
        assert sanitize_mood_text("like Aesop and SSENSE but calm") == "like and but calm"

    def test_brand_removal_respects_word_boundaries(self):
        assert sanitize_mood_text("pineapple") == "pineapple"

    def test_strips_jargon_including_phrases(self):
        assert sanitize_mood_text("8K photorealistic depth of field calm") == "calm"

    def test_strips_hype_words(self):
        assert sanitize_mood_text("stunning luxury vibes, soft") == ", soft"

    @pytest.mark.parametrize("length", [201, 500, 5000])
    def test_length_is_capped(self, length):
        assert len(sanitize_mood_text("a" * length)) <= MAX_MOOD_LENGTH

    def test_length_cap_after_cleaning(self):
        text = "quiet " * 100
        assert len(sanitize_mood_text(text)) == MAX_MOOD_LENGTH


class TestTokenize:
    """Test tokenizing sanitized text."""

    def test_splits_on_commas_and_spaces(self):
        assert tokenize("warm, cozy  wood") == ["warm", "cozy", "wood"]

    def test_drops_single_characters(self):
        assert tokenize("a warm b") == ["warm"]


class TestScoring:
    """Test keyword scoring."""

    def test_keyword_inside_token(self):
        scores = score_categories(["sunsets"], TEMPERATURE_KEYWORDS)
        assert scores[Temperature.WARM] == 1

    def test_token_inside_keyword(self):
        scores = score_categories(["terra"], TEMPERATURE_KEYWORDS)
        assert scores[Temperature.WARM] == 1

    def test_pick_category_unique_max(self):
        assert pick_category({"a": 2, "b": 1}, "z") == "a"

    def test_pick_category_tie_falls_back(self):
        assert pick_category({"a": 1, "b": 1}, "z") == "z"

    def test_pick_category_zero_falls_back(self):
        assert pick_category({"a": 0, "b": 0}, "z") == "z"


class TestMoodClassifier:
    """Test four-dimension classification."""

    def test_empty_text_is_default(self):
        assert MoodClassifier().classify("") == MoodClassification()

    def test_warm_cozy(self):
        classification = MoodClassifier().classify("warm cozy")
        assert classification.temperature == Temperature.WARM
        assert classification.light_quality == LightQuality.GOLDEN_HOUR

    def test_vibrant_energy(self):
        classification = MoodClassifier().classify("vibrant neon energy")
        assert classification.energy == Energy.VIBRANT
        assert classification.temperature == Temperature.NEUTRAL

    def test_dramatic_light(self):
        classification = MoodClassifier().classify("dramatic shadow contrast")
        assert classification.light_quality == LightQuality.DIRECTIONAL

    def test_material(self):
        assert MoodClassifier().classify("walnut oak").material_bias == MaterialBias.WOOD

    def test_tie_resolves_to_default(self):
        # One warm and one cool keyword
        assert MoodClassifier().classify("amber frost").temperature == Temperature.NEUTRAL

    def test_is_pure(self):
        classifier = MoodClassifier()
        assert classifier.classify("calm marble") == classifier.classify("calm marble")


class TestConflictResolverDefaults:
    """Test scene-aware defaults for empty mood text."""

    def test_editorial_only(self):
        interpretation = interpret_mood("", [EDITORIAL])
        assert interpretation.material_bias == MaterialBias.CONCRETE
        assert interpretation.light_quality == LightQuality.DIRECTIONAL
        assert interpretation.was_overridden is False

    def test_studio_only(self):
        interpretation = interpret_mood("", [STUDIO])
        assert interpretation.material_bias == MaterialBias.NONE
        assert interpretation.light_quality == LightQuality.BRIGHT_EVEN

    def test_mixed_batch(self):
        interpretation = interpret_mood("", [LIFESTYLE, EDITORIAL])
        assert interpretation.light_quality == LightQuality.SOFT_DIFFUSED
        assert interpretation.temperature == Temperature.NEUTRAL
        assert interpretation.energy == Energy.CALM

    def test_text_that_sanitizes_away_uses_defaults(self):
        interpretation = interpret_mood("\U0001F60D stunning 8k", [STUDIO])
        assert interpretation.raw_input == "\U0001F60D stunning 8k"
        assert interpretation.light_quality == LightQuality.BRIGHT_EVEN
        assert interpretation.was_overridden is False


class TestConflictResolver:
    """Test archetype policy overrides."""

    def test_studio_forces_moderate_energy(self):
        interpretation = interpret_mood("vibrant neon energy", [STUDIO])
        assert interpretation.energy == Energy.MODERATE
        assert interpretation.was_overridden is True
        assert any("energy" in note for note in interpretation.override_notes)

    def test_studio_forces_neutral_temperature(self):
        interpretation = interpret_mood("warm cozy", [STUDIO])
        assert interpretation.temperature == Temperature.NEUTRAL
        assert any("temperature" in note for note in interpretation.override_notes)

    def test_studio_removes_material(self):
        interpretation = interpret_mood("marble", [STUDIO])
        assert interpretation.material_bias == MaterialBias.NONE
        assert any("material" in note for note in interpretation.override_notes)

    def test_studio_keeps_soft_light(self):
        interpretation = interpret_mood("gentle calm", [STUDIO])
        assert interpretation.light_quality == LightQuality.SOFT_DIFFUSED
        assert interpretation.was_overridden is False

    def test_lifestyle_softens_directional_light(self):
        interpretation = interpret_mood("dramatic shadow contrast", [LIFESTYLE])
        assert interpretation.light_quality == LightQuality.SOFT_DIFFUSED
        assert interpretation.was_overridden is True
        assert any("directional" in note for note in interpretation.override_notes)

    def test_editorial_preferences_are_silent(self):
        interpretation = interpret_mood("bright daylight", [EDITORIAL])
        assert interpretation.light_quality == LightQuality.DIRECTIONAL
        assert interpretation.material_bias == MaterialBias.CONCRETE
        assert interpretation.was_overridden is False

    def test_mixed_batch_keeps_warmth(self):
        interpretation = interpret_mood("warm cozy", [STUDIO, LIFESTYLE])
        assert interpretation.temperature == Temperature.WARM
        assert interpretation.was_overridden is False

    def test_note_count_matches_overrides(self):
        interpretation = interpret_mood("warm vibrant marble sunset", [STUDIO])
        assert len(interpretation.override_notes) == 4

    def test_raw_input_preserved(self):
        interpretation = interpret_mood("Warm COZY", [LIFESTYLE])
        assert interpretation.raw_input == "Warm COZY"

    def test_resolve_is_deterministic(self):
        resolver = ConflictResolver()
        classification = MoodClassification(temperature=Temperature.COOL)
        assert resolver.resolve(classification, [STUDIO]) == resolver.resolve(classification, [STUDIO])


class TestResolveForScene:
    """Test per-scene studio rules inside mixed batches."""

    def test_studio_scene_gets_neutral_temperature(self):
        batch = interpret_mood("warm cozy", [STUDIO, LIFESTYLE])
        studio = resolve_for_scene(batch, STUDIO)
        assert studio.temperature == Temperature.NEUTRAL
        assert studio.was_overridden is True
        assert any("temperature" in note for note in studio.override_notes)

    def test_other_scenes_unchanged(self):
        batch = interpret_mood("warm cozy", [STUDIO, LIFESTYLE])
        assert resolve_for_scene(batch, LIFESTYLE) is batch

    def test_compliant_studio_interpretation_returned_as_is(self):
        batch = MoodInterpretation(light_quality=LightQuality.BRIGHT_EVEN)
        assert resolve_for_scene(batch, STUDIO) is batch

    def test_studio_override_is_logged(self, caplog):
        caplog.set_level(logging.INFO, logger="scenestudio.interpretation")
        batch = interpret_mood("warm cozy", [STUDIO, LIFESTYLE])
        caplog.clear()

        resolve_for_scene(batch, STUDIO)

        messages = [record.getMessage() for record in caplog.records]
        assert len(messages) == 1
        assert 'Studio: temperature "warm" → "neutral"' in messages[0]

    def test_unchanged_scene_logs_nothing(self, caplog):
        caplog.set_level(logging.INFO, logger="scenestudio.interpretation")
        batch = interpret_mood("warm cozy", [STUDIO, LIFESTYLE])
        caplog.clear()

        resolve_for_scene(batch, LIFESTYLE)

        assert caplog.records == []
