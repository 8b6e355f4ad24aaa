"""Mood interpretation: sanitize free text, classify it, and apply scene policy.

Scene rules always override user intent. The classifier only ever produces one
of a small closed set of values per dimension, and the resolver is the single
place where archetype policy is enforced over what the user asked for.
"""

import logging
import re
from types import MappingProxyType
from typing import Iterable, List, Mapping, Sequence, Tuple, TypeVar

from scenestudio.models import (
    Energy,
    LightQuality,
    MaterialBias,
    MoodClassification,
    MoodInterpretation,
    SceneArchetype,
    Temperature,
)


logger = logging.getLogger(__name__)


MAX_MOOD_LENGTH = 200
MIN_MOOD_LENGTH = 2

E = TypeVar("E")


def _keyword_table(table: Mapping[E, Iterable[str]]) -> Mapping[E, frozenset]:
    return MappingProxyType({category: frozenset(words) for category, words in table.items()})


TEMPERATURE_KEYWORDS = _keyword_table({
    Temperature.WARM: [
        'warm', 'golden', 'amber', 'sunset', 'autumn', 'cozy', 'terracotta',
        'honey', 'rustic', 'copper', 'earth', 'earthy', 'sun', 'clay',
        'orange', 'yellow', 'candlelight', 'firelight', 'spice', 'sahara',
    ],
    Temperature.COOL: [
        'cool', 'cold', 'ice', 'winter', 'blue', 'silver', 'moonlight',
        'frost', 'arctic', 'steel', 'slate', 'ocean', 'marine', 'teal',
        'glacier', 'crisp', 'fresh', 'mint', 'lavender', 'twilight',
    ],
    Temperature.NEUTRAL: [
        'neutral', 'balanced', 'clean', 'white', 'gray', 'grey', 'minimal',
        'pure', 'simple', 'clear', 'monochrome', 'matte',
    ],
})

ENERGY_KEYWORDS = _keyword_table({
    Energy.CALM: [
        'calm', 'serene', 'quiet', 'peaceful', 'zen', 'still', 'gentle',
        'soft', 'subtle', 'muted', 'whisper', 'tranquil', 'restful',
        'meditative', 'hushed', 'tender', 'delicate',
    ],
    Energy.VIBRANT: [
        'vibrant', 'bold', 'energetic', 'dynamic', 'bright', 'punchy',
        'saturated', 'intense', 'electric', 'vivid', 'loud', 'striking',
        'powerful', 'fierce', 'dramatic', 'strong',
    ],
    Energy.MODERATE: [
        'moderate', 'balanced', 'natural', 'organic', 'grounded', 'steady',
        'classic', 'everyday', 'approachable', 'comfortable',
    ],
})

MATERIAL_KEYWORDS = _keyword_table({
    MaterialBias.MARBLE: ['marble', 'stone', 'elegant', 'refined', 'polished', 'veined'],
    MaterialBias.WOOD: [
        'wood', 'wooden', 'natural', 'organic', 'rustic', 'earthy', 'cabin',
        'oak', 'walnut', 'pine', 'grain',
    ],
    MaterialBias.CONCRETE: ['concrete', 'industrial', 'urban', 'brutalist', 'raw', 'loft', 'cement', 'grey'],
    MaterialBias.FABRIC: [
        'fabric', 'linen', 'textile', 'soft', 'draped', 'silk', 'cotton',
        'velvet', 'woven', 'cloth',
    ],
    MaterialBias.METAL: [
        'metal', 'chrome', 'steel', 'futuristic', 'modern', 'tech', 'aluminum',
        'brushed', 'iron',
    ],
    MaterialBias.CERAMIC: ['ceramic', 'pottery', 'artisan', 'handmade', 'clay', 'terracotta', 'glazed'],
})

LIGHT_QUALITY_KEYWORDS = _keyword_table({
    LightQuality.SOFT_DIFFUSED: ['soft', 'diffused', 'gentle', 'cloud', 'overcast', 'flat', 'even', 'ambient'],
    LightQuality.GOLDEN_HOUR: ['golden', 'sunset', 'sunrise', 'warm glow', 'amber light', 'magic hour'],
    LightQuality.DIRECTIONAL: [
        'dramatic', 'directional', 'shadow', 'contrast', 'moody', 'chiaroscuro',
        'sculpted', 'angular',
    ],
    LightQuality.BRIGHT_EVEN: ['bright', 'clean', 'even', 'daylight', 'clear', 'crisp light', 'studio'],
})

BRAND_TOKENS = (
    'ssense', 'zara', 'aesop', 'apple', 'nike', 'gucci', 'prada', 'chanel',
    'dior', 'balenciaga', 'celine',
)

JARGON_WORDS = (
    '8k', '4k', 'hdr', 'cinematic', 'ultra', 'hyper', 'realistic',
    'photorealistic', 'octane', 'unreal', 'render', 'raytracing',
    'bokeh', 'depth of field', 'dslr', 'canon', 'nikon', 'sony',
    'masterpiece', 'best quality', 'award winning', 'trending',
    'artstation', 'deviantart', 'behance', 'dribbble',
)

HYPE_WORDS = (
    'luxury', 'luxurious', 'premium', 'exclusive', 'aesthetic',
    'vibe', 'vibes', 'vibez', 'fire', 'lit', 'slay', 'iconic',
    'insane', 'amazing', 'gorgeous', 'stunning', 'breathtaking',
    'incredible', 'unbelievable', 'epic', 'legendary', 'goated',
)


def _word_pattern(words: Sequence[str]) -> re.Pattern:
    alternatives = "|".join(re.escape(word) for word in words)
    return re.compile(rf"\b(?:{alternatives})\b", re.IGNORECASE)


_URL_RE = re.compile(r"https?://\S+")
_EMOJI_RE = re.compile(
    "["
    "\U0001F600-\U0001F9FF"
    "\u2600-\u26FF"
    "\u2700-\u27BF"
    "\U0001F300-\U0001F5FF"
    "\U0001F680-\U0001F6FF"
    "\U0001FA00-\U0001FA6F"
    "]"
)
_BRAND_RE = _word_pattern(BRAND_TOKENS)
_JARGON_RE = _word_pattern(JARGON_WORDS)
_HYPE_RE = _word_pattern(HYPE_WORDS)
_WHITESPACE_RE = re.compile(r"\s+")
_TOKEN_SPLIT_RE = re.compile(r"[\s,]+")


def sanitize_mood_text(raw_text: str | None) -> str:
    """Normalize raw mood text into a short lowercase phrase.

    URLs, emoji, brand names, camera jargon and hype words are removed, then
    whitespace is collapsed and the result is capped at 200 characters.
    """
    text = raw_text or ""
    text = _URL_RE.sub("", text)
    text = _EMOJI_RE.sub("", text)
    text = _BRAND_RE.sub("", text)
    text = _WHITESPACE_RE.sub(" ", text).strip().lower()
    text = _JARGON_RE.sub("", text)
    text = _HYPE_RE.sub("", text)
    text = _WHITESPACE_RE.sub(" ", text).strip()
    return text[:MAX_MOOD_LENGTH]


def tokenize(sanitized: str) -> List[str]:
    """Split on whitespace and commas, dropping single-character tokens."""
    return [word for word in _TOKEN_SPLIT_RE.split(sanitized) if len(word) > 1]


def score_categories(words: Sequence[str], table: Mapping[E, frozenset]) -> dict:
    """Count, per category, the tokens matching any of its keywords."""
    scores = {}
    for category, keywords in table.items():
        scores[category] = sum(
            1
            for word in words
            if any(keyword in word or word in keyword for keyword in keywords)
        )
    return scores


def pick_category(scores: Mapping[E, int], default: E) -> E:
    """Return the unique top-scoring category, else the default."""
    best = max(scores.values(), default=0)
    if best == 0:
        return default
    leaders = [category for category, score in scores.items() if score == best]
    if len(leaders) > 1:
        return default
    return leaders[0]


class MoodClassifier:
    """Maps sanitized mood text onto four independent categorical dimensions."""

    def classify(self, sanitized: str) -> MoodClassification:
        words = tokenize(sanitized)
        return MoodClassification(
            temperature=pick_category(score_categories(words, TEMPERATURE_KEYWORDS), Temperature.NEUTRAL),
            energy=pick_category(score_categories(words, ENERGY_KEYWORDS), Energy.MODERATE),
            material_bias=pick_category(score_categories(words, MATERIAL_KEYWORDS), MaterialBias.NONE),
            light_quality=pick_category(
                score_categories(words, LIGHT_QUALITY_KEYWORDS),
                LightQuality.SOFT_DIFFUSED,
            ),
        )


class ConflictResolver:
    """Applies fixed scene-archetype policy on top of classifier output."""

    STUDIO_LIGHTS = (LightQuality.SOFT_DIFFUSED, LightQuality.BRIGHT_EVEN)

    def defaults(self, raw_input: str, scenes: Sequence[SceneArchetype]) -> MoodInterpretation:
        """Scene-aware defaults used when there is no usable mood text."""
        selected = set(scenes)
        if selected == {SceneArchetype.EDITORIAL}:
            material, light = MaterialBias.CONCRETE, LightQuality.DIRECTIONAL
        elif selected == {SceneArchetype.STUDIO}:
            material, light = MaterialBias.NONE, LightQuality.BRIGHT_EVEN
        else:
            material, light = MaterialBias.NONE, LightQuality.SOFT_DIFFUSED

        return MoodInterpretation(
            temperature=Temperature.NEUTRAL,
            energy=Energy.CALM,
            material_bias=material,
            light_quality=light,
            raw_input=raw_input,
        )

    def resolve(
        self,
        classification: MoodClassification,
        scenes: Sequence[SceneArchetype],
        raw_input: str = "",
    ) -> MoodInterpretation:
        temperature = classification.temperature
        energy = classification.energy
        material = classification.material_bias
        light = classification.light_quality
        notes: List[str] = []

        selected = set(scenes)

        if selected == {SceneArchetype.STUDIO}:
            temperature, energy, material, light = self._enforce_studio(
                temperature, energy, material, light, notes
            )

        if SceneArchetype.LIFESTYLE in selected and light == LightQuality.DIRECTIONAL:
            notes.append(
                f'Lifestyle: light "{LightQuality.DIRECTIONAL.value}" → "{LightQuality.SOFT_DIFFUSED.value}"'
            )
            light = LightQuality.SOFT_DIFFUSED

        if SceneArchetype.EDITORIAL in selected:
            # Editorial preferences, not conflicts: no override note.
            if light == LightQuality.BRIGHT_EVEN:
                light = LightQuality.DIRECTIONAL
            if material == MaterialBias.NONE:
                material = MaterialBias.CONCRETE

        if notes:
            logger.info("Scene policy overrode mood: %s", "; ".join(notes))

        return MoodInterpretation(
            temperature=temperature,
            energy=energy,
            material_bias=material,
            light_quality=light,
            raw_input=raw_input,
            was_overridden=bool(notes),
            override_notes=tuple(notes),
        )

    def resolve_for_scene(
        self,
        interpretation: MoodInterpretation,
        archetype: SceneArchetype,
    ) -> MoodInterpretation:
        """Return the interpretation one scene of the batch is compiled with.

        A studio scene inside a mixed batch still gets the studio rules, applied
        to that scene only. Every other scene uses the batch interpretation.
        """
        if archetype != SceneArchetype.STUDIO:
            return interpretation

        notes = list(interpretation.override_notes)
        before = len(notes)
        temperature, energy, material, light = self._enforce_studio(
            interpretation.temperature,
            interpretation.energy,
            interpretation.material_bias,
            interpretation.light_quality,
            notes,
        )
        if len(notes) == before:
            return interpretation

        logger.info("Studio scene policy overrode mood: %s", "; ".join(notes[before:]))
        return interpretation.model_copy(update={
            "temperature": temperature,
            "energy": energy,
            "material_bias": material,
            "light_quality": light,
            "was_overridden": True,
            "override_notes": tuple(notes),
        })

    def _enforce_studio(
        self,
        temperature: Temperature,
        energy: Energy,
        material: MaterialBias,
        light: LightQuality,
        notes: List[str],
    ) -> Tuple[Temperature, Energy, MaterialBias, LightQuality]:
        if temperature != Temperature.NEUTRAL:
            notes.append(f'Studio: temperature "{temperature.value}" → "{Temperature.NEUTRAL.value}"')
            temperature = Temperature.NEUTRAL
        if energy == Energy.VIBRANT:
            notes.append(f'Studio: energy "{Energy.VIBRANT.value}" → "{Energy.MODERATE.value}"')
            energy = Energy.MODERATE
        if material != MaterialBias.NONE:
            notes.append(f'Studio: material "{material.value}" removed (no props)')
            material = MaterialBias.NONE
        if light not in self.STUDIO_LIGHTS:
            notes.append(f'Studio: light "{light.value}" → "{LightQuality.BRIGHT_EVEN.value}"')
            light = LightQuality.BRIGHT_EVEN
        return temperature, energy, material, light


_classifier = MoodClassifier()
_resolver = ConflictResolver()


def interpret_mood(raw_text: str | None, scenes: Sequence[SceneArchetype]) -> MoodInterpretation:
    """Turn free mood text plus the selected scenes into one batch interpretation."""
    raw_input = raw_text or ""
    sanitized = sanitize_mood_text(raw_input)

    if len(sanitized) < MIN_MOOD_LENGTH:
        logger.debug("No usable mood text, using scene defaults for %s", [s.value for s in scenes])
        return _resolver.defaults(raw_input, scenes)

    classification = _classifier.classify(sanitized)
    logger.debug("Mood %r classified as %s", sanitized, classification.model_dump(mode="json"))
    return _resolver.resolve(classification, scenes, raw_input=raw_input)


def resolve_for_scene(interpretation: MoodInterpretation, archetype: SceneArchetype) -> MoodInterpretation:
    return _resolver.resolve_for_scene(interpretation, archetype)
