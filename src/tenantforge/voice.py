"""Voice profile confidence gate and fusion into the behavior schema."""

from __future__ import annotations

import logging

from tenantforge.models import VoiceProfile, check_voice_profile
from tenantforge.schemas.models import BehaviorSchema, LearnedExample, LearnedPhrase, VoiceDescriptor

logger = logging.getLogger(__name__)

DEFAULT_MIN_SAMPLE_SIZE = 5
DEFAULT_MIN_CONFIDENCE = 0.5

# A profile built from zero or one message is never trusted, whatever the config says.
_SAMPLE_FLOOR = 2

MAX_PHRASES = 10
MAX_EXAMPLES_PER_CATEGORY = 3
MAX_EXAMPLE_CHARS = 500


def is_confident(
    profile: VoiceProfile | None,
    min_sample_size: int = DEFAULT_MIN_SAMPLE_SIZE,
    min_confidence: float = DEFAULT_MIN_CONFIDENCE,
) -> bool:
    """True when a profile has enough samples and confidence to override defaults."""
    if profile is None:
        return False
    return (
        profile.sample_size >= max(min_sample_size, _SAMPLE_FLOOR)
        and profile.confidence >= min_confidence
    )


def fuse_voice(
    behavior: BehaviorSchema,
    profile: VoiceProfile | None,
    min_sample_size: int = DEFAULT_MIN_SAMPLE_SIZE,
    min_confidence: float = DEFAULT_MIN_CONFIDENCE,
) -> tuple[BehaviorSchema, bool]:
    """Apply a learned voice profile to a behavior schema.

    Returns the (possibly new) schema and whether the profile was applied.
    Low-confidence or absent profiles leave the static voice untouched.

    Raises:
        TenantConfigError: the profile carries metrics outside [0, 1].
    """
    if profile is None:
        return behavior, False
    check_voice_profile(profile)
    if not is_confident(profile, min_sample_size, min_confidence):
        logger.info(
            "Voice profile below threshold (samples=%d, confidence=%.2f); using default voice",
            profile.sample_size,
            profile.confidence,
        )
        return behavior, False

    ranked = sorted(
        profile.signature_phrases,
        key=lambda p: (-p.confidence, -p.frequency, p.text),
    )
    phrases = [
        LearnedPhrase(
            text=p.text,
            confidence=p.confidence,
            context=p.context,
            frequency=p.frequency,
        )
        for p in ranked[:MAX_PHRASES]
        if p.text.strip()
    ]
    examples = {
        category: [
            LearnedExample(subject=e.subject, body=e.body[:MAX_EXAMPLE_CHARS])
            for e in replies[:MAX_EXAMPLES_PER_CATEGORY]
        ]
        for category, replies in profile.examples.items()
        if replies
    }

    fused = behavior.model_copy(update={
        "voice": VoiceDescriptor(
            tone=behavior.voice.tone,
            empathy=profile.empathy,
            formality=profile.formality,
            directness=profile.directness,
        ),
        "voice_source": "profile",
        "learned_phrases": phrases,
        "examples": examples,
    })
    return fused, True
