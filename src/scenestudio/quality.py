"""Heuristic quality scoring for generated scene images."""

import base64
import binascii
import logging
import re
from dataclasses import dataclass
from enum import Enum


logger = logging.getLogger(__name__)

ACCEPT_THRESHOLD = 60
MINIMUM_USABLE_THRESHOLD = 30

TOO_SMALL_KB = 5
SUSPICIOUS_KB = 15

_DATA_URL_PREFIX_RE = re.compile(r"^data:image/[\w.+-]+;base64,")

# Leading bytes of the containers a provider may return
IMAGE_SIGNATURES = {
    "image/png": (b"\x89PNG\r\n\x1a\n",),
    "image/jpeg": (b"\xff\xd8\xff",),
    "image/gif": (b"GIF87a", b"GIF89a"),
}


class QualityVerdict(str, Enum):
    """What the orchestrator should do with a scored candidate."""
    ACCEPT = "accept"
    RETRY = "retry"
    REJECT = "reject"


@dataclass(frozen=True)
class QualityAssessment:
    """Score and explanation for one candidate image."""
    score: int
    reason: str
    size_kb: float

    @property
    def verdict(self) -> QualityVerdict:
        if self.score >= ACCEPT_THRESHOLD:
            return QualityVerdict.ACCEPT
        if self.score >= MINIMUM_USABLE_THRESHOLD:
            return QualityVerdict.RETRY
        return QualityVerdict.REJECT

    @property
    def is_usable(self) -> bool:
        return self.score >= MINIMUM_USABLE_THRESHOLD


def detect_image_format(data: bytes) -> str | None:
    """Return the MIME type implied by the magic bytes, or None."""
    for mime_type, signatures in IMAGE_SIGNATURES.items():
        if any(data.startswith(signature) for signature in signatures):
            return mime_type
    if len(data) >= 12 and data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return None


def decode_image_payload(payload: bytes | str) -> bytes:
    """Accept raw bytes, plain base64 or a data URL and return the raw bytes."""
    if isinstance(payload, (bytes, bytearray)):
        return bytes(payload)
    stripped = _DATA_URL_PREFIX_RE.sub("", payload.strip())
    try:
        return base64.b64decode(stripped, validate=False)
    except (binascii.Error, ValueError):
        return b""


class QualityValidator:
    """Scores candidates from decoded size and container format."""

    def assess(self, payload: bytes | str) -> QualityAssessment:
        data = decode_image_payload(payload)
        size_kb = len(data) / 1024

        if size_kb < TOO_SMALL_KB:
            return QualityAssessment(0, "Image too small (likely failed generation)", size_kb)
        if size_kb < SUSPICIOUS_KB:
            return QualityAssessment(20, "Image suspiciously small", size_kb)
        if detect_image_format(data) is None:
            return QualityAssessment(0, "Invalid image data format", size_kb)

        # Larger payloads carry more detail; the floor keeps valid images above the usable bar
        size_score = min(100, round(size_kb * 1.25))
        return QualityAssessment(max(40, size_score), "OK", size_kb)


def assess_image(payload: bytes | str) -> QualityAssessment:
    """Convenience wrapper around :class:`QualityValidator`."""
    return QualityValidator().assess(payload)
