"""Test configuration for path setup and shared fixtures.

Ensures the `src` directory is on sys.path so the `scenestudio` package
can be imported without installing the project in editable mode.
"""

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from scenestudio.models import (  # noqa: E402
    ImageCandidate,
    ProductDescriptor,
    ProviderKind,
    ReferenceImage,
)

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


def make_png(size_kb: float) -> bytes:
    """PNG-signed payload of roughly the requested size."""
    total = int(size_kb * 1024)
    return PNG_SIGNATURE + b"\x00" * max(0, total - len(PNG_SIGNATURE))


class ScriptedProvider:
    """Provider double that replays a fixed list of outcomes.

    Each outcome is either image bytes or an exception to raise.
    """

    def __init__(self, name, outcomes, kind=ProviderKind.PRIMARY):
        self._name = name
        self._outcomes = list(outcomes)
        self.kind = kind
        self.calls = []

    @property
    def name(self):
        return self._name

    async def generate(self, prompt, reference_images, *, archetype, product_name="", timeout=None):
        self.calls.append({
            "prompt": prompt,
            "reference_images": list(reference_images),
            "archetype": archetype,
            "product_name": product_name,
            "timeout": timeout,
        })
        if not self._outcomes:
            raise AssertionError(f"{self._name} called more times than scripted")
        outcome = self._outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return ImageCandidate(data=outcome, mime_type="image/png", model=self._name)


@pytest.fixture
def png_bytes():
    return make_png


@pytest.fixture
def scripted_provider():
    return ScriptedProvider


@pytest.fixture
def reference_image():
    return ReferenceImage(data=make_png(40), mime_type="image/png")


@pytest.fixture
def sample_product(reference_image):
    return ProductDescriptor(product_name="ceramic mug", primary_image=reference_image)
