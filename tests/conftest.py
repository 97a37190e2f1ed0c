"""Shared test fixtures for visual match tests."""

import json
from types import SimpleNamespace

import cv2
import numpy as np
import pytest

from visual_match.catalog import CatalogEntry


def encode_image(image: np.ndarray, ext: str = ".png") -> bytes:
    ok, buffer = cv2.imencode(ext, image)
    assert ok
    return buffer.tobytes()


@pytest.fixture
def red_square_png():
    """A 200x200 red square on white background, PNG encoded."""
    img = np.ones((200, 200, 3), dtype=np.uint8) * 255
    img[40:160, 40:160] = [30, 30, 200]  # BGR red
    return encode_image(img, ".png")


@pytest.fixture
def large_jpeg():
    """A 3000x1500 gradient image, JPEG encoded."""
    row = np.linspace(0, 255, 3000, dtype=np.uint8)
    img = np.dstack([np.tile(row, (1500, 1))] * 3)
    return encode_image(img, ".jpg")


@pytest.fixture
def sneaker_catalog():
    return [
        CatalogEntry(name="Red Sneakers", description="running shoes", category="footwear"),
        CatalogEntry(name="Blue Mug", description="ceramic mug", category="kitchen"),
    ]


@pytest.fixture
def mixed_catalog():
    return [
        CatalogEntry(name="Wireless Headphones", description="Noise cancelling over-ear", category="Audio"),
        CatalogEntry(name="Leather Wallet", description="Slim bifold wallet in brown leather", category="Accessories"),
        CatalogEntry(name="Acme Water Bottle", description="Stainless steel bottle, 750ml", category="Kitchen"),
        CatalogEntry(name="Desk Lamp", description="LED lamp with metal arm", category="Home"),
        CatalogEntry(name="Cotton T-Shirt", description="White crew neck tee", category="Clothing"),
        CatalogEntry(name="Yoga Mat", description="Non-slip purple mat", category="Fitness"),
        CatalogEntry(name="Garden Hose", description="Green 20m hose", category="Garden"),
    ]


class FakeCompletions:
    """Records create() calls and replays a canned response or error."""

    def __init__(self, content=None, error=None, finish_reason="stop", choices=True):
        self.content = content
        self.error = error
        self.finish_reason = finish_reason
        self.choices = choices
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        if not self.choices:
            return SimpleNamespace(choices=[])
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(
            choices=[SimpleNamespace(message=message, finish_reason=self.finish_reason)]
        )


class FakeOpenAI:
    def __init__(self, **kwargs):
        self.completions = FakeCompletions(**kwargs)
        self.chat = SimpleNamespace(completions=self.completions)


@pytest.fixture
def make_client():
    """Factory for fake OpenAI clients answering with the given payload."""
    def _make(payload=None, **kwargs):
        if payload is not None and not isinstance(payload, str):
            payload = json.dumps(payload)
        return FakeOpenAI(content=payload, **kwargs)
    return _make


@pytest.fixture
def sneaker_payload():
    return {
        "objects": ["sneakers"],
        "colors": ["red"],
        "materials": [],
        "categories": ["footwear"],
        "description": "red running shoes",
        "style": "sporty",
        "brand": "",
    }
