import random
from dataclasses import dataclass, field
from types import MappingProxyType

import pytest
from google.genai import types

from thumbstudio.config import ReferenceStrategy, Role, Settings


# ── Response builders ─────────────────────────────────────────────────

def images_response(data=b"imagen-bytes", mime_type="image/png"):
    return types.GenerateImagesResponse(
        generated_images=[types.GeneratedImage(image=types.Image(image_bytes=data, mime_type=mime_type))]
    )


def content_response(parts, finish_reason=types.FinishReason.STOP):
    return types.GenerateContentResponse(
        candidates=[
            types.Candidate(
                content=types.Content(role="model", parts=parts),
                finish_reason=finish_reason,
            )
        ]
    )


def image_part(data=b"gemini-bytes", mime_type="image/png"):
    return types.Part(inline_data=types.Blob(data=data, mime_type=mime_type))


def text_part(text):
    return types.Part(text=text)


# ── Fake backend ──────────────────────────────────────────────────────

@dataclass
class Call:
    method: str
    model: str
    prompt: str
    aspect_ratio: str = ""
    images: tuple = ()


@dataclass
class FakeBackend:
    """Replays queued outcomes per method; exceptions in the queue are raised."""

    calls: list = field(default_factory=list)
    queues: dict = field(default_factory=lambda: {
        "synthesize_image": [],
        "edit_image": [],
        "describe_images": [],
    })

    def queue(self, method, *outcomes):
        self.queues[method].extend(outcomes)

    def calls_to(self, method):
        return [c for c in self.calls if c.method == method]

    def _next(self, call):
        self.calls.append(call)
        outcome = self.queues[call.method].pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def synthesize_image(self, model, prompt, aspect_ratio):
        return self._next(Call("synthesize_image", model, prompt, aspect_ratio))

    def edit_image(self, model, prompt, aspect_ratio, images):
        return self._next(Call("edit_image", model, prompt, aspect_ratio, tuple(images)))

    def describe_images(self, model, prompt, images):
        return self._next(Call("describe_images", model, prompt, "", tuple(images)))


# ── Fixtures ──────────────────────────────────────────────────────────

TEST_MODELS = MappingProxyType({
    Role.IMAGE_SYNTHESIS: ("imagen-a", "imagen-b"),
    Role.IMAGE_EDIT: ("edit-a", "edit-b"),
    Role.VISION_DESCRIBE: ("vision-a", "vision-b"),
})


def make_settings(**overrides):
    values = dict(
        api_key="test-key",
        models=TEST_MODELS,
        reference_strategy=ReferenceStrategy.DIRECT,
        max_attempts=3,
        retry_base_ms=1_000,
        retry_max_ms=4_000,
        retry_jitter_ms=0,
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def rng():
    return random.Random(1234)
