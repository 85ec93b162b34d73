"""
Generation Orchestrator - public entry points for thumbnail generation.

  generate_image_with_text       compose -> image models -> normalize
  generate_image_with_reference  direct multimodal edit, or
                                 describe-then-synthesize (by config)

Each call is one logical operation under the backoff loop: a retryable
failure anywhere restarts the whole pipeline, including the description
step, so a result never mixes steps from different attempts. Inside an
attempt the model selector walks the candidate list. Any exception that
escapes is a ThumbnailError.
"""

import logging
import random
import threading
import time
from typing import Callable, Sequence

from .backend import GeminiBackend
from .backoff import BackoffPolicy, run_with_backoff
from .config import ReferenceStrategy, Role, Settings, load_settings
from .errors import GenerationInterrupted, ModelUnavailable, NoContent, ThumbnailError, classify_error
from .models import DEFAULT_ASPECT_RATIO, GeneratedImage, GenerationRequest, ReferenceImage, RequestKind
from .normalizer import extract_image, image_from_content_response, text_from_content_response
from .prompts import (
    DESCRIPTION_PROMPT,
    compose_described_reference_prompt,
    compose_reference_edit_prompt,
    compose_text_to_image_prompt,
)
from .selector import call_with_fallback

logger = logging.getLogger(__name__)


class ThumbnailGenerator:
    """Stateless across calls; holds only immutable settings and the backend."""

    def __init__(
        self,
        settings: Settings,
        backend=None,
        sleep: Callable[[float], None] = time.sleep,
        rng: random.Random | None = None,
    ):
        self.settings = settings
        self.backend = backend if backend is not None else GeminiBackend.from_settings(settings)
        self.policy = BackoffPolicy.from_settings(settings)
        self._sleep = sleep
        self._rng = rng

    # ── Public API ────────────────────────────────────────────────────

    def generate_image_with_text(
        self,
        prompt: str,
        aspect_ratio: str = DEFAULT_ASPECT_RATIO,
        cancel_event: threading.Event | None = None,
    ) -> GeneratedImage:
        return self.generate(GenerationRequest.text(prompt, aspect_ratio), cancel_event)

    def generate_image_with_reference(
        self,
        prompt: str,
        images: Sequence[ReferenceImage],
        aspect_ratio: str = DEFAULT_ASPECT_RATIO,
        cancel_event: threading.Event | None = None,
    ) -> GeneratedImage:
        return self.generate(GenerationRequest.reference(prompt, images, aspect_ratio), cancel_event)

    def generate(self, request: GenerationRequest, cancel_event: threading.Event | None = None) -> GeneratedImage:
        if request.kind is RequestKind.TEXT_TO_IMAGE:
            pipeline = self._text_pipeline
            label = "text-to-image"
        elif self.settings.reference_strategy is ReferenceStrategy.DESCRIBE:
            pipeline = self._describe_then_synthesize
            label = "reference (describe-then-synthesize)"
        else:
            pipeline = self._direct_edit
            label = "reference (direct edit)"

        logger.info("Starting %s generation, aspect ratio %s", label, request.aspect_ratio)
        try:
            image = run_with_backoff(
                lambda: pipeline(request),
                self.policy,
                sleep=self._sleep,
                cancel_event=cancel_event,
                rng=self._rng,
                label=label,
            )
        except ThumbnailError as e:
            logger.error("%s generation failed: %s", label, e)
            raise
        except Exception as e:
            logger.exception("%s generation failed unexpectedly", label)
            raise classify_error(e) from e

        logger.info("%s generation done (%d bytes, %s)", label, len(image.data), image.mime_type)
        return image

    # ── Pipelines (one attempt each) ──────────────────────────────────

    def _synthesize(self, prompt: str, aspect_ratio: str) -> GeneratedImage:
        def attempt(model: str) -> GeneratedImage:
            return extract_image(self.backend.synthesize_image(model, prompt, aspect_ratio))

        return call_with_fallback(self.settings.candidates(Role.IMAGE_SYNTHESIS), attempt)

    def _text_pipeline(self, request: GenerationRequest) -> GeneratedImage:
        prompt = compose_text_to_image_prompt(request.prompt, request.aspect_ratio)
        return self._synthesize(prompt, request.aspect_ratio)

    def _direct_edit(self, request: GenerationRequest) -> GeneratedImage:
        prompt = compose_reference_edit_prompt(request.prompt, request.aspect_ratio)

        def attempt(model: str) -> GeneratedImage:
            response = self.backend.edit_image(model, prompt, request.aspect_ratio, request.reference_images)
            return image_from_content_response(response)

        return call_with_fallback(self.settings.candidates(Role.IMAGE_EDIT), attempt)

    def _describe(self, images: Sequence[ReferenceImage]) -> str:
        def attempt(model: str) -> str:
            response = self.backend.describe_images(model, DESCRIPTION_PROMPT, images)
            return text_from_content_response(response).text

        return call_with_fallback(
            self.settings.candidates(Role.VISION_DESCRIBE),
            attempt,
            advance_on=(ModelUnavailable, NoContent, GenerationInterrupted),
        )

    def _describe_then_synthesize(self, request: GenerationRequest) -> GeneratedImage:
        description = self._describe(request.reference_images)
        logger.info("Reference description obtained (%d chars)", len(description))
        prompt = compose_described_reference_prompt(request.prompt, description, request.aspect_ratio)
        return self._synthesize(prompt, request.aspect_ratio)


# ── Module-level convenience API ──────────────────────────────────────

_default_generator: ThumbnailGenerator | None = None


def get_generator() -> ThumbnailGenerator:
    """Process-wide generator built from the environment on first use."""
    global _default_generator
    if _default_generator is None:
        _default_generator = ThumbnailGenerator(load_settings())
    return _default_generator


def generate_image_with_text(prompt: str, aspect_ratio: str = DEFAULT_ASPECT_RATIO) -> str:
    """Generate from text only. Returns base64-encoded image bytes."""
    return get_generator().generate_image_with_text(prompt, aspect_ratio).to_base64()


def generate_image_with_reference(prompt: str, images: Sequence[dict], aspect_ratio: str = DEFAULT_ASPECT_RATIO) -> str:
    """
    Generate from text plus reference images.

    images: sequence of {"data": <base64>, "mimeType": <str>} (or
    "mime_type"). Returns base64-encoded image bytes.
    """
    references = [
        ReferenceImage.from_base64(image["data"], image.get("mimeType") or image.get("mime_type") or "image/png")
        for image in images
    ]
    return get_generator().generate_image_with_reference(prompt, references, aspect_ratio).to_base64()
