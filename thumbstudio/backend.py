"""
Gemini backend adapter - the only module that talks to google-genai.

Builds structured requests (one output image, output MIME type, aspect
ratio, safety thresholds) and converts every SDK/transport exception
into the error taxonomy on the way out. Returns raw SDK responses; the
normalizer reads them.
"""

import logging
from typing import Sequence

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from .errors import classify_error
from .models import ReferenceImage

logger = logging.getLogger(__name__)

SAFETY_CATEGORIES = (
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
)


def is_imagen_model(model: str) -> bool:
    return model.startswith("imagen")


class GeminiBackend:
    def __init__(
        self,
        api_key: str = "",
        output_mime_type: str = "image/png",
        safety_threshold: str = "BLOCK_ONLY_HIGH",
        client=None,
    ):
        self._client = client if client is not None else genai.Client(api_key=api_key)
        self.output_mime_type = output_mime_type
        self.safety_threshold = safety_threshold

    @classmethod
    def from_settings(cls, settings) -> "GeminiBackend":
        return cls(
            api_key=settings.api_key,
            output_mime_type=settings.output_mime_type,
            safety_threshold=settings.safety_threshold,
        )

    # ── Request builders ──────────────────────────────────────────────

    def _safety_settings(self) -> list:
        return [
            types.SafetySetting(category=category, threshold=self.safety_threshold)
            for category in SAFETY_CATEGORIES
        ]

    def _images_config(self, aspect_ratio: str) -> types.GenerateImagesConfig:
        return types.GenerateImagesConfig(
            number_of_images=1,
            output_mime_type=self.output_mime_type,
            aspect_ratio=aspect_ratio,
            safety_filter_level=self.safety_threshold,
            include_rai_reason=True,
        )

    def _image_content_config(self, aspect_ratio: str) -> types.GenerateContentConfig:
        return types.GenerateContentConfig(
            candidate_count=1,
            response_modalities=["IMAGE", "TEXT"],
            image_config=types.ImageConfig(aspect_ratio=aspect_ratio),
            safety_settings=self._safety_settings(),
        )

    def _text_content_config(self) -> types.GenerateContentConfig:
        return types.GenerateContentConfig(
            candidate_count=1,
            response_modalities=["TEXT"],
            safety_settings=self._safety_settings(),
        )

    @staticmethod
    def _contents(prompt: str, images: Sequence[ReferenceImage]) -> list:
        parts = [types.Part.from_bytes(data=image.data, mime_type=image.mime_type) for image in images]
        parts.append(types.Part.from_text(text=prompt))
        return [types.Content(role="user", parts=parts)]

    # ── Calls ─────────────────────────────────────────────────────────

    def _call(self, model: str, fn, **kwargs):
        try:
            return fn(model=model, **kwargs)
        except (genai_errors.APIError, httpx.HTTPError) as e:
            raise classify_error(e, model=model) from e

    def synthesize_image(self, model: str, prompt: str, aspect_ratio: str):
        """Text-to-image on either an Imagen or a Gemini image model."""
        if is_imagen_model(model):
            logger.info("Generating image with %s (generate_images)", model)
            return self._call(
                model,
                self._client.models.generate_images,
                prompt=prompt,
                config=self._images_config(aspect_ratio),
            )
        logger.info("Generating image with %s (generate_content)", model)
        return self._call(
            model,
            self._client.models.generate_content,
            contents=self._contents(prompt, ()),
            config=self._image_content_config(aspect_ratio),
        )

    def edit_image(self, model: str, prompt: str, aspect_ratio: str, images: Sequence[ReferenceImage]):
        """Multimodal edit: reference images plus instruction in one call."""
        logger.info("Editing %d reference image(s) with %s", len(images), model)
        return self._call(
            model,
            self._client.models.generate_content,
            contents=self._contents(prompt, images),
            config=self._image_content_config(aspect_ratio),
        )

    def describe_images(self, model: str, prompt: str, images: Sequence[ReferenceImage]):
        """Vision call returning a text description of the images."""
        logger.info("Describing %d reference image(s) with %s", len(images), model)
        return self._call(
            model,
            self._client.models.generate_content,
            contents=self._contents(prompt, images),
            config=self._text_content_config(),
        )
