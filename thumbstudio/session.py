"""
Editing Session - interactive create / edit / restore loop.

Tracks the current image, a pending reference upload and the most
recent generations (newest first, at most MAX_HISTORY). Once an image
exists, the next prompt edits it instead of starting from scratch.
"""

import logging
import time
import uuid
from dataclasses import dataclass

from .errors import InvalidRequest
from .models import DEFAULT_ASPECT_RATIO, GeneratedImage, ReferenceImage, validate_aspect_ratio
from .reference import crop_to_aspect_ratio

logger = logging.getLogger(__name__)

MAX_HISTORY = 6


@dataclass(frozen=True)
class HistoryItem:
    id: str
    image: GeneratedImage
    prompt: str
    aspect_ratio: str
    timestamp: float


class ThumbnailSession:
    def __init__(self, generator, aspect_ratio: str = DEFAULT_ASPECT_RATIO):
        self.generator = generator
        self.aspect_ratio = validate_aspect_ratio(aspect_ratio)
        self.prompt = ""
        self.current_image: GeneratedImage | None = None
        self.reference: ReferenceImage | None = None
        self._reference_source: bytes | None = None
        self.history: list[HistoryItem] = []

    @property
    def is_editing(self) -> bool:
        return self.current_image is not None

    # ── Reference upload ──────────────────────────────────────────────

    def set_reference(self, image_bytes: bytes) -> ReferenceImage:
        """Store the upload and crop it to the current aspect ratio."""
        self.reference = crop_to_aspect_ratio(image_bytes, self.aspect_ratio)
        self._reference_source = image_bytes
        return self.reference

    def clear_reference(self) -> None:
        self.reference = None
        self._reference_source = None

    def set_aspect_ratio(self, aspect_ratio: str) -> None:
        """Change ratio; a pending upload is re-cropped from the original."""
        self.aspect_ratio = validate_aspect_ratio(aspect_ratio)
        if self._reference_source is not None:
            self.reference = crop_to_aspect_ratio(self._reference_source, self.aspect_ratio)

    # ── Generation ────────────────────────────────────────────────────

    def generate(self, prompt: str, cancel_event=None) -> HistoryItem:
        """
        Create or edit the current image and record it in history.

        Inputs are read once up front, so the returned item describes the
        request that was sent even if the session changes while it runs.
        """
        prompt = (prompt or "").strip()
        current = self.current_image
        reference = self.reference
        aspect_ratio = self.aspect_ratio
        if not prompt:
            if current is not None:
                raise InvalidRequest("Describe the change you want.")
            raise InvalidRequest("Enter a description for the thumbnail.")

        if current is not None:
            images = [current.as_reference("image/png")]
            if reference is not None:
                images.append(reference)
            logger.info("Editing current image with %d reference(s)", len(images))
            image = self.generator.generate_image_with_reference(
                prompt, images, aspect_ratio, cancel_event=cancel_event
            )
        elif reference is not None:
            image = self.generator.generate_image_with_reference(
                prompt, [reference], aspect_ratio, cancel_event=cancel_event
            )
        else:
            image = self.generator.generate_image_with_text(
                prompt, aspect_ratio, cancel_event=cancel_event
            )

        self.prompt = prompt
        self.current_image = image
        if self.reference is reference:
            self.clear_reference()
        return self._record(image, prompt, aspect_ratio)

    def _record(self, image: GeneratedImage, prompt: str, aspect_ratio: str) -> HistoryItem:
        item = HistoryItem(
            id=uuid.uuid4().hex[:12],
            image=image,
            prompt=prompt,
            aspect_ratio=aspect_ratio,
            timestamp=time.time(),
        )
        self.history = [item, *self.history][:MAX_HISTORY]
        return item

    # ── History ───────────────────────────────────────────────────────

    def restore(self, item_id: str) -> HistoryItem:
        for item in self.history:
            if item.id == item_id:
                self.current_image = item.image
                self.prompt = item.prompt
                self.aspect_ratio = item.aspect_ratio
                self.clear_reference()
                return item
        raise KeyError(f"History item not found: {item_id}")

    def start_over(self) -> None:
        self.current_image = None
        self.prompt = ""
        self.clear_reference()
