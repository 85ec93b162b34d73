"""
Value types shared by the generation pipeline.

Aspect ratios use the canonical sizes of the thumbnail targets:
  16:9  YouTube            1280x720
  9:16  Shorts / TikTok    720x1280
  1:1   Instagram          1024x1024
  4:3   Standard           1024x768
  3:4   Portrait           768x1024
"""

import base64
from dataclasses import dataclass, field
from enum import Enum

from .errors import InvalidRequest

ASPECT_RATIOS = {
    "16:9": (1280, 720),
    "9:16": (720, 1280),
    "1:1": (1024, 1024),
    "4:3": (1024, 768),
    "3:4": (768, 1024),
}

DEFAULT_ASPECT_RATIO = "16:9"


def validate_aspect_ratio(aspect_ratio: str) -> str:
    """Return the ratio unchanged if supported, else raise InvalidRequest."""
    if aspect_ratio not in ASPECT_RATIOS:
        raise InvalidRequest(
            f"Unsupported aspect ratio {aspect_ratio!r}. "
            f"Choose one of: {', '.join(ASPECT_RATIOS)}"
        )
    return aspect_ratio


def orientation(aspect_ratio: str) -> str:
    width, height = ASPECT_RATIOS[validate_aspect_ratio(aspect_ratio)]
    if width > height:
        return "landscape"
    if height > width:
        return "portrait"
    return "square"


class RequestKind(str, Enum):
    TEXT_TO_IMAGE = "text_to_image"
    REFERENCE_EDIT = "reference_edit"


@dataclass(frozen=True)
class ReferenceImage:
    """User-supplied image bytes plus MIME type."""

    data: bytes
    mime_type: str = "image/png"

    @classmethod
    def from_base64(cls, data: str, mime_type: str = "image/png") -> "ReferenceImage":
        if data.startswith("data:"):
            header, _, data = data.partition(",")
            mime_type = header[5:].split(";")[0] or mime_type
        try:
            raw = base64.b64decode(data, validate=True)
        except ValueError as e:
            raise InvalidRequest(f"Reference image is not valid base64: {e}") from e
        return cls(raw, mime_type)

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")


@dataclass(frozen=True)
class GeneratedImage:
    data: bytes
    mime_type: str = "image/png"

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.to_base64()}"

    def as_reference(self, mime_type: str | None = None) -> ReferenceImage:
        return ReferenceImage(self.data, mime_type or self.mime_type)


@dataclass(frozen=True)
class DescriptionText:
    text: str


@dataclass(frozen=True)
class GenerationRequest:
    kind: RequestKind
    prompt: str
    aspect_ratio: str = DEFAULT_ASPECT_RATIO
    reference_images: tuple = field(default_factory=tuple)

    def __post_init__(self):
        if not self.prompt or not self.prompt.strip():
            raise InvalidRequest("Prompt must not be empty.")
        validate_aspect_ratio(self.aspect_ratio)
        if self.kind is RequestKind.REFERENCE_EDIT and not self.reference_images:
            raise InvalidRequest("A reference edit needs at least one reference image.")
        if self.kind is RequestKind.TEXT_TO_IMAGE and self.reference_images:
            raise InvalidRequest("Text-to-image requests take no reference images.")

    @classmethod
    def text(cls, prompt: str, aspect_ratio: str = DEFAULT_ASPECT_RATIO) -> "GenerationRequest":
        return cls(RequestKind.TEXT_TO_IMAGE, prompt, aspect_ratio)

    @classmethod
    def reference(cls, prompt: str, images, aspect_ratio: str = DEFAULT_ASPECT_RATIO) -> "GenerationRequest":
        return cls(RequestKind.REFERENCE_EDIT, prompt, aspect_ratio, tuple(images))
