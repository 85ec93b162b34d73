"""
Response Normalizer - turns backend responses into one image or one text.

Two response shapes come back from the API:
  - image-synthesis (Imagen):   generated_images[].image.image_bytes
  - content generation (Gemini): candidates[0].content.parts[], each
    inline_data (bytes + MIME type) or text, plus a finish_reason

Failures are classified as PolicyBlocked (safety stop, RAI filter,
blocked prompt), GenerationInterrupted (any other abnormal stop) or
NoContent (nothing usable and no reason given).
"""

from .errors import GenerationInterrupted, NoContent, PolicyBlocked
from .models import DescriptionText, GeneratedImage

NORMAL_FINISH = {"STOP"}
UNSET_FINISH = {"", "FINISH_REASON_UNSPECIFIED", "BLOCKED_REASON_UNSPECIFIED"}
SAFETY_FINISH = {
    "SAFETY",
    "PROHIBITED_CONTENT",
    "BLOCKLIST",
    "SPII",
    "IMAGE_SAFETY",
    "IMAGE_PROHIBITED_CONTENT",
}


def _status_name(value) -> str:
    if value is None:
        return ""
    return str(getattr(value, "value", value)).upper()


def _first_candidate(response):
    candidates = getattr(response, "candidates", None) or []
    return candidates[0] if candidates else None


def _parts(candidate) -> list:
    content = getattr(candidate, "content", None)
    return list(getattr(content, "parts", None) or [])


def _raise_for_missing(response, candidate, wanted: str):
    """Classify a response that lacks the wanted part. Always raises."""
    if candidate is None:
        feedback = getattr(response, "prompt_feedback", None)
        block_reason = _status_name(getattr(feedback, "block_reason", None))
        if block_reason not in UNSET_FINISH:
            raise PolicyBlocked(f"Prompt blocked: {block_reason}")
        raise NoContent(f"Response has no candidates (expected {wanted}).")

    status = _status_name(getattr(candidate, "finish_reason", None))
    if status in UNSET_FINISH or status in NORMAL_FINISH:
        raise NoContent(f"Response has no {wanted} part.")
    if status in SAFETY_FINISH:
        raise PolicyBlocked(f"Finish reason: {status}")
    raise GenerationInterrupted(status)


def image_from_images_response(response) -> GeneratedImage:
    """Image-synthesis shape: first generated image with non-empty bytes."""
    generated = getattr(response, "generated_images", None) or []
    filtered = []
    for entry in generated:
        image = getattr(entry, "image", None)
        data = getattr(image, "image_bytes", None)
        if data:
            return GeneratedImage(data, getattr(image, "mime_type", None) or "image/png")
        reason = getattr(entry, "rai_filtered_reason", None)
        if reason:
            filtered.append(reason)

    if filtered:
        raise PolicyBlocked(f"Filtered: {filtered[0]}")
    raise NoContent("Empty response: no generated image data.")


def image_from_content_response(response) -> GeneratedImage:
    """Content shape: first inline part whose MIME type is image/*."""
    candidate = _first_candidate(response)
    for part in _parts(candidate):
        blob = getattr(part, "inline_data", None)
        if blob is None:
            continue
        mime_type = getattr(blob, "mime_type", None) or ""
        if mime_type.startswith("image/") and blob.data:
            return GeneratedImage(blob.data, mime_type)
    _raise_for_missing(response, candidate, "image")


def text_from_content_response(response) -> DescriptionText:
    """Content shape: first non-empty text part (vision description calls)."""
    candidate = _first_candidate(response)
    for part in _parts(candidate):
        text = getattr(part, "text", None)
        if text and text.strip():
            return DescriptionText(text.strip())
    _raise_for_missing(response, candidate, "text")


def extract_image(response) -> GeneratedImage:
    """Dispatch on response shape."""
    if hasattr(response, "generated_images"):
        return image_from_images_response(response)
    return image_from_content_response(response)
