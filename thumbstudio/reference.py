"""
Reference Image Processor - crops an uploaded photo to the target ratio.

Center crop to the selected aspect ratio, then resize to that ratio's
canonical thumbnail size. JPEG uploads stay JPEG, everything else is
re-encoded as PNG.
"""

import io

from PIL import Image, UnidentifiedImageError

from .errors import InvalidRequest
from .models import ASPECT_RATIOS, ReferenceImage, validate_aspect_ratio

JPEG_QUALITY = 95


def crop_image(image: Image.Image, aspect_ratio: str) -> Image.Image:
    """Center-crop and resize a PIL image to the ratio's canonical size."""
    target_w, target_h = ASPECT_RATIOS[validate_aspect_ratio(aspect_ratio)]
    target_ratio = target_w / target_h

    img_w, img_h = image.size
    src_w, src_h = float(img_w), float(img_h)
    src_x = src_y = 0.0

    current_ratio = img_w / img_h
    if current_ratio > target_ratio:
        # Wider than target: crop the sides
        src_w = img_h * target_ratio
        src_x = (img_w - src_w) / 2.0
    elif current_ratio < target_ratio:
        # Taller than target: crop top and bottom
        src_h = img_w / target_ratio
        src_y = (img_h - src_h) / 2.0

    cropped = image.crop((
        int(src_x), int(src_y),
        int(round(src_x + src_w)), int(round(src_y + src_h)),
    ))
    return cropped.resize((target_w, target_h), Image.Resampling.LANCZOS)


def crop_to_aspect_ratio(image_bytes: bytes, aspect_ratio: str) -> ReferenceImage:
    """Crop raw image bytes; returns the encoded result with its MIME type."""
    try:
        image = Image.open(io.BytesIO(image_bytes))
        image.load()
    except (UnidentifiedImageError, OSError) as e:
        raise InvalidRequest(f"Could not read reference image: {e}") from e

    is_jpeg = image.format == "JPEG"
    result = crop_image(image, aspect_ratio)

    buffer = io.BytesIO()
    if is_jpeg:
        result.convert("RGB").save(buffer, format="JPEG", quality=JPEG_QUALITY)
        mime_type = "image/jpeg"
    else:
        if result.mode not in ("RGB", "RGBA", "L", "LA"):
            result = result.convert("RGBA")
        result.save(buffer, format="PNG")
        mime_type = "image/png"
    return ReferenceImage(buffer.getvalue(), mime_type)

