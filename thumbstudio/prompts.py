"""
Prompt Composer - builds the instruction text sent to image models.

Some models honor aspect ratio only through the prompt, so every
composed prompt states it explicitly, exactly once.
"""

import re

from .models import ASPECT_RATIOS, orientation, validate_aspect_ratio

# ── Directives ────────────────────────────────────────────────────────

STYLE_DIRECTIVE = (
    "Eye-catching YouTube thumbnail composition: one clear focal subject, "
    "bold high-contrast colors, dramatic professional lighting, sharp focus. "
    "High quality, photorealistic, 8k."
)

IDENTITY_DIRECTIVE = (
    "Use the provided image(s) as the base. Preserve the person's face, "
    "facial expression and identity exactly as they appear in the reference; "
    "do NOT alter facial features, expression, age or skin tone. "
    "Keep the overall subject recognizable and integrate ONLY the requested "
    "changes, leaving everything else untouched."
)

DESCRIPTION_PROMPT = (
    "Describe this image in detail, mainly the style and subject: people, "
    "pose, facial expression, clothing, setting, lighting and color palette."
)


_RATIO_MENTION = re.compile(
    r"(?<![\d:])(?:" + "|".join(re.escape(ratio) for ratio in ASPECT_RATIOS) + r")(?![\d:])"
)


def _aspect_instruction(aspect_ratio: str) -> str:
    validate_aspect_ratio(aspect_ratio)
    return f"Aspect ratio: {aspect_ratio} ({orientation(aspect_ratio)} format)."


def _strip_ratio_mentions(text: str) -> str:
    """Drop ratio tokens like '16:9' so the composed prompt states only one."""
    return re.sub(r"\s{2,}", " ", _RATIO_MENTION.sub("", text)).strip()


def compose_text_to_image_prompt(user_prompt: str, aspect_ratio: str) -> str:
    """Prompt for pure text-to-image synthesis."""
    return (
        f"Create a YouTube thumbnail. Scene: {user_prompt.strip()} "
        f"{STYLE_DIRECTIVE} "
        f"{_aspect_instruction(aspect_ratio)}"
    )


def compose_reference_edit_prompt(user_prompt: str, aspect_ratio: str) -> str:
    """Prompt for a direct multimodal edit of the reference image(s)."""
    return (
        f"Edit this image into a YouTube thumbnail. "
        f"{IDENTITY_DIRECTIVE} "
        f"Requested changes: {user_prompt.strip()} "
        f"{STYLE_DIRECTIVE} "
        f"{_aspect_instruction(aspect_ratio)}"
    )


def compose_described_reference_prompt(user_prompt: str, description: str, aspect_ratio: str) -> str:
    """Fold a vision description and the user's instruction into a text-to-image prompt."""
    return (
        f"Create a YouTube thumbnail. "
        f"Reference style/content: {_strip_ratio_mentions(description)} "
        f"Keep the subject's facial expression and identity as described; "
        f"integrate only the requested changes. "
        f"User changes/instruction: {user_prompt.strip()} "
        f"{STYLE_DIRECTIVE} "
        f"{_aspect_instruction(aspect_ratio)}"
    )
