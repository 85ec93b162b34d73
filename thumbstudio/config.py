"""
Configuration - API key, model candidate table and retry constants.

Resolved once from the environment (and a local .env file) into an
immutable Settings object. The model table maps each role to its
candidates in priority order; swap models by editing the environment
or a JSON file, never the call logic.

Environment:
  GEMINI_API_KEY                 required (API_KEY accepted as fallback)
  THUMBNAIL_IMAGE_MODELS         comma list, text-to-image candidates
  THUMBNAIL_EDIT_MODELS          comma list, multimodal edit candidates
  THUMBNAIL_VISION_MODELS        comma list, image description candidates
  THUMBNAIL_MODELS_FILE          JSON file with the same three lists
  THUMBNAIL_REFERENCE_STRATEGY   "direct" (default) or "describe"
  THUMBNAIL_MAX_ATTEMPTS         default 3
  THUMBNAIL_RETRY_BASE_MS        default 20000
  THUMBNAIL_RETRY_MAX_MS         default 60000
  THUMBNAIL_RETRY_JITTER_MS      default 1000
"""

import json
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

from dotenv import load_dotenv

from .errors import ConfigurationError


class Role(str, Enum):
    IMAGE_SYNTHESIS = "image_synthesis"
    IMAGE_EDIT = "image_edit"
    VISION_DESCRIBE = "vision_describe"


class ReferenceStrategy(str, Enum):
    DIRECT = "direct"
    DESCRIBE = "describe"


@dataclass(frozen=True)
class ModelCandidate:
    identifier: str
    role: Role


# ── Default model table ───────────────────────────────────────────────

DEFAULT_MODELS = {
    Role.IMAGE_SYNTHESIS: (
        "imagen-4.0-generate-001",
        "imagen-3.0-generate-002",
        "gemini-2.5-flash-image",
    ),
    Role.IMAGE_EDIT: (
        "gemini-2.5-flash-image",
        "gemini-2.0-flash-preview-image-generation",
    ),
    Role.VISION_DESCRIBE: (
        "gemini-2.5-flash",
        "gemini-2.0-flash",
        "gemini-1.5-flash",
    ),
}

MODEL_ENV_VARS = {
    Role.IMAGE_SYNTHESIS: "THUMBNAIL_IMAGE_MODELS",
    Role.IMAGE_EDIT: "THUMBNAIL_EDIT_MODELS",
    Role.VISION_DESCRIBE: "THUMBNAIL_VISION_MODELS",
}


@dataclass(frozen=True)
class Settings:
    api_key: str
    models: Mapping[Role, tuple] = field(default_factory=lambda: MappingProxyType(dict(DEFAULT_MODELS)))
    reference_strategy: ReferenceStrategy = ReferenceStrategy.DIRECT
    max_attempts: int = 3
    retry_base_ms: int = 20_000
    retry_max_ms: int = 60_000
    retry_jitter_ms: int = 1_000
    output_mime_type: str = "image/png"
    safety_threshold: str = "BLOCK_ONLY_HIGH"

    def candidates(self, role: Role) -> tuple:
        """Ordered ModelCandidate tuple for a role."""
        return tuple(ModelCandidate(model, role) for model in self.models.get(role, ()))


def _split_models(value: str) -> tuple:
    return tuple(m.strip() for m in value.split(",") if m.strip())


def _load_models_file(path: Path) -> dict:
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Cannot read model table {path}: {e}") from e

    models = {}
    for role in Role:
        entries = raw.get(role.value)
        if entries is None:
            continue
        if not isinstance(entries, list) or not all(isinstance(m, str) for m in entries):
            raise ConfigurationError(f"{path}: '{role.value}' must be a list of model names")
        models[role] = tuple(m.strip() for m in entries if m.strip())
    return models


def _int_env(env: Mapping[str, str], name: str, default: int, minimum: int) -> int:
    value = env.get(name)
    if value is None or value == "":
        return default
    try:
        number = int(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    if number < minimum:
        raise ConfigurationError(f"{name} must be >= {minimum}, got {number}")
    return number


def load_settings(env: Mapping[str, str] | None = None) -> Settings:
    """
    Build Settings from the environment.

    With env=None the process environment is used after loading .env.
    Raises ConfigurationError when the API key is missing or a value is
    invalid.
    """
    if env is None:
        load_dotenv()
        env = os.environ

    api_key = env.get("GEMINI_API_KEY") or env.get("API_KEY")
    if not api_key:
        raise ConfigurationError("GEMINI_API_KEY environment variable not set")

    models = dict(DEFAULT_MODELS)
    models_file = env.get("THUMBNAIL_MODELS_FILE")
    if models_file:
        models.update(_load_models_file(Path(models_file)))
    for role, var in MODEL_ENV_VARS.items():
        if env.get(var):
            models[role] = _split_models(env[var])

    strategy_value = (env.get("THUMBNAIL_REFERENCE_STRATEGY") or "direct").strip().lower()
    try:
        strategy = ReferenceStrategy(strategy_value)
    except ValueError:
        raise ConfigurationError(
            f"THUMBNAIL_REFERENCE_STRATEGY must be 'direct' or 'describe', got {strategy_value!r}"
        )

    base_ms = _int_env(env, "THUMBNAIL_RETRY_BASE_MS", 20_000, 0)
    max_ms = _int_env(env, "THUMBNAIL_RETRY_MAX_MS", 60_000, 0)
    if max_ms < base_ms:
        raise ConfigurationError("THUMBNAIL_RETRY_MAX_MS must be >= THUMBNAIL_RETRY_BASE_MS")

    return Settings(
        api_key=api_key,
        models=MappingProxyType(models),
        reference_strategy=strategy,
        max_attempts=_int_env(env, "THUMBNAIL_MAX_ATTEMPTS", 3, 1),
        retry_base_ms=base_ms,
        retry_max_ms=max_ms,
        retry_jitter_ms=_int_env(env, "THUMBNAIL_RETRY_JITTER_MS", 1_000, 0),
    )
