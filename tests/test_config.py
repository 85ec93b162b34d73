import json

import pytest

from thumbstudio.config import DEFAULT_MODELS, ReferenceStrategy, Role, load_settings
from thumbstudio.errors import ConfigurationError


def test_missing_api_key_is_fatal():
    with pytest.raises(ConfigurationError):
        load_settings({})


def test_defaults():
    settings = load_settings({"GEMINI_API_KEY": "k"})
    assert settings.api_key == "k"
    assert settings.reference_strategy is ReferenceStrategy.DIRECT
    assert settings.max_attempts == 3
    assert settings.models[Role.IMAGE_SYNTHESIS] == DEFAULT_MODELS[Role.IMAGE_SYNTHESIS]


def test_api_key_fallback():
    assert load_settings({"API_KEY": "legacy"}).api_key == "legacy"


def test_candidates_keep_priority_order():
    settings = load_settings({"GEMINI_API_KEY": "k", "THUMBNAIL_VISION_MODELS": "v1, v2 ,,v3"})
    candidates = settings.candidates(Role.VISION_DESCRIBE)
    assert [c.identifier for c in candidates] == ["v1", "v2", "v3"]
    assert all(c.role is Role.VISION_DESCRIBE for c in candidates)


def test_models_file_and_env_override(tmp_path):
    path = tmp_path / "models.json"
    path.write_text(json.dumps({
        "image_synthesis": ["file-imagen"],
        "image_edit": ["file-edit"],
    }), encoding="utf-8")

    settings = load_settings({
        "GEMINI_API_KEY": "k",
        "THUMBNAIL_MODELS_FILE": str(path),
        "THUMBNAIL_EDIT_MODELS": "env-edit",
    })

    assert settings.models[Role.IMAGE_SYNTHESIS] == ("file-imagen",)
    assert settings.models[Role.IMAGE_EDIT] == ("env-edit",)
    assert settings.models[Role.VISION_DESCRIBE] == DEFAULT_MODELS[Role.VISION_DESCRIBE]


def test_bad_models_file(tmp_path):
    path = tmp_path / "models.json"
    path.write_text(json.dumps({"image_edit": "not-a-list"}), encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_settings({"GEMINI_API_KEY": "k", "THUMBNAIL_MODELS_FILE": str(path)})


def test_strategy_and_retry_knobs():
    settings = load_settings({
        "GEMINI_API_KEY": "k",
        "THUMBNAIL_REFERENCE_STRATEGY": "Describe",
        "THUMBNAIL_MAX_ATTEMPTS": "5",
        "THUMBNAIL_RETRY_BASE_MS": "100",
        "THUMBNAIL_RETRY_MAX_MS": "800",
        "THUMBNAIL_RETRY_JITTER_MS": "0",
    })
    assert settings.reference_strategy is ReferenceStrategy.DESCRIBE
    assert (settings.max_attempts, settings.retry_base_ms, settings.retry_max_ms, settings.retry_jitter_ms) == (5, 100, 800, 0)


@pytest.mark.parametrize("env", [
    {"THUMBNAIL_REFERENCE_STRATEGY": "magic"},
    {"THUMBNAIL_MAX_ATTEMPTS": "0"},
    {"THUMBNAIL_MAX_ATTEMPTS": "three"},
    {"THUMBNAIL_RETRY_BASE_MS": "5000", "THUMBNAIL_RETRY_MAX_MS": "10"},
])
def test_invalid_values(env):
    with pytest.raises(ConfigurationError):
        load_settings({"GEMINI_API_KEY": "k", **env})


def test_settings_are_immutable():
    settings = load_settings({"GEMINI_API_KEY": "k"})
    with pytest.raises(Exception):
        settings.max_attempts = 10
    with pytest.raises(TypeError):
        settings.models[Role.IMAGE_EDIT] = ("x",)
