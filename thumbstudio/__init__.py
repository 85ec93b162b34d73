"""
Thumbnail Studio - AI thumbnail generation and iterative editing with Gemini.

Modules:
  config        - API key, model candidate table, retry settings
  errors        - error taxonomy and backend error classification
  models        - aspect ratios, requests, reference and generated images
  backoff       - bounded retry loop with capped, jittered delays
  selector      - ordered fallback across candidate models
  prompts       - text-to-image and reference-edit prompt composition
  normalizer    - image / text extraction from backend responses
  backend       - google-genai adapter (Imagen and Gemini image models)
  orchestrator  - generate_image_with_text / generate_image_with_reference
  reference     - reference photo crop to the selected aspect ratio
  session       - editing session with bounded history
"""

from .errors import (
    ConfigurationError,
    GenerationCancelled,
    GenerationInterrupted,
    InvalidRequest,
    MalformedResponse,
    ModelUnavailable,
    NoBackendAvailable,
    NoContent,
    PolicyBlocked,
    QuotaExceeded,
    ThumbnailError,
    TransportError,
)
from .orchestrator import ThumbnailGenerator, generate_image_with_reference, generate_image_with_text
