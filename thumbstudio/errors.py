"""
Error taxonomy for thumbnail generation.

Every failure that leaves the library is one of these classes. Backend
exceptions are classified exactly once, by classify_error(), at the
adapter boundary; downstream code dispatches on the class, never on
message text.
"""

import httpx
from google.genai import errors as genai_errors


class ThumbnailError(Exception):
    """Base class. `user_message` is safe to show, `detail` is diagnostic."""

    user_message = "Image generation failed."
    retryable = False

    def __init__(self, detail: str = ""):
        self.detail = detail
        super().__init__(f"{self.user_message} {detail}".strip() if detail else self.user_message)


class ConfigurationError(ThumbnailError):
    user_message = "Configuration error."


class InvalidRequest(ThumbnailError, ValueError):
    user_message = "Invalid request."


class QuotaExceeded(ThumbnailError):
    user_message = "The image service is rate limiting us. Try again shortly."
    retryable = True


class PolicyBlocked(ThumbnailError):
    user_message = (
        "The request was blocked by the content safety filter. "
        "Try softening the prompt."
    )


class ModelUnavailable(ThumbnailError):
    user_message = "Model not available for this API key."

    def __init__(self, detail: str = "", model: str = ""):
        self.model = model
        super().__init__(detail)


class NoBackendAvailable(ThumbnailError):
    user_message = "No image backend could process the request."

    def __init__(self, detail: str = "", last_error: Exception | None = None):
        self.last_error = last_error
        if last_error is not None:
            detail = f"{detail} Last error: {last_error}".strip()
        super().__init__(detail)


class MalformedResponse(ThumbnailError):
    user_message = "The image service returned an unexpected response."


class NoContent(MalformedResponse):
    user_message = "The image service returned no content."


class GenerationInterrupted(ThumbnailError):
    user_message = "Generation stopped before producing a result."

    def __init__(self, status: str, detail: str = ""):
        self.status = status
        super().__init__(detail or f"Finish reason: {status}")


class TransportError(ThumbnailError):
    user_message = "Could not reach the image service."

    def __init__(self, detail: str = "", retryable: bool = False, code: int | None = None):
        self.retryable = retryable
        self.code = code
        super().__init__(detail)


class GenerationCancelled(ThumbnailError):
    user_message = "Generation cancelled."


QUOTA_STATUSES = {"RESOURCE_EXHAUSTED"}
UNAVAILABLE_STATUSES = {"NOT_FOUND", "PERMISSION_DENIED"}


def classify_error(exc: Exception, model: str = "") -> ThumbnailError:
    """Map a backend or transport exception onto the taxonomy."""
    if isinstance(exc, ThumbnailError):
        return exc

    prefix = f"[{model}] " if model else ""

    if isinstance(exc, genai_errors.APIError):
        code = exc.code
        status = (exc.status or "").upper()
        detail = f"{prefix}{code} {status}: {exc.message or ''}".strip()
        if code == 429 or status in QUOTA_STATUSES:
            return QuotaExceeded(detail)
        if code in (403, 404) or status in UNAVAILABLE_STATUSES:
            return ModelUnavailable(detail, model=model)
        if isinstance(exc, genai_errors.ServerError) or (code is not None and code >= 500):
            return TransportError(detail, retryable=True, code=code)
        return TransportError(detail, retryable=False, code=code)

    if isinstance(exc, httpx.TransportError):
        return TransportError(f"{prefix}{type(exc).__name__}: {exc}", retryable=True)

    return TransportError(f"{prefix}{type(exc).__name__}: {exc}", retryable=False)
