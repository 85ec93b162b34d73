"""
Model Selector - tries candidate models strictly in priority order.

  ModelUnavailable (not found / no access)  -> next candidate, no delay
  QuotaExceeded                             -> propagate to the backoff loop
  anything else                             -> propagate, terminal for this call

Quota errors do not advance to the next candidate: throttling is usually
account-wide, so the whole operation waits and starts again from the
first candidate.
"""

import logging
from typing import Callable, Iterable, Tuple, Type, TypeVar

from .config import ModelCandidate
from .errors import ModelUnavailable, NoBackendAvailable

logger = logging.getLogger(__name__)

T = TypeVar("T")


def call_with_fallback(
    candidates: Iterable[ModelCandidate],
    operation: Callable[[str], T],
    advance_on: Tuple[Type[Exception], ...] = (ModelUnavailable,),
) -> T:
    """Return the first successful operation(model_id) over the candidates."""
    last_error = None
    tried = []
    for candidate in candidates:
        tried.append(candidate.identifier)
        try:
            logger.info("Trying model %s (%s)", candidate.identifier, candidate.role.value)
            return operation(candidate.identifier)
        except advance_on as e:
            logger.warning("Model %s failed, trying next: %s", candidate.identifier, e)
            last_error = e

    if not tried:
        raise NoBackendAvailable("No candidate models configured.")
    raise NoBackendAvailable(f"Tried: {', '.join(tried)}.", last_error=last_error)
