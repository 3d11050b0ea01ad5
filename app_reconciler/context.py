"""Tracing of nested reconcile steps for debug logging."""

import contextvars
from contextlib import contextmanager
import logging
from time import perf_counter
from typing import Generator


_LOGGER = logging.getLogger(__name__)

__all__ = ["trace_context", "current_trace"]


_steps: contextvars.ContextVar[tuple[str, ...]] = contextvars.ContextVar(
    "steps", default=()
)


def current_trace() -> str:
    """Return the label of the step currently running, or an empty string."""
    return " > ".join(_steps.get())


@contextmanager
def trace_context(step: str) -> Generator[None, None, None]:
    """Log entry to and exit from a step, with its duration.

    Steps nest, so the label of a provider running inside a pass reads
    `reconcile app/env > kafka`.
    """
    token = _steps.set(_steps.get() + (step,))
    label = current_trace()
    start = perf_counter()
    _LOGGER.debug("[Trace] > %s", label)
    try:
        yield
    except Exception as err:
        _LOGGER.debug("[Trace] ! %s failed: %s", label, err)
        raise
    finally:
        _steps.reset(token)
        _LOGGER.debug("[Trace] < %s (%0.2fs)", label, perf_counter() - start)
