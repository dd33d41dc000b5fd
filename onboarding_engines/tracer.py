"""
onboarding_engines.tracer -- Engine invocation tracer emitting ONBOARDING_ENGINE_TRACE.

Responsibility:
    Wrap pure engine calls (requirement evaluation, step derivation) with
    one structured trace record: engine name and version, a fingerprint
    of selected inputs, and duration.

Architecture position:
    Engines -- infrastructure support for the pure layer.  Emits a log
    record only; uses its own logger under the ``onboarding_kernel``
    namespace so kernel logging configuration applies to it.

Invariants enforced:
    - The fingerprint is deterministic: dict keys are sorted, enums are
      rendered by value, dataclasses by their fields.  SHA-256, first 16
      hex chars.
    - The decorator never mutates inputs.

Usage:
    @traced_engine("requirements", "1.0", fingerprint_fields=("profile",))
    def evaluate_requirements(profile, payment_methods, documents):
        ...
"""

from __future__ import annotations

import dataclasses
import functools
import hashlib
import inspect
import logging
import time
from collections.abc import Callable
from enum import Enum
from typing import Any

_logger = logging.getLogger("onboarding_kernel.engines.tracer")


def _canonicalize(value: Any) -> str:
    """Stable string form of ``value`` for fingerprinting."""
    if value is None:
        return "null"
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, (bool, int, float)):
        return str(value)
    if isinstance(value, str):
        return value
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return _canonicalize({f.name: getattr(value, f.name) for f in dataclasses.fields(value)})
    if isinstance(value, dict):
        items = sorted(value.items(), key=lambda kv: str(kv[0]))
        return "{" + ",".join(f"{k}:{_canonicalize(v)}" for k, v in items) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_canonicalize(v) for v in value) + "]"
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    arguments: dict[str, Any],
) -> str:
    """SHA-256 prefix over the named arguments.  Missing ones count as "null"."""
    parts = [f"{name}={_canonicalize(arguments.get(name))}" for name in fingerprint_fields]
    canonical = "|".join(parts)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """Decorator that emits ONBOARDING_ENGINE_TRACE for a pure engine call.

    Fingerprint fields are matched against the bound call arguments, so
    they may be passed positionally or by keyword.
    """

    def decorator(func: Callable) -> Callable:
        signature = inspect.signature(func)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fp = ""
            if fingerprint_fields:
                bound = signature.bind_partial(*args, **kwargs)
                fp = compute_input_fingerprint(fingerprint_fields, dict(bound.arguments))

            t0 = time.monotonic()
            result = func(*args, **kwargs)
            duration_ms = round((time.monotonic() - t0) * 1000, 2)

            _logger.info(
                "ONBOARDING_ENGINE_TRACE",
                extra={
                    "trace_type": "ONBOARDING_ENGINE_TRACE",
                    "engine_name": engine_name,
                    "engine_version": engine_version,
                    "input_fingerprint": fp,
                    "duration_ms": duration_ms,
                    "function": func.__qualname__,
                },
            )
            return result

        return wrapper

    return decorator
