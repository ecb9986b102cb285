"""
recovery_engines.tracer -- RECOVERY_ENGINE_TRACE for per-unit engine calls.

Responsibility:
    ``@traced_engine`` wraps a pure engine method and logs one trace record
    per call: engine name and version, the trgid of the unit being computed,
    a fingerprint of the selected inputs, and duration_ms.  Two traces with
    the same fingerprint and version must have produced the same result.

Architecture position:
    Engines -- emits a log record only; engines stay free of I/O.

Invariants enforced:
    - Inputs are resolved against the wrapped signature, so positional and
      keyword calls fingerprint identically.
    - Fingerprints are canonical: mapping keys are sorted, Decimals are
      normalized (``6.0`` and ``6.00`` hash alike), enums hash by value.
    - Nothing is computed when the trace level is disabled.

The default level is DEBUG because the fee engine runs once per ingested
sales row.
"""

from __future__ import annotations

import functools
import hashlib
import inspect
import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import fields, is_dataclass
from decimal import Decimal
from enum import Enum
from typing import Any

_logger = logging.getLogger("recovery_kernel.engines.tracer")


def _canonicalize(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, Decimal):
        return str(value.normalize())
    if is_dataclass(value) and not isinstance(value, type):
        return _canonicalize({f.name: getattr(value, f.name) for f in fields(value)})
    if isinstance(value, Mapping):
        items = sorted((_canonicalize(k), _canonicalize(v)) for k, v in value.items())
        return "{" + ",".join(f"{k}:{v}" for k, v in items) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_canonicalize(v) for v in value) + "]"
    return str(value)


def compute_input_fingerprint(inputs: Mapping[str, Any]) -> str:
    """16-hex-char SHA-256 prefix over ``name=value`` pairs in the given order."""
    text = "|".join(f"{name}={_canonicalize(value)}" for name, value in inputs.items())
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
    level: int = logging.DEBUG,
) -> Callable:
    """Decorator that emits RECOVERY_ENGINE_TRACE around a pure engine call.

    ``fingerprint_fields`` names parameters of the wrapped function.  The
    first one carrying a ``trgid`` attribute supplies the logged trgid.
    """

    def decorator(func: Callable) -> Callable:
        signature = inspect.signature(func)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            if not _logger.isEnabledFor(level):
                return func(*args, **kwargs)

            bound = signature.bind(*args, **kwargs)
            inputs = {name: bound.arguments.get(name) for name in fingerprint_fields}
            trgid = next(
                (getattr(v, "trgid") for v in inputs.values() if hasattr(v, "trgid")),
                None,
            )

            started = time.monotonic()
            result = func(*args, **kwargs)
            duration_ms = round((time.monotonic() - started) * 1000, 3)

            _logger.log(
                level,
                "RECOVERY_ENGINE_TRACE",
                extra={
                    "trace_type": "RECOVERY_ENGINE_TRACE",
                    "engine_name": engine_name,
                    "engine_version": engine_version,
                    "function": func.__qualname__,
                    "trgid": trgid,
                    "input_fingerprint": compute_input_fingerprint(inputs) if inputs else "",
                    "duration_ms": duration_ms,
                },
            )
            return result

        return wrapper

    return decorator
