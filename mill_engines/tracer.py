"""
Engine tracer -- one MILL_ENGINE_TRACE record per engine call.

Responsibility:
    ``@traced_engine`` wraps a pure engine function and, after it returns,
    logs the engine name and version, a fingerprint of the chosen inputs
    and the wall time spent. Two calls over the same events, dates and
    rules produce the same fingerprint, which lets a ledger figure be
    matched to the exact inputs that produced it.

Architecture position:
    Engines -- infrastructure support. Reads arguments, writes one log
    record, nothing else.

Invariants enforced:
    - Fingerprints are stable across processes: mappings are hashed in
      sorted key order, dataclasses field by field, enums by value.
    - Fingerprinted arguments passed as one-shot iterators are materialized
      into lists before the call; the engine receives the list.
    - An engine that raises emits no trace.

Failure modes:
    - A fingerprint field the call does not bind is hashed as "null".
"""

from __future__ import annotations

import dataclasses
import functools
import hashlib
import inspect
import time
from collections.abc import Callable, Iterable, Iterator, Mapping
from datetime import date, datetime
from enum import Enum
from typing import Any

from mill_kernel.logging_config import get_logger

logger = get_logger("engines.tracer")

FINGERPRINT_LENGTH = 16


def _canonicalize(value: Any) -> str:
    """Stable text form of an engine argument."""
    if value is None:
        return "null"
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, str):
        return value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        body = ",".join(
            f"{f.name}:{_canonicalize(getattr(value, f.name))}"
            for f in dataclasses.fields(value)
        )
        return f"{type(value).__name__}({body})"
    if isinstance(value, Mapping):
        pairs = sorted((_canonicalize(k), _canonicalize(v)) for k, v in value.items())
        return "{" + ",".join(f"{k}:{v}" for k, v in pairs) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_canonicalize(v) for v in value) + "]"
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: Iterable[str],
    arguments: Mapping[str, Any],
) -> str:
    """Truncated SHA-256 over ``name=value`` for each named argument."""
    digest = hashlib.sha256()
    for i, name in enumerate(fingerprint_fields):
        if i:
            digest.update(b"|")
        digest.update(f"{name}={_canonicalize(arguments.get(name))}".encode())
    return digest.hexdigest()[:FINGERPRINT_LENGTH]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """
    Emit MILL_ENGINE_TRACE around an engine function.

    ``fingerprint_fields`` names parameters of the wrapped function; they
    are matched whether the caller passes them positionally or by keyword.
    """

    def decorator(func: Callable) -> Callable:
        signature = inspect.signature(func)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            bound = signature.bind_partial(*args, **kwargs)
            bound.apply_defaults()
            for name in fingerprint_fields:
                if isinstance(bound.arguments.get(name), Iterator):
                    bound.arguments[name] = list(bound.arguments[name])

            fingerprint = (
                compute_input_fingerprint(fingerprint_fields, bound.arguments)
                if fingerprint_fields
                else ""
            )

            started = time.monotonic()
            result = func(*bound.args, **bound.kwargs)
            elapsed_ms = round((time.monotonic() - started) * 1000, 2)

            logger.info(
                "MILL_ENGINE_TRACE",
                extra={
                    "trace_type": "MILL_ENGINE_TRACE",
                    "engine_name": engine_name,
                    "engine_version": engine_version,
                    "input_fingerprint": fingerprint,
                    "duration_ms": elapsed_ms,
                    "function": func.__qualname__,
                },
            )
            return result

        return wrapper

    return decorator
