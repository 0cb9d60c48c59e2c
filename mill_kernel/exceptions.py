"""
Typed exception hierarchy for the mill kernel.

Every error carries a machine-readable ``code`` class attribute and the
structured data needed to act on it, so callers catch by type and never
parse messages:

    try:
        service.clear_outturn(batch_id, clear_date, actor_id)
    except NothingToClearError as e:
        api_response(code=e.code, batch=e.batch_id, remaining=e.remaining_bags)

Hierarchy:

    MillKernelError (base)
    |
    +-- EventShapeError              (per-event, excluded with a warning)
    |   +-- MissingEntityError
    |   +-- MalformedEventError
    |
    +-- UnsupportedEventKindError    (aborts the whole replay)
    |
    +-- BatchError
    |   +-- BatchNotFoundError
    |   +-- BatchAlreadyClearedError
    |   +-- NothingToClearError
    |
    +-- ImmutabilityViolationError

Shape errors are the only ones the engines catch. They are turned into
``LedgerWarning`` values and the offending event is excluded; everything
else propagates to the caller.
"""

from typing import Any


class MillKernelError(Exception):
    """Base exception for all mill kernel errors."""

    code: str = "MILL_KERNEL_ERROR"


# Event shape errors


class EventShapeError(MillKernelError):
    """An event is structurally invalid for the ledger view being computed."""

    code: str = "EVENT_SHAPE_ERROR"

    def __init__(self, event_id: Any, message: str):
        self.event_id = str(event_id)
        super().__init__(message)


class MissingEntityError(EventShapeError):
    """An event references a location, batch or packaging that cannot be resolved."""

    code: str = "MISSING_ENTITY"

    def __init__(self, event_id: Any, entity_type: str, entity_id: Any):
        self.entity_type = entity_type
        self.entity_id = None if entity_id is None else str(entity_id)
        if entity_id is None:
            detail = f"missing required {entity_type} reference"
        else:
            detail = f"unknown {entity_type} {entity_id}"
        super().__init__(event_id, f"Event {event_id}: {detail}")


class MalformedEventError(EventShapeError):
    """An event lacks a field every event of its kind must carry."""

    code: str = "MALFORMED_EVENT"

    def __init__(self, event_id: Any, field: str):
        self.field = field
        super().__init__(event_id, f"Event {event_id}: missing {field}")


class UnsupportedEventKindError(MillKernelError):
    """
    An event kind outside the closed set was read from the store.

    Indicates a schema/version mismatch between the store and the engine;
    skipping the event would corrupt totals, so the computation aborts.
    """

    code: str = "UNSUPPORTED_EVENT_KIND"

    def __init__(self, kind: Any, event_id: Any = None):
        self.kind = str(kind)
        self.event_id = None if event_id is None else str(event_id)
        super().__init__(
            f"Unsupported event kind {kind!r}"
            + (f" on event {event_id}" if event_id is not None else "")
        )


# Batch (outturn) errors


class BatchError(MillKernelError):
    """Base exception for batch lifecycle errors."""

    code: str = "BATCH_ERROR"


class BatchNotFoundError(BatchError):
    """Batch does not exist."""

    code: str = "BATCH_NOT_FOUND"

    def __init__(self, batch_id: Any):
        self.batch_id = str(batch_id)
        super().__init__(f"Batch not found: {batch_id}")


class BatchAlreadyClearedError(BatchError):
    """Batch is already cleared; clearing is terminal."""

    code: str = "BATCH_ALREADY_CLEARED"

    def __init__(self, batch_id: Any, cleared_at: Any = None):
        self.batch_id = str(batch_id)
        self.cleared_at = None if cleared_at is None else str(cleared_at)
        super().__init__(f"Batch {batch_id} is already cleared")


class NothingToClearError(BatchError):
    """Batch has no remaining tagged bags to clear."""

    code: str = "NOTHING_TO_CLEAR"

    def __init__(self, batch_id: Any, remaining_bags: int):
        self.batch_id = str(batch_id)
        self.remaining_bags = remaining_bags
        super().__init__(
            f"No remaining bags to clear for batch {batch_id} "
            f"(remaining: {remaining_bags})"
        )


# Append-only store


class ImmutabilityViolationError(MillKernelError):
    """Attempted to modify an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
