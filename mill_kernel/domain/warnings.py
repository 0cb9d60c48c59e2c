"""Ledger warnings: soft, per-event or per-key findings attached to results."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum

from mill_kernel.domain.pools import PoolKey
from mill_kernel.exceptions import EventShapeError


class WarningCode(str, Enum):
    MISSING_ENTITY = "MISSING_ENTITY"
    MALFORMED_EVENT = "MALFORMED_EVENT"
    NEGATIVE_POOL = "NEGATIVE_POOL"
    CONTINUITY_BREAK = "CONTINUITY_BREAK"
    POSTED_AFTER_CLEARING = "POSTED_AFTER_CLEARING"


@dataclass(frozen=True, slots=True)
class LedgerWarning:
    """
    A finding that does not abort the computation.

    Callers decide whether to surface these or treat them as soft alerts.
    """

    code: WarningCode
    message: str
    event_id: str | None = None
    key: PoolKey | None = None
    on_date: date | None = None

    @classmethod
    def from_shape_error(
        cls, error: EventShapeError, on_date: date | None = None
    ) -> LedgerWarning:
        return cls(
            code=WarningCode(error.code),
            message=str(error),
            event_id=error.event_id,
            on_date=on_date,
        )
