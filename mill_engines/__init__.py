"""
Module: mill_engines
Responsibility:
    Package entrypoint re-exporting the pure calculation engines. This is
    the import surface for mill_services.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May import mill_kernel.domain and mill_config.schema.
    MUST NOT import mill_services, selectors or models.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()`` or ``date.today()``.
    - Decimal-only arithmetic; floats are rejected at the value layer.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Every public engine entry point is wrapped by ``@traced_engine`` and
    emits a MILL_ENGINE_TRACE record with an input fingerprint.
"""

from mill_engines.balance import BalanceBoundary, BalanceResult, balance_as_of
from mill_engines.eligibility import ScreenedEvents, screen_events
from mill_engines.metrics import (
    merge_weighted_average,
    weighted_average_rate,
    yield_percentage,
)
from mill_engines.replay import LedgerDay, LedgerReplay, check_continuity, replay_ledger
from mill_engines.resolver import (
    EventEffect,
    PoolDelta,
    apply_effect,
    conversion_amounts,
    paddy_bags_deducted,
    resolve_effect,
)

__all__ = [
    "BalanceBoundary",
    "BalanceResult",
    "EventEffect",
    "LedgerDay",
    "LedgerReplay",
    "PoolDelta",
    "ScreenedEvents",
    "apply_effect",
    "balance_as_of",
    "check_continuity",
    "conversion_amounts",
    "merge_weighted_average",
    "paddy_bags_deducted",
    "replay_ledger",
    "resolve_effect",
    "screen_events",
    "weighted_average_rate",
    "yield_percentage",
]
