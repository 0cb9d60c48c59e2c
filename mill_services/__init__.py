"""
mill_services -- orchestration over selectors and engines.

``StockLedgerService`` is the read-side library boundary (replay, balance,
average rate, yield). ``OutturnService`` is the batch write path (clearing
and cached metric refresh).
"""

from mill_services.outturn_service import ClearingResult, OutturnService
from mill_services.stock_ledger_service import StockLedgerService

__all__ = ["ClearingResult", "OutturnService", "StockLedgerService"]
