"""Read-only selectors over the event store."""

from mill_kernel.selectors.event_selector import StockEventSelector

__all__ = ["StockEventSelector"]
