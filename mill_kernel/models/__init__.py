"""ORM models for the mill kernel event store."""

from mill_kernel.models.location import LocationModel, PackagingModel
from mill_kernel.models.outturn import OutturnModel
from mill_kernel.models.stock_event import StockEventModel

__all__ = [
    "LocationModel",
    "OutturnModel",
    "PackagingModel",
    "StockEventModel",
]
