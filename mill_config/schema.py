"""
Milling rules schema (``mill_config.schema``).

Frozen dataclass produced by the loader and passed by value into the
engines. Defaults equal the shipped ``rules.yaml`` so pure engine calls
without a loaded configuration behave like production.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from mill_kernel.domain.values import WeightUnit


@dataclass(frozen=True)
class MillingRules:
    """Configuration governing pool arithmetic and metric rounding."""

    config_id: str = "mill-default"
    version: int = 1
    paddy_bag_yield_quintals: Decimal = Decimal("0.47")
    store_weight_unit: WeightUnit = WeightUnit.STORE_MILLI
    amount_places: int = 2
    warn_on_negative_pools: bool = True
    checksum: str = ""

    def __post_init__(self) -> None:
        if self.paddy_bag_yield_quintals <= 0:
            raise ValueError(
                "paddy_bag_yield_quintals must be positive, got "
                f"{self.paddy_bag_yield_quintals}"
            )
        if self.amount_places < 0:
            raise ValueError(f"amount_places must be >= 0, got {self.amount_places}")
