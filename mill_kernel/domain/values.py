"""
Values -- Immutable stock quantities and unit normalization.

Responsibility:
    Provides the value types every pool computation runs on: StockQuantity
    (bags + quintals) and WeightUnit, plus the two numeric helpers shared by
    the resolver and the metrics (bags-to-quintals and round-half-up).

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Weights are Decimal quintals inside the kernel. Store units are
      normalized exactly once, at the selector boundary, via WeightUnit.
    - Floats never enter pool arithmetic (rejected at construction).

Failure modes:
    - TypeError on construction with a float weight or non-integral bags.
    - ValueError on construction with an unparseable weight.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum

_QUINTAL_KG = Decimal("100")


class WeightUnit(str, Enum):
    """Units weights may be stored in, relative to one quintal."""

    KG = "kg"
    QUINTAL = "quintal"
    STORE_MILLI = "store_milli"  # historical store unit: 1000 = 1 quintal

    @property
    def per_quintal(self) -> Decimal:
        return _UNITS_PER_QUINTAL[self]

    def to_quintals(self, value: Decimal | int | str) -> Decimal:
        """Normalize a stored weight in this unit to quintals."""
        return _to_decimal(value) / self.per_quintal


_UNITS_PER_QUINTAL: dict[WeightUnit, Decimal] = {
    WeightUnit.KG: Decimal("100"),
    WeightUnit.QUINTAL: Decimal("1"),
    WeightUnit.STORE_MILLI: Decimal("1000"),
}


def _to_decimal(value: Decimal | int | str) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        raise TypeError(f"Float weights are not accepted: {value!r}")
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"Invalid weight value: {value!r}") from e


def bags_to_quintals(bags: int, kg_per_bag: Decimal | int | str) -> Decimal:
    """Weight in quintals of ``bags`` containers of ``kg_per_bag`` each."""
    return Decimal(bags) * _to_decimal(kg_per_bag) / _QUINTAL_KG


def kg_to_quintals(kg: Decimal | int | str) -> Decimal:
    return _to_decimal(kg) / _QUINTAL_KG


def round_half_up(value: Decimal, places: int = 0) -> Decimal:
    """Round ``value`` half-up to ``places`` decimal places."""
    return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


@dataclass(frozen=True, slots=True)
class StockQuantity:
    """
    Amount of stock in a pool or carried by an event.

    Contract:
        Pairs an integer bag count with a Decimal weight in quintals. The two
        move together but independently: a consumption may deduct bags at a
        different ratio than the weight it produced.

    Guarantees:
        - Immutable and hashable (frozen dataclass with slots)
        - bags is always int, weight is always Decimal
        - Negative values are allowed; pools may legitimately go negative

    Non-goals:
        - Does NOT carry a unit; weight is quintals by construction
    """

    bags: int
    weight: Decimal

    def __post_init__(self) -> None:
        if isinstance(self.bags, bool) or not isinstance(self.bags, int):
            raise TypeError(f"Bag count must be an integer: {self.bags!r}")
        object.__setattr__(self, "weight", _to_decimal(self.weight))

    @classmethod
    def of(cls, bags: int, weight: Decimal | int | str) -> StockQuantity:
        """Factory method for creating StockQuantity."""
        return cls(bags=bags, weight=_to_decimal(weight))

    @classmethod
    def zero(cls) -> StockQuantity:
        return cls(bags=0, weight=Decimal("0"))

    @property
    def is_zero(self) -> bool:
        return self.bags == 0 and self.weight == 0

    @property
    def is_negative(self) -> bool:
        """True when either component is below zero."""
        return self.bags < 0 or self.weight < 0

    def __add__(self, other: StockQuantity) -> StockQuantity:
        if not isinstance(other, StockQuantity):
            return NotImplemented
        return StockQuantity(self.bags + other.bags, self.weight + other.weight)

    def __sub__(self, other: StockQuantity) -> StockQuantity:
        if not isinstance(other, StockQuantity):
            return NotImplemented
        return StockQuantity(self.bags - other.bags, self.weight - other.weight)

    def __neg__(self) -> StockQuantity:
        return StockQuantity(-self.bags, -self.weight)

    def __str__(self) -> str:
        return f"{self.bags} bags / {self.weight} qtl"


ZERO = StockQuantity(0, Decimal("0"))
