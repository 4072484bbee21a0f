from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from fractions import Fraction
from typing import Any, Iterable, Union

from pydantic_core import core_schema

Factor = Union[int, Fraction, Decimal]


def round_half_away(value: Fraction) -> int:
    quotient, remainder = divmod(abs(value.numerator), value.denominator)
    if remainder * 2 >= value.denominator:
        quotient += 1
    return quotient if value >= 0 else -quotient


@dataclass(frozen=True, slots=True, order=True)
class Money:
    """Amount of money as an integer count of minor units (cents)."""

    units: int = 0

    def __post_init__(self) -> None:
        if isinstance(self.units, bool) or not isinstance(self.units, int):
            raise TypeError(f"Money units must be int, got {type(self.units).__name__}")

    @classmethod
    def zero(cls) -> Money:
        return cls(0)

    @classmethod
    def total(cls, amounts: Iterable[Money]) -> Money:
        return cls(sum(amount.units for amount in amounts))

    @classmethod
    def from_decimal(cls, amount: Decimal | int | str, exponent: int = 2) -> Money:
        value = Decimal(amount).scaleb(exponent)
        return cls(int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP)))

    def to_decimal(self, exponent: int = 2) -> Decimal:
        return Decimal(self.units).scaleb(-exponent)

    def add(self, other: Money) -> Money:
        return Money(self.units + other.units)

    def subtract(self, other: Money) -> Money:
        return Money(self.units - other.units)

    def scale(self, factor: Factor) -> Money:
        """Multiply by an exact factor, rounding half away from zero."""
        if isinstance(factor, float):
            raise TypeError("scale factor must be exact (int, Fraction or Decimal)")
        return Money(round_half_away(self.units * Fraction(factor)))

    def equals(self, other: Money) -> bool:
        return self.units == other.units

    def is_zero(self) -> bool:
        return self.units == 0

    def is_negative(self) -> bool:
        return self.units < 0

    def __add__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        return self.add(other)

    def __sub__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        return self.subtract(other)

    def __neg__(self) -> Money:
        return Money(-self.units)

    def __abs__(self) -> Money:
        return Money(abs(self.units))

    def __int__(self) -> int:
        return self.units

    def __repr__(self) -> str:
        return f"Money({self.units})"

    @classmethod
    def __get_pydantic_core_schema__(cls, source_type: Any, handler: Any) -> core_schema.CoreSchema:
        from_int = core_schema.no_info_after_validator_function(cls, core_schema.int_schema(strict=True))
        return core_schema.union_schema(
            [core_schema.is_instance_schema(cls), from_int],
            serialization=core_schema.plain_serializer_function_ser_schema(int),
        )
