"""Regional discount rules applied to QuoteLineItem prices."""

from decimal import Decimal
from typing import Mapping, Optional, Union

from .config import DEFAULT_DISCOUNT_RATES

Number = Union[Decimal, int, str]


class DiscountTable:
    """Read-only map of region code to discount rate.

    Unknown regions get default_rate (no discount unless configured).
    """

    def __init__(self, rates: Optional[Mapping[str, Number]] = None, default_rate: Number = Decimal("0")):
        source = DEFAULT_DISCOUNT_RATES if rates is None else rates
        self._rates = {region.upper(): Decimal(str(rate)) for region, rate in source.items()}
        self.default_rate = Decimal(str(default_rate))
        for region, rate in list(self._rates.items()) + [("default", self.default_rate)]:
            if not Decimal("0") <= rate < Decimal("1"):
                raise ValueError(f"Discount rate for {region} must be in [0, 1), got {rate}")

    def rate_for(self, region: str) -> Decimal:
        return self._rates.get((region or "").upper(), self.default_rate)

    def __contains__(self, region: str) -> bool:
        return (region or "").upper() in self._rates


def discounted_unit_price(quantity: Decimal, unit_price: Decimal, discount_rate: Decimal) -> Decimal:
    """
    Per-unit price after discount: (quantity * unit_price) * (1 - rate) / quantity.

    Raises:
        ValueError: If quantity is zero; callers filter such rows out first
    """
    if quantity == 0:
        raise ValueError("Cannot compute a unit price for zero quantity")
    line_total = (quantity * unit_price) * (Decimal("1") - discount_rate)
    return line_total / quantity
