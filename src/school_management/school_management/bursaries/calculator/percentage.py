from __future__ import annotations

from decimal import Decimal

from ...common.money import to_money
from ...core.exceptions import ValidationError
from .base import BursaryCalculator


class PercentageCalculator(BursaryCalculator):
    """amount * value / 100."""

    def validate_value(self, value: Decimal) -> None:
        if value <= 0 or value > 100:
            raise ValidationError("Percentage must be between 0 and 100")

    def adjustment(self, amount: Decimal, value: Decimal) -> Decimal:
        return min(to_money(amount * value / Decimal(100)), to_money(amount))
