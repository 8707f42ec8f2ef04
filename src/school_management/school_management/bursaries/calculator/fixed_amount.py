from __future__ import annotations

from decimal import Decimal

from ...common.money import to_money
from ...core.exceptions import ValidationError
from .base import BursaryCalculator


class FixedAmountCalculator(BursaryCalculator):
    """Fixed value per allocation, capped at the allocation amount."""

    def validate_value(self, value: Decimal) -> None:
        if value <= 0:
            raise ValidationError("Fixed amount must be greater than 0")

    def adjustment(self, amount: Decimal, value: Decimal) -> Decimal:
        return to_money(min(value, amount))
