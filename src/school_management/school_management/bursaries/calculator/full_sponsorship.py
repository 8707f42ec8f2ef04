from __future__ import annotations

from decimal import Decimal

from ...common.money import to_money
from .base import BursaryCalculator


class FullSponsorshipCalculator(BursaryCalculator):
    """Waives the whole allocation; the value is ignored."""

    def validate_value(self, value: Decimal) -> None:
        return None

    def adjustment(self, amount: Decimal, value: Decimal) -> Decimal:
        return to_money(amount)
