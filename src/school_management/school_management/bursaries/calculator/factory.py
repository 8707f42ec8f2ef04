from __future__ import annotations

from dataclasses import dataclass

from ...core.enums import BursaryType
from .base import BursaryCalculator
from .fixed_amount import FixedAmountCalculator
from .full_sponsorship import FullSponsorshipCalculator
from .percentage import PercentageCalculator


@dataclass
class BursaryCalculatorFactory:
    """Factory Pattern: choose the calculator for a bursary type."""

    def for_type(self, bursary_type: BursaryType) -> BursaryCalculator:
        if bursary_type == BursaryType.PERCENTAGE:
            return PercentageCalculator()
        if bursary_type == BursaryType.FIXED_AMOUNT:
            return FixedAmountCalculator()
        return FullSponsorshipCalculator()
