from __future__ import annotations

from abc import ABC, abstractmethod
from decimal import Decimal


class BursaryCalculator(ABC):
    """Calculator interface (Strategy Pattern for bursary discounts)."""

    @abstractmethod
    def validate_value(self, value: Decimal) -> None:
        raise NotImplementedError

    @abstractmethod
    def adjustment(self, amount: Decimal, value: Decimal) -> Decimal:
        """Amount waived from one fee allocation, never more than the allocation."""

        raise NotImplementedError
