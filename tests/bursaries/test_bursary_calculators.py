from decimal import Decimal

import pytest

from src.school_management.school_management.bursaries.calculator.factory import BursaryCalculatorFactory
from src.school_management.school_management.bursaries.calculator.fixed_amount import FixedAmountCalculator
from src.school_management.school_management.bursaries.calculator.full_sponsorship import FullSponsorshipCalculator
from src.school_management.school_management.bursaries.calculator.percentage import PercentageCalculator
from src.school_management.school_management.core.enums import BursaryType
from src.school_management.school_management.core.exceptions import ValidationError


def test_factory_picks_calculator_per_type():
    factory = BursaryCalculatorFactory()

    assert isinstance(factory.for_type(BursaryType.PERCENTAGE), PercentageCalculator)
    assert isinstance(factory.for_type(BursaryType.FIXED_AMOUNT), FixedAmountCalculator)
    assert isinstance(factory.for_type(BursaryType.FULL_SPONSORSHIP), FullSponsorshipCalculator)


def test_percentage_discount():
    calc = PercentageCalculator()

    assert calc.adjustment(Decimal("500000"), Decimal("25")) == Decimal("125000.00")
    assert calc.adjustment(Decimal("333.33"), Decimal("50")) == Decimal("166.67")
    assert calc.adjustment(Decimal("1000"), Decimal("100")) == Decimal("1000.00")


@pytest.mark.parametrize("value", ["0", "-10", "100.01"])
def test_percentage_out_of_range(value):
    with pytest.raises(ValidationError):
        PercentageCalculator().validate_value(Decimal(value))


def test_fixed_amount_is_capped_at_allocation():
    calc = FixedAmountCalculator()

    assert calc.adjustment(Decimal("500000"), Decimal("200000")) == Decimal("200000.00")
    assert calc.adjustment(Decimal("150000"), Decimal("200000")) == Decimal("150000.00")
    with pytest.raises(ValidationError):
        calc.validate_value(Decimal("0"))


def test_full_sponsorship_waives_everything():
    calc = FullSponsorshipCalculator()

    calc.validate_value(Decimal("0"))
    assert calc.adjustment(Decimal("480000"), Decimal("0")) == Decimal("480000.00")
