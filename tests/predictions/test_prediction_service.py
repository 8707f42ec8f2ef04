from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from src.school_management.school_management.core.exceptions import ValidationError
from src.school_management.school_management.predictions.service import (
    PredictionService,
    recommendation_for,
    seasonal_factor,
)


class CannedPredictions:
    def __init__(self):
        self.history: list[dict] = []
        self.accounts: dict[tuple[int, int, int], dict] = {}
        self.completion = {"total_terms": 0, "completed_terms": 0}
        self.count = 0
        self.months: list[dict] = []
        self.classes: list[dict] = []
        self.amounts: list = []
        self.recent: list[dict] = []
        self.risky: list[dict] = []

    def payment_history(self, *, school_id, student_id):
        return self.history

    def account(self, *, school_id, student_id, term, year):
        return self.accounts.get((student_id, term, year))

    def completion_history(self, *, school_id, student_id):
        return self.completion

    def payment_count(self, *, school_id, student_id, term, year):
        return self.count

    def monthly_totals(self, *, school_id, since):
        return self.months

    def class_accounts(self, *, school_id, term, year):
        return self.classes

    def amounts_since(self, *, school_id, since):
        return self.amounts

    def payments_since(self, *, school_id, since):
        return self.recent

    def high_risk_students(self, *, school_id, term, year, max_payment_rate, limit):
        return self.risky


@pytest.fixture
def repo():
    return CannedPredictions()


@pytest.fixture
def service(repo):
    return PredictionService(repo)


def test_helpers():
    assert seasonal_factor(1) == 1.3
    assert seasonal_factor(12) == 0.8
    assert seasonal_factor(6) == 1.0
    assert recommendation_for(71) == "Likely to complete on time"
    assert recommendation_for(40) == "High risk - requires immediate follow-up"


def test_completion_needs_two_payments(service, repo):
    repo.history = [{"transaction_date": datetime(2026, 1, 5), "amount": Decimal("100000")}]

    result = service.predict_fee_completion(school_id=1, student_id=1, term=1, year=2026)

    assert result["has_sufficient_data"] is False


def test_completion_projects_from_regular_payments(service, repo):
    repo.history = [
        {"transaction_date": datetime(2026, 1, 1), "amount": Decimal("100000")},
        {"transaction_date": datetime(2026, 1, 11), "amount": Decimal("100000")},
        {"transaction_date": datetime(2026, 1, 21), "amount": Decimal("100000")},
    ]
    repo.accounts[(1, 1, 2026)] = {
        "total_fees": Decimal("550000"),
        "amount_paid": Decimal("300000"),
        "balance": Decimal("250000"),
    }

    result = service.predict_fee_completion(school_id=1, student_id=1, term=1, year=2026)

    assert result["payments_needed"] == 3
    assert result["avg_payment_interval"] == 10
    assert result["predicted_completion_date"] == "2026-02-20"
    assert result["confidence"] == 100.0


def test_completion_when_already_paid(service, repo):
    repo.history = [
        {"transaction_date": datetime(2026, 1, 1), "amount": Decimal("100")},
        {"transaction_date": datetime(2026, 1, 2), "amount": Decimal("100")},
    ]
    repo.accounts[(1, 1, 2026)] = {"total_fees": 200, "amount_paid": 200, "balance": 0}

    assert service.predict_fee_completion(school_id=1, student_id=1, term=1, year=2026)["completed"] is True


def test_probability_factors(service, repo, fixed_now):
    repo.accounts[(1, 1, 2026)] = {
        "total_fees": Decimal("1000000"),
        "amount_paid": Decimal("900000"),
        "balance": Decimal("100000"),
        "created_at": fixed_now - timedelta(days=45),
    }
    repo.completion = {"total_terms": 4, "completed_terms": 4}
    repo.count = 3

    result = service.payment_probability(school_id=1, student_id=1, term=1, year=2026, now=fixed_now)

    assert result["expected_progress"] == 50.0
    assert result["probability"] == 100.0
    assert result["factors"] == ["Strong payment history", "Ahead of schedule", "Regular payment pattern", "Near completion"]
    assert result["recommendation"] == "Likely to complete on time"


def test_probability_without_allocation(service):
    result = service.payment_probability(school_id=1, student_id=1, term=1, year=2026)

    assert result["probability"] == 0.0


def test_cash_flow_with_three_months_is_stable(service, repo, fixed_now):
    repo.months = [{"year": 2026, "month": m, "total_collected": Decimal("1000000")} for m in (1, 2, 3)]

    result = service.forecast_cash_flow(school_id=1, months=2, now=fixed_now)

    assert result["trend"] == "stable"
    assert [(f["month"], f["predicted_amount"]) for f in result["forecast"]] == [(4, 800000.0), (5, 1300000.0)]
    assert [f["confidence"] for f in result["forecast"]] == [80, 70]


def test_cash_flow_trend_and_limits(service, repo, fixed_now):
    repo.months = [{"total_collected": v} for v in (100, 100, 100, 200, 200, 200)]

    result = service.forecast_cash_flow(school_id=1, months=1, now=fixed_now)
    assert result["trend"] == "increasing"
    assert result["historical_average"] == 150.0

    with pytest.raises(ValidationError):
        service.forecast_cash_flow(school_id=1, months=13)
    repo.months = repo.months[:2]
    assert service.forecast_cash_flow(school_id=1, now=fixed_now)["has_sufficient_data"] is False


def test_class_trends_insights(service, repo):
    repo.classes = [
        {"class_name": "S1", "total_fees": Decimal("100"), "amount_paid": Decimal("90"), "total_students": 10, "not_paid_count": 0},
        {"class_name": "S2", "total_fees": Decimal("100"), "amount_paid": Decimal("50"), "total_students": 10, "not_paid_count": 1},
        {"class_name": "S3", "total_fees": Decimal("100"), "amount_paid": Decimal("10"), "total_students": 10, "not_paid_count": 5},
    ]

    result = service.analyze_class_trends(school_id=1, term=1, year=2026)

    assert result["overall_collection_rate"] == 50.0
    assert result["insights"] == [
        "S1 performing exceptionally well (90.0%)",
        "S3 needs attention (10.0%)",
        "S3 has high non-payment rate (5/10)",
    ]
    assert result["classes"][0]["total_fees"] == "100.00"


def test_unusual_payments(service, repo, fixed_now):
    repo.amounts = [Decimal("100000")] * 9 + [Decimal("1000000")]
    repo.recent = [
        {"transaction_id": 1, "amount": Decimal("100000")},
        {"transaction_id": 2, "amount": Decimal("1000000")},
    ]

    result = service.detect_unusual_payments(school_id=1, days=7, now=fixed_now)

    assert result["count"] == 1
    finding = result["unusual_payments"][0]
    assert finding["transaction_id"] == 2
    assert finding["reason"] == "Exceptionally large payment"
    assert finding["deviation"] == 3.0


def test_unusual_payments_with_identical_amounts(service, repo, fixed_now):
    repo.amounts = [Decimal("5000")] * 3
    repo.recent = [{"transaction_id": 3, "amount": Decimal("7000")}]

    finding = service.detect_unusual_payments(school_id=1, now=fixed_now)["unusual_payments"][0]

    assert finding["deviation"] is None
    with pytest.raises(ValidationError):
        service.detect_unusual_payments(school_id=1, days=0)


def test_dashboard_combines_sections(service, repo, fixed_now):
    repo.risky = [{"student_id": 1, "payment_rate": Decimal("10")}]

    result = service.dashboard(school_id=1, term=1, year=2026, now=fixed_now)

    assert result["cash_flow_forecast"]["has_sufficient_data"] is False
    assert result["high_risk_students"] == [{"student_id": 1, "payment_rate": "10.00"}]
    assert result["generated_at"] == fixed_now.isoformat()
