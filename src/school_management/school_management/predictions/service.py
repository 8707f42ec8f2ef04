from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta
from typing import Optional

import numpy as np

from ..common.datetime_utils import now_local
from ..common.serialization import to_jsonable
from ..common.validators import require_term, require_year
from ..core.constants import (
    DEFAULT_PAYMENT_INTERVAL_DAYS,
    HIGH_RISK_PAYMENT_RATE,
    MAX_HIGH_RISK_STUDENTS,
    TERM_END_MONTHS,
    TERM_LENGTH_DAYS,
    TERM_START_MONTHS,
    UNUSUAL_PAYMENT_BASELINE_DAYS,
)
from ..core.exceptions import ValidationError
from .repository import PredictionRepository

logger = logging.getLogger(__name__)


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return float(max(low, min(high, value)))


def seasonal_factor(month: int) -> float:
    if month in TERM_START_MONTHS:
        return 1.3
    if month in TERM_END_MONTHS:
        return 0.8
    return 1.0


def recommendation_for(probability: float) -> str:
    if probability > 70:
        return "Likely to complete on time"
    if probability > 40:
        return "May need reminder"
    return "High risk - requires immediate follow-up"


def _add_months(year: int, month: int, offset: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + offset
    return index // 12, index % 12 + 1


class PredictionService:
    """Payment forecasts from SQL aggregates; plain statistics, no trained model."""

    def __init__(self, predictions: PredictionRepository):
        self._predictions = predictions

    def predict_fee_completion(
        self, *, school_id: int, student_id: int, term, year, now: Optional[datetime] = None
    ) -> dict:
        term, year = require_term(term), require_year(year)
        history = list(self._predictions.payment_history(school_id=int(school_id), student_id=int(student_id)))
        if len(history) < 2:
            return {"has_sufficient_data": False, "message": "Insufficient payment history for prediction"}

        account = self._predictions.account(school_id=int(school_id), student_id=int(student_id), term=term, year=year)
        if not account:
            return {"has_sufficient_data": False, "message": "No fee allocation found"}

        balance = float(account["balance"] or 0)
        if balance <= 0:
            return {"has_sufficient_data": True, "completed": True, "message": "Fees already completed"}

        dates = np.array([h["transaction_date"].timestamp() for h in history], dtype=float)
        amounts = np.array([float(h["amount"]) for h in history], dtype=float)
        intervals = np.diff(dates) / 86400.0

        avg_interval = float(intervals.mean()) if intervals.size else float(DEFAULT_PAYMENT_INTERVAL_DAYS)
        avg_payment = float(amounts.mean())
        payments_needed = math.ceil(balance / avg_payment) if avg_payment > 0 else 0
        estimated_days = payments_needed * avg_interval
        predicted = history[-1]["transaction_date"] + timedelta(days=estimated_days)

        std_dev = float(intervals.std()) if intervals.size > 1 else 0.0
        confidence = _clamp(100 - std_dev / avg_interval * 100) if avg_interval > 0 else 0.0

        return {
            "has_sufficient_data": True,
            "completed": False,
            "current_balance": round(balance, 2),
            "total_fees": round(float(account["total_fees"] or 0), 2),
            "amount_paid": round(float(account["amount_paid"] or 0), 2),
            "payment_history": len(history),
            "avg_payment_amount": round(avg_payment, 2),
            "avg_payment_interval": round(avg_interval),
            "payments_needed": payments_needed,
            "predicted_completion_date": predicted.date().isoformat(),
            "days_until_completion": round(estimated_days),
            "confidence": round(confidence, 2),
        }

    def payment_probability(
        self, *, school_id: int, student_id: int, term, year, now: Optional[datetime] = None
    ) -> dict:
        term, year = require_term(term), require_year(year)
        now = now or now_local()
        account = self._predictions.account(school_id=int(school_id), student_id=int(student_id), term=term, year=year)
        if not account:
            return {"probability": 0.0, "factors": ["No fee allocation found"], "recommendation": recommendation_for(0)}

        history = self._predictions.completion_history(school_id=int(school_id), student_id=int(student_id))
        total_terms = int(history.get("total_terms") or 0)
        completion_rate = int(history.get("completed_terms") or 0) / total_terms * 100 if total_terms else 0.0

        total_fees = float(account["total_fees"] or 0)
        amount_paid = float(account["amount_paid"] or 0)
        balance = float(account["balance"] or 0)
        payment_rate = amount_paid / total_fees * 100 if total_fees > 0 else 0.0

        factors: list[str] = []
        probability = 50.0

        probability += (completion_rate - 50) * 0.4
        if completion_rate > 80:
            factors.append("Strong payment history")
        elif completion_rate < 30:
            factors.append("Weak payment history")

        created_at = account.get("created_at") or now
        days_elapsed = max((now - created_at).days, 0)
        expected_progress = min(100.0, days_elapsed / TERM_LENGTH_DAYS * 100)
        probability += (payment_rate - expected_progress) * 0.3
        if payment_rate > expected_progress + 20:
            factors.append("Ahead of schedule")
        elif payment_rate < expected_progress - 20:
            factors.append("Behind schedule")

        payments = self._predictions.payment_count(
            school_id=int(school_id), student_id=int(student_id), term=term, year=year
        )
        if payments >= 3:
            probability += 10
            factors.append("Regular payment pattern")
        elif payments == 0:
            probability -= 20
            factors.append("No payments made")

        if balance <= total_fees * 0.2:
            probability += 10
            factors.append("Near completion")
        elif balance >= total_fees * 0.8:
            probability -= 10
            factors.append("Large outstanding balance")

        probability = _clamp(probability)
        return {
            "probability": round(probability, 2),
            "payment_rate": round(payment_rate, 2),
            "expected_progress": round(expected_progress, 2),
            "historical_completion_rate": round(completion_rate, 2),
            "factors": factors,
            "recommendation": recommendation_for(probability),
        }

    def forecast_cash_flow(self, *, school_id: int, months=3, now: Optional[datetime] = None) -> dict:
        try:
            months = int(months)
        except (TypeError, ValueError):
            raise ValidationError("Months must be a number")
        if not 1 <= months <= 12:
            raise ValidationError("Months must be between 1 and 12")

        now = now or now_local()
        since_year, since_month = _add_months(now.year, now.month, -12)
        history = list(
            self._predictions.monthly_totals(school_id=int(school_id), since=datetime(since_year, since_month, 1))
        )
        if len(history) < 3:
            return {"has_sufficient_data": False, "message": "Insufficient historical data for forecasting"}

        recent = np.array([float(m["total_collected"] or 0) for m in history[-6:]], dtype=float)
        avg_monthly = float(recent.mean())
        second_half = recent[3:]
        slope = float((second_half.mean() - recent[:3].mean()) / 3) if second_half.size else 0.0

        forecast = []
        for i in range(1, months + 1):
            year, month = _add_months(now.year, now.month, i)
            predicted = (avg_monthly + slope * i) * seasonal_factor(month)
            forecast.append(
                {
                    "month": month,
                    "year": year,
                    "predicted_amount": round(max(predicted, 0.0), 2),
                    "confidence": max(50, 90 - i * 10),
                }
            )

        trend = "increasing" if slope > 0 else "decreasing" if slope < 0 else "stable"
        return {
            "has_sufficient_data": True,
            "historical_average": round(avg_monthly, 2),
            "trend": trend,
            "trend_rate": round(abs(slope) / avg_monthly * 100, 2) if avg_monthly else 0.0,
            "forecast": forecast,
        }

    def analyze_class_trends(self, *, school_id: int, term, year) -> dict:
        term, year = require_term(term), require_year(year)
        classes = []
        for row in self._predictions.class_accounts(school_id=int(school_id), term=term, year=year):
            row = dict(row)
            fees = float(row.get("total_fees") or 0)
            row["collection_rate"] = round(float(row.get("amount_paid") or 0) / fees * 100, 2) if fees > 0 else 0.0
            classes.append(row)
        classes.sort(key=lambda r: r["collection_rate"], reverse=True)

        rates = np.array([c["collection_rate"] for c in classes], dtype=float)
        overall = float(rates.mean()) if rates.size else 0.0

        insights = []
        for c in classes:
            rate = c["collection_rate"]
            if rate > overall + 20:
                insights.append(f"{c['class_name']} performing exceptionally well ({rate:.1f}%)")
            elif rate < overall - 20:
                insights.append(f"{c['class_name']} needs attention ({rate:.1f}%)")
            students = int(c.get("total_students") or 0)
            not_paid = int(c.get("not_paid_count") or 0)
            if students and not_paid > students * 0.3:
                insights.append(f"{c['class_name']} has high non-payment rate ({not_paid}/{students})")

        return {"classes": to_jsonable(classes), "overall_collection_rate": round(overall, 2), "insights": insights}

    def detect_unusual_payments(self, *, school_id: int, days=7, now: Optional[datetime] = None) -> dict:
        try:
            days = int(days)
        except (TypeError, ValueError):
            raise ValidationError("Days must be a number")
        if days <= 0:
            raise ValidationError("Days must be greater than 0")

        now = now or now_local()
        baseline = np.array(
            [
                float(a)
                for a in self._predictions.amounts_since(
                    school_id=int(school_id), since=now - timedelta(days=UNUSUAL_PAYMENT_BASELINE_DAYS)
                )
            ],
            dtype=float,
        )
        mean = float(baseline.mean()) if baseline.size else 0.0
        std = float(baseline.std()) if baseline.size else 0.0
        upper = mean + 2 * std
        lower = max(0.0, mean - 2 * std)

        window_start = datetime.combine((now - timedelta(days=days)).date(), datetime.min.time())
        findings = []
        if baseline.size:
            for payment in self._predictions.payments_since(school_id=int(school_id), since=window_start):
                amount = float(payment["amount"])
                if lower <= amount <= upper:
                    continue
                findings.append(
                    {
                        **to_jsonable(dict(payment)),
                        "reason": "Exceptionally large payment" if amount > upper else "Exceptionally small payment",
                        "deviation": round((amount - mean) / std, 2) if std else None,
                    }
                )

        return {
            "average_payment": round(mean, 2),
            "standard_deviation": round(std, 2),
            "upper_threshold": round(upper, 2),
            "lower_threshold": round(lower, 2),
            "unusual_payments": findings,
            "count": len(findings),
        }

    def dashboard(self, *, school_id: int, term, year, now: Optional[datetime] = None) -> dict:
        term, year = require_term(term), require_year(year)
        now = now or now_local()
        high_risk = self._predictions.high_risk_students(
            school_id=int(school_id),
            term=term,
            year=year,
            max_payment_rate=HIGH_RISK_PAYMENT_RATE,
            limit=MAX_HIGH_RISK_STUDENTS,
        )
        logger.debug("Predictions dashboard for school %s: %s high-risk students", school_id, len(high_risk))
        return {
            "cash_flow_forecast": self.forecast_cash_flow(school_id=school_id, months=3, now=now),
            "class_trends": self.analyze_class_trends(school_id=school_id, term=term, year=year),
            "unusual_payments": self.detect_unusual_payments(school_id=school_id, days=7, now=now),
            "high_risk_students": to_jsonable(list(high_risk)),
            "generated_at": now.isoformat(),
        }
