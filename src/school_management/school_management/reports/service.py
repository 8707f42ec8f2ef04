from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Optional

from ..common.datetime_utils import now_local, parse_optional_date
from ..common.money import to_money
from ..common.validators import require_term, require_year
from ..core.exceptions import ValidationError
from .model import ReportData
from .repository import ReportRepository

logger = logging.getLogger(__name__)


def collection_rate(collected, expected) -> float:
    """Percentage collected, 0 when nothing was expected."""
    expected = to_money(expected)
    if expected <= 0:
        return 0.0
    return round(float(to_money(collected) / expected * 100), 2)


def _growth(current, previous) -> Optional[float]:
    previous = Decimal(str(previous or 0))
    if previous == 0:
        return None
    return round(float((Decimal(str(current or 0)) - previous) / previous * 100), 2)


def _day_window(day: date) -> tuple[datetime, datetime]:
    start = datetime.combine(day, datetime.min.time())
    return start, start + timedelta(days=1)


def _month_window(month: int, year: int) -> tuple[datetime, datetime]:
    start = datetime(year, month, 1)
    end = datetime(year + 1, 1, 1) if month == 12 else datetime(year, month + 1, 1)
    return start, end


class FinancialReportService:
    """Daily, weekly, monthly and termly collection reports for one school."""

    def __init__(self, reports: ReportRepository):
        self._reports = reports

    def daily_report(self, *, school_id: int, day=None, now: Optional[datetime] = None) -> ReportData:
        day = parse_optional_date(day, "Date") or (now or now_local()).date()
        start, end = _day_window(day)
        return ReportData(
            period={"date": day},
            summary=dict(self._reports.collection_summary(school_id=int(school_id), start=start, end=end)),
            sections={
                "payment_methods": self._reports.method_breakdown(school_id=int(school_id), start=start, end=end),
                "top_payers": self._reports.top_payers(school_id=int(school_id), start=start, end=end),
                "hourly_distribution": self._reports.hourly_breakdown(school_id=int(school_id), start=start, end=end),
            },
        )

    def weekly_report(self, *, school_id: int, week_start=None, now: Optional[datetime] = None) -> ReportData:
        """Seven days from week_start; defaults to the seven days ending today."""
        first = parse_optional_date(week_start, "Week start") or ((now or now_local()).date() - timedelta(days=6))
        start, _ = _day_window(first)
        end = start + timedelta(days=7)
        return ReportData(
            period={"start_date": first, "end_date": first + timedelta(days=6)},
            summary=dict(self._reports.collection_summary(school_id=int(school_id), start=start, end=end)),
            sections={
                "daily_breakdown": self._reports.daily_breakdown(school_id=int(school_id), start=start, end=end),
                "classes": self._reports.class_collections(school_id=int(school_id), start=start, end=end),
                "payment_methods": self._reports.method_breakdown(school_id=int(school_id), start=start, end=end),
            },
        )

    def monthly_report(self, *, school_id: int, month=None, year=None, now: Optional[datetime] = None) -> ReportData:
        today = (now or now_local()).date()
        year = require_year(year) if year not in (None, "") else today.year
        try:
            month = int(month) if month not in (None, "") else today.month
        except (TypeError, ValueError):
            raise ValidationError("Month must be a number")
        if not 1 <= month <= 12:
            raise ValidationError("Month must be between 1 and 12")

        start, end = _month_window(month, year)
        return ReportData(
            period={"month": month, "year": year},
            summary=dict(self._reports.collection_summary(school_id=int(school_id), start=start, end=end)),
            sections={
                "outstanding": self._reports.outstanding_summary(school_id=int(school_id), year=year),
                "weekly_breakdown": self._reports.weekly_breakdown(school_id=int(school_id), start=start, end=end),
                "top_debtors": self._reports.top_debtors(school_id=int(school_id), year=year),
                "payment_methods": self._reports.method_breakdown(school_id=int(school_id), start=start, end=end),
            },
        )

    def termly_report(self, *, school_id: int, term, year) -> ReportData:
        term, year = require_term(term), require_year(year)
        allocation = dict(self._reports.allocation_summary(school_id=int(school_id), term=term, year=year))
        allocation["collection_rate"] = collection_rate(
            allocation.get("total_collected"), allocation.get("total_allocated")
        )

        classes = []
        for row in self._reports.class_performance(school_id=int(school_id), term=term, year=year):
            row = dict(row)
            row["collection_rate"] = collection_rate(row.get("amount_paid"), row.get("total_fees"))
            classes.append(row)
        classes.sort(key=lambda r: r["collection_rate"], reverse=True)

        fee_items = []
        for row in self._reports.fee_item_performance(school_id=int(school_id), term=term, year=year):
            row = dict(row)
            row["collection_rate"] = collection_rate(row.get("total_collected"), row.get("total_allocated"))
            fee_items.append(row)

        logger.debug("Termly report for school %s term %s/%s: %s classes", school_id, term, year, len(classes))
        return ReportData(
            period={"term": term, "year": year},
            summary=dict(self._reports.term_collection_summary(school_id=int(school_id), term=term, year=year)),
            sections={
                "allocation": allocation,
                "class_performance": classes,
                "fee_items": fee_items,
                "student_status": self._reports.student_payment_status(school_id=int(school_id), term=term, year=year),
            },
        )

    def comparative_analysis(self, *, school_id: int, year) -> ReportData:
        """Term-over-term growth within one year."""
        year = require_year(year)
        rows = list(self._reports.term_comparison(school_id=int(school_id), year=year))
        analysis = []
        previous = None
        for row in rows:
            growth = None
            if previous:
                growth = {
                    "collection": _growth(row["total_collected"], previous["total_collected"]),
                    "transactions": _growth(row["transaction_count"], previous["transaction_count"]),
                    "payers": _growth(row["unique_payers"], previous["unique_payers"]),
                }
            analysis.append({"term": int(row["term"]), "metrics": dict(row), "growth": growth})
            previous = row
        total = sum((to_money(r["total_collected"]) for r in rows), Decimal("0.00"))
        return ReportData(period={"year": year}, summary={"total_collected": total}, sections={"analysis": analysis})
