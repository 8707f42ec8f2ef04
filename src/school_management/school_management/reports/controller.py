from __future__ import annotations

from flask import Flask, g

from ..core.enums import Role
from ..container import Container
from ..web.auth import Guards
from ..web.params import query_int, query_str
from ..web.responses import api_response, handle_api_errors

_REPORT_ROLES = (Role.ADMIN, Role.BURSAR)


def register(app: Flask, container: Container) -> None:
    guards = Guards(container)
    reports = container.report_service

    @app.route("/api/reports/daily", methods=["GET"], endpoint="daily_report")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    @guards.roles_required(*_REPORT_ROLES)
    def daily_report():
        return api_response(reports.daily_report(school_id=g.user.school_id, day=query_str("date")))

    @app.route("/api/reports/weekly", methods=["GET"], endpoint="weekly_report")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    @guards.roles_required(*_REPORT_ROLES)
    def weekly_report():
        return api_response(reports.weekly_report(school_id=g.user.school_id, week_start=query_str("week_start")))

    @app.route("/api/reports/monthly", methods=["GET"], endpoint="monthly_report")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    @guards.roles_required(*_REPORT_ROLES)
    def monthly_report():
        return api_response(
            reports.monthly_report(school_id=g.user.school_id, month=query_int("month"), year=query_int("year"))
        )

    @app.route("/api/reports/termly", methods=["GET"], endpoint="termly_report")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    @guards.roles_required(*_REPORT_ROLES)
    def termly_report():
        return api_response(
            reports.termly_report(school_id=g.user.school_id, term=query_int("term"), year=query_int("year"))
        )

    @app.route("/api/reports/comparative", methods=["GET"], endpoint="comparative_report")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    @guards.roles_required(*_REPORT_ROLES)
    def comparative_report():
        return api_response(reports.comparative_analysis(school_id=g.user.school_id, year=query_int("year")))
