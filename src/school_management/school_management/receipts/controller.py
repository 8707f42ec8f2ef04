from __future__ import annotations

import io

from flask import Flask, g, send_file

from ..core.enums import Role
from ..container import Container
from ..web.auth import Guards
from ..web.params import body_int, get_json, query_int, query_str
from ..web.responses import api_response, handle_api_errors


def register(app: Flask, container: Container) -> None:
    guards = Guards(container)
    documents = container.document_service

    @app.route("/api/receipts", methods=["GET"], endpoint="list_receipts")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    def list_receipts():
        return api_response(documents.list_receipts(school_id=g.user.school_id, student_id=query_int("student_id")))

    @app.route("/api/receipts", methods=["POST"], endpoint="generate_receipt")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    @guards.roles_required(Role.ADMIN, Role.BURSAR)
    def generate_receipt():
        receipt = documents.generate_receipt(
            school_id=g.user.school_id, transaction_id=body_int(get_json(), "transaction_id", "Transaction")
        )
        return api_response(receipt, message="Receipt generated")

    @app.route("/api/receipts/<receipt_number>", methods=["GET"], endpoint="get_receipt")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    def get_receipt(receipt_number: str):
        return api_response(documents.get_receipt(school_id=g.user.school_id, receipt_number=receipt_number))

    @app.route("/api/receipts/<receipt_number>/qr.png", methods=["GET"], endpoint="receipt_qr")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    def receipt_qr(receipt_number: str):
        png = documents.receipt_qr_png(school_id=g.user.school_id, receipt_number=receipt_number)
        return send_file(io.BytesIO(png), mimetype="image/png", download_name=f"{receipt_number}.png")

    @app.route("/verify/receipt", methods=["GET"], endpoint="verify_receipt")
    @handle_api_errors
    def verify_receipt():
        return api_response(documents.verify_receipt(query_str("receipt") or ""))

    @app.route("/api/invoices", methods=["POST"], endpoint="generate_invoice")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    @guards.roles_required(Role.ADMIN, Role.BURSAR)
    def generate_invoice():
        payload = get_json()
        invoice = documents.generate_invoice(
            school_id=g.user.school_id,
            student_id=body_int(payload, "student_id", "Student"),
            term=payload.get("term"),
            year=payload.get("year"),
        )
        return api_response(invoice, message="Invoice generated", status=201)

    @app.route("/api/invoices/<invoice_number>", methods=["GET"], endpoint="get_invoice")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    def get_invoice(invoice_number: str):
        return api_response(documents.get_invoice(school_id=g.user.school_id, invoice_number=invoice_number))
