from __future__ import annotations

import io
from dataclasses import asdict

from flask import Flask, g, request, send_file

from ..core.enums import Role
from ..core.exceptions import ValidationError
from ..container import Container
from ..web.auth import Guards
from ..web.params import get_json, query_int, query_str
from ..web.responses import api_response, handle_api_errors

_RECORD_ROLES = (Role.ADMIN, Role.BURSAR, Role.STAFF)


def register(app: Flask, container: Container) -> None:
    guards = Guards(container)
    students = container.student_service

    # Classes
    @app.route("/api/classes", methods=["GET"], endpoint="list_classes")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    def list_classes():
        return api_response([asdict(c) for c in students.list_classes(g.user.school_id)])

    @app.route("/api/classes", methods=["POST"], endpoint="create_class")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    @guards.roles_required(Role.ADMIN)
    def create_class():
        payload = get_json()
        school_class = students.create_class(
            school_id=g.user.school_id, name=payload.get("name", ""), level=payload.get("level")
        )
        return api_response(asdict(school_class), message="Class created", status=201)

    @app.route("/api/classes/<int:class_id>/streams", methods=["GET"], endpoint="list_streams")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    def list_streams(class_id: int):
        return api_response([asdict(s) for s in students.list_streams(school_id=g.user.school_id, class_id=class_id)])

    @app.route("/api/classes/<int:class_id>/streams", methods=["POST"], endpoint="create_stream")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    @guards.roles_required(Role.ADMIN)
    def create_stream(class_id: int):
        stream = students.create_stream(
            school_id=g.user.school_id, class_id=class_id, name=get_json().get("name", "")
        )
        return api_response(asdict(stream), message="Stream created", status=201)

    @app.route("/api/classes/<int:class_id>/statistics", methods=["GET"], endpoint="class_statistics")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    def class_statistics(class_id: int):
        return api_response(students.class_statistics(school_id=g.user.school_id, class_id=class_id))

    @app.route("/api/classes/promote", methods=["POST"], endpoint="promote_students")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    @guards.roles_required(Role.ADMIN)
    def promote_students():
        payload = get_json()
        try:
            from_class_id = int(payload.get("from_class_id"))
            to_class_id = int(payload.get("to_class_id"))
        except (TypeError, ValueError):
            raise ValidationError("from_class_id and to_class_id are required")
        moved = students.promote_students(
            school_id=g.user.school_id,
            from_class_id=from_class_id,
            to_class_id=to_class_id,
            promoted_by=g.user.user_id,
        )
        return api_response({"students_moved": moved}, message="Students promoted")

    # Students
    @app.route("/api/students", methods=["GET"], endpoint="list_students")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    def list_students():
        page = students.list_students(
            school_id=g.user.school_id,
            page=query_int("page", 1),
            limit=query_int("limit"),
            search=query_str("search"),
            class_id=query_int("class_id"),
            status=query_str("status"),
        )
        return api_response(page.to_dict(lambda s: s.to_dict()))

    @app.route("/api/students", methods=["POST"], endpoint="admit_student")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    @guards.roles_required(*_RECORD_ROLES)
    def admit_student():
        student = students.admit_student(school_id=g.user.school_id, payload=get_json(), created_by=g.user.user_id)
        return api_response(student.to_dict(), message="Student admitted", status=201)

    @app.route("/api/students/validate", methods=["POST"], endpoint="validate_admission")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    def validate_admission():
        students.validate_admission(get_json())
        return api_response({"valid": True}, message="Admission data is valid")

    @app.route("/api/students/export", methods=["GET"], endpoint="export_students")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    @guards.roles_required(*_RECORD_ROLES)
    def export_students():
        data = students.export_students_csv(
            school_id=g.user.school_id, class_id=query_int("class_id"), status=query_str("status")
        )
        return send_file(
            io.BytesIO(data),
            mimetype="text/csv",
            as_attachment=True,
            download_name="students.csv",
        )

    @app.route("/api/students/import", methods=["POST"], endpoint="import_students")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    @guards.roles_required(Role.ADMIN)
    def import_students():
        upload = request.files.get("file")
        if not upload:
            raise ValidationError("A CSV file is required")
        result = students.import_students_csv(
            school_id=g.user.school_id, source=upload.read(), created_by=g.user.user_id
        )
        return api_response(result.to_dict(), message=f"{result.imported} students imported")

    @app.route("/api/students/<int:student_id>", methods=["GET"], endpoint="get_student")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    def get_student(student_id: int):
        return api_response(students.get_student(school_id=g.user.school_id, student_id=student_id).to_dict())

    @app.route("/api/students/<int:student_id>", methods=["PUT", "PATCH"], endpoint="update_student")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    @guards.roles_required(*_RECORD_ROLES)
    def update_student(student_id: int):
        student = students.update_student(
            school_id=g.user.school_id, student_id=student_id, payload=get_json(), updated_by=g.user.user_id
        )
        return api_response(student.to_dict(), message="Student updated")

    @app.route("/api/students/<int:student_id>", methods=["DELETE"], endpoint="delete_student")
    @handle_api_errors
    @guards.login_required
    @guards.school_required
    @guards.roles_required(Role.ADMIN)
    def delete_student(student_id: int):
        students.delete_student(
            school_id=g.user.school_id,
            student_id=student_id,
            reason=get_json().get("reason"),
            deleted_by=g.user.user_id,
        )
        return api_response(message="Student deleted")
