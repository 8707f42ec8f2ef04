"""Example: use the service layer without Flask.

Controllers are a thin layer; the business rules live in the services.
"""

import importlib
import sys

from config import get_settings_module

from src.school_management.school_management.container import build_container


def main(school_id: int = 1):
    settings = importlib.import_module(get_settings_module())
    container = build_container(db_config=settings.DB_CONFIG)

    print(container.school_service.get_school(school_id).name)
    page = container.student_service.list_students(school_id=school_id, limit=5)
    for student in page.items:
        print(student.admission_no, student.full_name)

    print(container.report_service.daily_report(school_id=school_id).to_dict()["summary"])


if __name__ == "__main__":
    main(int(sys.argv[1]) if len(sys.argv) > 1 else 1)
