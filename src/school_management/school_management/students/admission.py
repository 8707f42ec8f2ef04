"""Admission rules: field validation and admission numbers."""

from __future__ import annotations

from datetime import date
from typing import Optional

from ..common.datetime_utils import parse_optional_date
from ..common.validators import require_email
from ..core.enums import Gender
from ..core.exceptions import ValidationError
from .model import NewStudent

_GENDER_ALIASES = {"m": Gender.MALE, "male": Gender.MALE, "f": Gender.FEMALE, "female": Gender.FEMALE}

OPTIONAL_TEXT_FIELDS = (
    "other_name",
    "guardian_name",
    "guardian_phone",
    "phone",
    "address",
    "notes",
)


def format_admission_number(year: int, sequence: int) -> str:
    return f"ADM-{year}-{sequence:05d}"


def parse_gender(value) -> Optional[Gender]:
    if value is None:
        return None
    if isinstance(value, Gender):
        return value
    return _GENDER_ALIASES.get(str(value).strip().lower())


def _text(payload: dict, key: str) -> Optional[str]:
    value = payload.get(key)
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _optional_int(payload: dict, key: str, errors: list[str]) -> Optional[int]:
    value = payload.get(key)
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        errors.append(f"{key} must be a number")
        return None


def validate_admission(payload: dict, *, today: date) -> NewStudent:
    """Check an admission form, reporting every problem at once."""
    errors: list[str] = []

    first_name = _text(payload, "first_name")
    last_name = _text(payload, "last_name")
    if not first_name:
        errors.append("First name is required")
    if not last_name:
        errors.append("Last name is required")

    date_of_birth = None
    if not payload.get("date_of_birth"):
        errors.append("Date of birth is required")
    else:
        try:
            date_of_birth = parse_optional_date(payload.get("date_of_birth"), "Date of birth")
        except ValidationError as e:
            errors.append(str(e))
        if date_of_birth and date_of_birth >= today:
            errors.append("Date of birth must be in the past")

    gender = None
    if not payload.get("gender"):
        errors.append("Gender is required")
    else:
        gender = parse_gender(payload.get("gender"))
        if not gender:
            errors.append("Gender must be male or female")

    email = _text(payload, "email")
    if email:
        try:
            email = require_email(email)
        except ValidationError as e:
            errors.append(str(e))

    admission_date = today
    if payload.get("admission_date"):
        try:
            admission_date = parse_optional_date(payload.get("admission_date"), "Admission date") or today
        except ValidationError as e:
            errors.append(str(e))

    class_id = _optional_int(payload, "class_id", errors)
    stream_id = _optional_int(payload, "stream_id", errors)

    if errors:
        raise ValidationError("; ".join(errors), errors)

    return NewStudent(
        first_name=first_name,
        last_name=last_name,
        date_of_birth=date_of_birth,
        gender=gender,
        class_id=class_id,
        stream_id=stream_id,
        admission_date=admission_date,
        email=email,
        **{key: _text(payload, key) for key in OPTIONAL_TEXT_FIELDS},
    )
