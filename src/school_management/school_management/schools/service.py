from __future__ import annotations

import logging
import re
import secrets
import string
from contextlib import nullcontext
from typing import Callable, Optional

from ..audit.service import AuditService
from ..common.validators import require_email, require_non_empty
from ..core.constants import (
    DEFAULT_CURRENCY,
    DEFAULT_SCHOOL_TYPE,
    DEFAULT_TIMEZONE,
    SCHOOL_CODE_MAX_ATTEMPTS,
    SCHOOL_CODE_SLUG_LENGTH,
    SCHOOL_CODE_SUFFIX_LENGTH,
)
from ..core.exceptions import ConflictError, NotFoundError, ValidationError
from ..users.repository import UserRepository
from .model import School
from .repository import SchoolRepository

logger = logging.getLogger(__name__)

SCHOOL_FIELDS = (
    "name",
    "school_type",
    "address",
    "region",
    "district",
    "phone",
    "email",
    "website",
    "currency",
    "timezone",
    "owner_name",
    "owner_phone",
    "owner_email",
)


def slugify_school_name(name: str) -> str:
    slug = re.sub(r"\s+", "-", name.strip().lower())
    slug = re.sub(r"[^a-z0-9-]", "", slug)
    return slug[:SCHOOL_CODE_SLUG_LENGTH].strip("-") or "school"


def random_code_suffix() -> str:
    alphabet = string.ascii_uppercase + string.digits
    return "".join(secrets.choice(alphabet) for _ in range(SCHOOL_CODE_SUFFIX_LENGTH))


class SchoolService:
    """Use cases: create and maintain the tenant record."""

    def __init__(
        self,
        schools: SchoolRepository,
        users: UserRepository,
        audit: AuditService,
        *,
        transaction: Optional[Callable] = None,
        suffix_factory: Optional[Callable[[], str]] = None,
    ):
        self._schools = schools
        self._users = users
        self._audit = audit
        self._transaction = transaction or nullcontext
        self._suffix_factory = suffix_factory or random_code_suffix

    def generate_school_code(self, name: str) -> str:
        slug = slugify_school_name(name)
        for _ in range(SCHOOL_CODE_MAX_ATTEMPTS):
            code = f"{slug}-{self._suffix_factory()}"
            if not self._schools.code_exists(code):
                return code
        raise ConflictError("Could not generate a unique school code, please try again")

    @staticmethod
    def _clean_fields(data: dict) -> dict:
        fields = {}
        for key in SCHOOL_FIELDS:
            if key not in data:
                continue
            value = data[key]
            if isinstance(value, str):
                value = value.strip() or None
            fields[key] = value
        if "name" in fields:
            fields["name"] = require_non_empty(fields["name"] or "", "School name")
        for key in ("email", "owner_email"):
            if fields.get(key):
                fields[key] = require_email(fields[key], "School email" if key == "email" else "Owner email")
        return fields

    def create_school(self, *, user_id: int, data: dict) -> School:
        fields = self._clean_fields(data)
        if not fields.get("name"):
            raise ValidationError("School name is required")

        user = self._users.get_by_id(int(user_id))
        if not user:
            raise NotFoundError("User not found")
        if user.school_id:
            raise ConflictError("This account is already linked to a school")

        fields.setdefault("school_type", DEFAULT_SCHOOL_TYPE)
        fields["school_type"] = fields["school_type"] or DEFAULT_SCHOOL_TYPE
        fields["currency"] = fields.get("currency") or DEFAULT_CURRENCY
        fields["timezone"] = fields.get("timezone") or DEFAULT_TIMEZONE

        with self._transaction():
            code = self.generate_school_code(fields["name"])
            school_id = self._schools.create_school(school_code=code, fields=fields, created_by=int(user_id))
            self._users.set_school(int(user_id), school_id=school_id)

        logger.info("School %s (%s) created by user %s", school_id, code, user_id)
        self._audit.log(
            "school_created",
            user_id=int(user_id),
            school_id=school_id,
            entity_type="school",
            entity_id=school_id,
            new_values={"name": fields["name"], "school_code": code},
        )
        return self.get_school(school_id)

    def get_school(self, school_id: int) -> School:
        school = self._schools.get_by_id(int(school_id))
        if not school:
            raise NotFoundError("School not found")
        return school

    def update_school(self, school_id: int, data: dict, *, updated_by: Optional[int] = None) -> School:
        current = self.get_school(school_id)
        fields = self._clean_fields(data)
        if fields:
            self._schools.update_school(int(school_id), fields=fields)
            self._audit.log(
                "school_updated",
                user_id=updated_by,
                school_id=int(school_id),
                entity_type="school",
                entity_id=int(school_id),
                old_values={k: getattr(current, k) for k in fields},
                new_values=fields,
            )
        return self.get_school(school_id)
