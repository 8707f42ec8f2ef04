from __future__ import annotations

from typing import Optional, Protocol

from .model import School


class SchoolRepository(Protocol):
    def get_by_id(self, school_id: int) -> Optional[School]:
        raise NotImplementedError

    def code_exists(self, school_code: str) -> bool:
        raise NotImplementedError

    def create_school(self, *, school_code: str, fields: dict, created_by: Optional[int]) -> int:
        """`fields` holds the editable School columns (name, address, ...)."""

        raise NotImplementedError

    def update_school(self, school_id: int, *, fields: dict) -> bool:
        raise NotImplementedError
