from __future__ import annotations

import logging
from typing import Any, Optional

from ..core.exceptions import DatabaseError
from .repository import AuditRepository

logger = logging.getLogger(__name__)


class AuditService:
    """Writes audit events. A failed write is logged, never raised."""

    def __init__(self, audit: AuditRepository):
        self._audit = audit

    def log(
        self,
        action: str,
        *,
        user_id: Optional[int] = None,
        school_id: Optional[int] = None,
        entity_type: Optional[str] = None,
        entity_id: Optional[int] = None,
        old_values: Optional[dict[str, Any]] = None,
        new_values: Optional[dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        try:
            self._audit.record(
                user_id=user_id,
                school_id=school_id,
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                old_values=old_values,
                new_values=new_values,
                ip_address=ip_address,
                user_agent=user_agent,
            )
        except DatabaseError:
            logger.warning("Could not write audit event %s for user %s", action, user_id, exc_info=True)

    def recent(self, school_id: int, *, limit: int = 100):
        return self._audit.list_for_school(int(school_id), limit=int(limit))
