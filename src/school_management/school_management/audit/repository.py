from __future__ import annotations

from typing import Any, Optional, Protocol, Sequence


class AuditRepository(Protocol):
    def record(
        self,
        *,
        user_id: Optional[int],
        school_id: Optional[int],
        action: str,
        entity_type: Optional[str],
        entity_id: Optional[int],
        old_values: Optional[dict[str, Any]],
        new_values: Optional[dict[str, Any]],
        ip_address: Optional[str],
        user_agent: Optional[str],
    ) -> int:
        raise NotImplementedError

    def list_for_school(self, school_id: int, *, limit: int = 100) -> Sequence[dict]:
        raise NotImplementedError
