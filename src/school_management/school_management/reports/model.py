from __future__ import annotations

from dataclasses import dataclass, field

from ..common.serialization import to_jsonable


@dataclass(frozen=True)
class ReportData:
    period: dict
    summary: dict
    sections: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return to_jsonable({"period": self.period, "summary": self.summary, **self.sections})
