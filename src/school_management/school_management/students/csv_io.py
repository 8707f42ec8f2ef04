"""CSV import/export of student lists (pandas)."""

from __future__ import annotations

import io
from typing import IO, Iterable

import pandas as pd

from .model import Student

EXPORT_COLUMNS = [
    "admission_no",
    "first_name",
    "last_name",
    "other_name",
    "gender",
    "date_of_birth",
    "class_name",
    "status",
    "admission_date",
    "guardian_name",
    "guardian_phone",
    "phone",
    "email",
]

IMPORT_COLUMNS = (
    "first_name",
    "last_name",
    "other_name",
    "date_of_birth",
    "gender",
    "class_id",
    "guardian_name",
    "guardian_phone",
    "phone",
    "email",
    "address",
    "notes",
)


def students_to_csv(students: Iterable[Student]) -> bytes:
    rows = []
    for s in students:
        data = s.to_dict()
        rows.append({col: data.get(col) for col in EXPORT_COLUMNS})
    df = pd.DataFrame(rows, columns=EXPORT_COLUMNS)
    # utf-8-sig so Excel opens names with accents correctly
    return df.to_csv(index=False).encode("utf-8-sig")


def read_students_csv(source: IO | bytes | str) -> list[dict]:
    """Parse an uploaded CSV into admission payloads (one dict per row).

    Headers are matched case-insensitively; unknown columns are ignored.
    """
    if isinstance(source, bytes):
        source = io.BytesIO(source)
    elif isinstance(source, str):
        source = io.StringIO(source)

    df = pd.read_csv(source, dtype=str, keep_default_na=False)
    df.columns = [str(c).strip().lower().replace(" ", "_") for c in df.columns]
    df = df[[c for c in df.columns if c in IMPORT_COLUMNS]]

    records = []
    for record in df.to_dict(orient="records"):
        records.append({k: (v.strip() if isinstance(v, str) else v) for k, v in record.items() if v not in ("", None)})
    return records
