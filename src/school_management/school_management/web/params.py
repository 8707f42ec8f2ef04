from __future__ import annotations

from typing import Optional

from flask import request

from ..core.exceptions import ValidationError


def get_json() -> dict:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


def query_int(name: str, default: Optional[int] = None) -> Optional[int]:
    raw = request.args.get(name)
    if raw in (None, ""):
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be a number")


def query_str(name: str, default: Optional[str] = None) -> Optional[str]:
    raw = (request.args.get(name) or "").strip()
    return raw or default


def query_bool(name: str, default: bool = False) -> bool:
    raw = request.args.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def body_int(payload: dict, name: str, label: str) -> int:
    try:
        return int(payload.get(name))
    except (TypeError, ValueError):
        raise ValidationError(f"{label} is required")
