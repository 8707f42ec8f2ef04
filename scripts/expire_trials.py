"""Expire trials and subscriptions past their end date, then purge dead sessions.

Meant to run from cron, e.g. every hour.
"""

from __future__ import annotations

import importlib
import logging
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from config import get_settings_module

from src.school_management.school_management.container import build_container


def main() -> None:
    settings = importlib.import_module(get_settings_module())
    logging.basicConfig(level=getattr(logging, str(getattr(settings, "LOG_LEVEL", "INFO")).upper(), logging.INFO))

    container = build_container(
        db_config=dict(settings.DB_CONFIG),
        trial_days=int(getattr(settings, "DEFAULT_TRIAL_DAYS", 30)),
    )
    result = container.trial_service.update_expired_trials()
    purged = container.session_service.purge_expired_sessions()
    print(
        f"OK: {result['trials_expired']} trials and "
        f"{result['subscriptions_expired']} subscriptions expired, {purged} sessions purged"
    )


if __name__ == "__main__":
    main()
