#!/usr/bin/env python3
"""
Script to verify that the stored logs and settings are intact.
Run this before and after importing data or moving the database.
"""
import logging
from collections import Counter

from pydantic import ValidationError
from sqlmodel import Session

from db import engine
from errors import ParseError
from models import StorageSlot
from schemas import Settings
from storage import LOGS_KEY, SETTINGS_KEY, LogStore

logger = logging.getLogger(__name__)


def check_data(session: Session) -> dict:
    """Report whether both slots parse and whether every log id is unique."""
    report = {"logs_ok": True, "settings_ok": True, "total_logs": 0, "duplicate_ids": []}
    store = LogStore(session)

    logs_slot = session.get(StorageSlot, LOGS_KEY)
    if logs_slot is None:
        logger.info("No logs stored yet")
    else:
        try:
            records = store.parse_logs(logs_slot.value)
        except ParseError as e:
            logger.error(f"Stored logs do not parse: {str(e)}")
            report["logs_ok"] = False
            records = []

        report["total_logs"] = len(records)
        counts = Counter(r.id for r in records)
        report["duplicate_ids"] = sorted(log_id for log_id, n in counts.items() if n > 1)
        if report["duplicate_ids"]:
            logger.warning(f"Found {len(report['duplicate_ids'])} duplicated log id(s):")
            for log_id in report["duplicate_ids"]:
                logger.warning(f"   - {log_id} x{counts[log_id]}")
        else:
            logger.info(f"All {len(records)} log ids are unique")

    settings_slot = session.get(StorageSlot, SETTINGS_KEY)
    if settings_slot is not None:
        try:
            Settings.model_validate_json(settings_slot.value)
        except ValidationError as e:
            logger.error(f"Stored settings do not parse: {e.error_count()} error(s)")
            report["settings_ok"] = False

    return report


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    with Session(engine) as session:
        result = check_data(session)
    healthy = result["logs_ok"] and result["settings_ok"] and not result["duplicate_ids"]
    raise SystemExit(0 if healthy else 1)
