"""Durable log and settings storage.

Both collections live in a single ``StorageSlot`` row each and every write
serializes the whole collection, so a write is O(n) in the number of logs.
That is fine for one person's tracker and not meant for heavy write volume.
"""
import logging
import os
import uuid
from datetime import UTC, datetime
from typing import Any, Iterable, List, Optional

from pydantic import TypeAdapter, ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from errors import NotFoundError, ParseError, StorageError
from models import StorageSlot
from schemas import LogRecord, LogUpdate, Settings

logger = logging.getLogger(__name__)

LOGS_KEY = "logs"
SETTINGS_KEY = "settings"

# Browsers cap a key-value origin at roughly 5 MiB; mirror that by default
STORAGE_QUOTA_BYTES = int(os.getenv("NICOTRACKER_STORAGE_QUOTA_BYTES", str(5 * 1024 * 1024)))

_logs_adapter = TypeAdapter(List[LogRecord])
_raw_logs_adapter = TypeAdapter(List[dict[str, Any]])


def generate_id(now: Optional[datetime] = None) -> str:
    """Millisecond epoch plus a random suffix, e.g. ``1718000000000-3f9a1c2b7``."""
    now = now or datetime.now(UTC)
    return f"{int(now.timestamp() * 1000)}-{uuid.uuid4().hex[:9]}"


def get_time_of_day(moment: datetime) -> str:
    """Map the local hour of ``moment`` to a time-of-day bucket."""
    hour = moment.hour
    if 5 <= hour < 12:
        return "morning"
    if 12 <= hour < 17:
        return "afternoon"
    if 17 <= hour < 22:
        return "evening"
    return "night"


def local_today() -> str:
    return datetime.now().astimezone().date().isoformat()


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


class LogStore:
    """Read-modify-write accessors over the ``logs`` and ``settings`` slots."""

    def __init__(self, session: Session, quota_bytes: int = STORAGE_QUOTA_BYTES):
        self.session = session
        self.quota_bytes = quota_bytes

    # -- raw slots -------------------------------------------------------

    def _read_slot(self, key: str) -> Optional[str]:
        slot = self.session.get(StorageSlot, key)
        return slot.value if slot else None

    def _write_slot(self, key: str, value: str) -> None:
        size = len(value.encode("utf-8"))
        if size > self.quota_bytes:
            logger.error(f"Refusing to write {size} bytes to '{key}' (quota {self.quota_bytes})")
            raise StorageError(f"Storage quota exceeded while saving {key}")

        try:
            slot = self.session.get(StorageSlot, key)
            if slot is None:
                slot = StorageSlot(key=key, value=value)
            else:
                slot.value = value
                slot.updated_at = datetime.now(UTC)
            self.session.add(slot)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Error saving {key}: {str(e)}")
            raise StorageError(f"Failed to save {key}") from e

    # -- logs ------------------------------------------------------------

    def parse_logs(self, blob: str) -> List[LogRecord]:
        """
        Decode the logs blob.

        A blob that is not a JSON array of objects raises ``ParseError``. Records
        failing validation inside an otherwise sound blob are skipped and logged.
        """
        try:
            items = _raw_logs_adapter.validate_json(blob)
        except ValidationError as e:
            raise ParseError(f"Stored logs are corrupt: {e.error_count()} error(s)") from e

        records = []
        for position, item in enumerate(items):
            try:
                records.append(LogRecord.model_validate(item))
            except ValidationError as e:
                logger.warning(
                    f"Skipping invalid stored log {item.get('id')} at position {position}: "
                    f"{e.error_count()} error(s)"
                )
        return records

    def load_all(self) -> List[LogRecord]:
        """All stored records, or an empty list if the slot is missing or corrupt."""
        blob = self._read_slot(LOGS_KEY)
        if not blob:
            return []
        try:
            return self.parse_logs(blob)
        except ParseError as e:
            logger.error(f"Error loading logs: {str(e)}")
            return []

    def save_all(self, records: Iterable[LogRecord]) -> None:
        blob = _logs_adapter.dump_json(list(records), by_alias=True).decode("utf-8")
        self._write_slot(LOGS_KEY, blob)

    def append(self, partial: dict[str, Any]) -> LogRecord:
        """Store a new record built from ``partial`` with a fresh id and timestamp."""
        now = datetime.now(UTC)
        local_now = now.astimezone()
        data = {
            "date": local_now.date().isoformat(),
            "timeOfDay": get_time_of_day(local_now),
            **partial,
            "id": generate_id(now),
            "timestamp": now.isoformat(),
        }
        record = LogRecord.model_validate(data)

        records = self.load_all()
        records.append(record)
        self.save_all(records)
        logger.info(f"Added log {record.id} ({record.source}, {record.estimated_mg} mg)")
        return record

    def amend(self, log_id: str, updates: dict[str, Any]) -> LogRecord:
        """Shallow-merge ``updates`` into the record with ``log_id``."""
        records = self.load_all()
        index = next((i for i, r in enumerate(records) if r.id == log_id), None)
        if index is None:
            raise NotFoundError(f"Log not found: {log_id}")

        changes = LogUpdate.model_validate(updates).model_dump(exclude_unset=True)
        records[index] = LogRecord.model_validate({**records[index].model_dump(), **changes})
        self.save_all(records)
        logger.info(f"Updated log {log_id}: {sorted(changes)}")
        return records[index]

    def most_recent_today(self, today: Optional[str] = None) -> Optional[LogRecord]:
        """Latest record whose stored date is today; ties go to the last one written."""
        today = today or local_today()
        candidates = [(i, r) for i, r in enumerate(self.load_all()) if r.date == today]
        if not candidates:
            return None
        _, record = max(candidates, key=lambda pair: (parse_timestamp(pair[1].timestamp), pair[0]))
        return record

    def logs_by_date(self, day: str) -> List[LogRecord]:
        return [r for r in self.load_all() if r.date == day]

    def logs_by_date_range(self, start: Optional[str] = None, end: Optional[str] = None) -> List[LogRecord]:
        """Records with ``start <= date <= end``; either bound may be omitted."""
        records = self.load_all()
        if start:
            records = [r for r in records if r.date >= start]
        if end:
            records = [r for r in records if r.date <= end]
        return records

    # -- settings --------------------------------------------------------

    def load_settings(self) -> Settings:
        blob = self._read_slot(SETTINGS_KEY)
        if not blob:
            return Settings()
        try:
            return Settings.model_validate_json(blob)
        except ValidationError as e:
            logger.error(f"Error loading settings: {e.error_count()} error(s), using defaults")
            return Settings()

    def save_settings(self, settings: Settings) -> None:
        self._write_slot(SETTINGS_KEY, settings.model_dump_json(by_alias=True))
        logger.info("Settings saved")
