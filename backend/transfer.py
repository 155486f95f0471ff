"""Export and import of the full tracker data as a single JSON document."""
import json
import logging
import sys
from datetime import UTC, datetime
from pathlib import Path
from typing import Dict, Union

from pydantic import ValidationError

from errors import ImportReadError, ImportValidationError
from schemas import ExportDocument, LogRecord, Settings
from storage import LogStore

logger = logging.getLogger(__name__)

EXPORT_VERSION = "1.0"


def export_filename(now: datetime = None) -> str:
    now = now or datetime.now().astimezone()
    return f"nicotracker-export-{now.date().isoformat()}.json"


def export_data(store: LogStore) -> ExportDocument:
    """Snapshot of all logs and settings."""
    return ExportDocument(
        version=EXPORT_VERSION,
        export_date=datetime.now(UTC).isoformat(),
        logs=store.load_all(),
        settings=store.load_settings(),
    )


def read_import_file(path: Union[str, Path]) -> bytes:
    try:
        return Path(path).read_bytes()
    except OSError as e:
        logger.error(f"Failed to read import file {path}: {str(e)}")
        raise ImportReadError("Failed to read file") from e


def import_data(store: LogStore, raw: Union[bytes, str]) -> int:
    """
    Merge an export document into the store.

    Records whose id is already stored (or appeared earlier in the same file)
    are skipped, never overwritten. Imported settings override only the keys
    they carry. The whole document is validated before anything is written,
    so a rejected import leaves existing data untouched.

    Returns the number of records added.
    """
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ImportReadError("Failed to read file") from e

    try:
        document = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ImportValidationError(f"Invalid file format: {e.msg}") from e

    if not isinstance(document, dict) or not isinstance(document.get("logs"), list):
        raise ImportValidationError("Invalid file format: missing logs array")

    try:
        imported_logs = [LogRecord.model_validate(item) for item in document["logs"]]
    except ValidationError as e:
        raise ImportValidationError(f"Invalid log entry: {e.errors()[0]['msg']}") from e

    merged_settings = None
    imported_settings = document.get("settings")
    if imported_settings:
        if not isinstance(imported_settings, dict):
            raise ImportValidationError("Invalid file format: settings must be an object")
        current = store.load_settings().model_dump(by_alias=True)
        try:
            merged_settings = Settings.model_validate({**current, **imported_settings})
        except ValidationError as e:
            raise ImportValidationError(f"Invalid settings: {e.errors()[0]['msg']}") from e

    existing_logs = store.load_all()
    seen_ids = {r.id for r in existing_logs}
    new_logs = []
    for record in imported_logs:
        if record.id in seen_ids:
            continue
        seen_ids.add(record.id)
        new_logs.append(record)

    skipped = len(imported_logs) - len(new_logs)
    if skipped:
        logger.warning(f"Skipped {skipped} imported log(s) with ids already present")

    store.save_all(existing_logs + new_logs)
    if merged_settings is not None:
        store.save_settings(merged_settings)

    logger.info(f"Imported {len(new_logs)} new log entries")
    return len(new_logs)


def import_file(store: LogStore, path: Union[str, Path]) -> int:
    return import_data(store, read_import_file(path))


def write_export_file(store: LogStore, path: Union[str, Path]) -> Dict:
    document = export_data(store)
    Path(path).write_text(document.model_dump_json(by_alias=True, indent=2), encoding="utf-8")
    return {"path": str(path), "logs": len(document.logs)}


if __name__ == "__main__":
    from sqlmodel import Session

    from db import create_db_and_tables, engine

    if len(sys.argv) < 2 or sys.argv[1] not in ("export", "import"):
        print("usage: python transfer.py export [FILE] | import FILE")
        sys.exit(1)

    create_db_and_tables()
    with Session(engine) as session:
        store = LogStore(session)
        if sys.argv[1] == "export":
            target = sys.argv[2] if len(sys.argv) > 2 else export_filename()
            result = write_export_file(store, target)
            print(f"Exported {result['logs']} log entries to {result['path']}")
        else:
            if len(sys.argv) < 3:
                print("ERROR: import needs a file path")
                sys.exit(1)
            try:
                count = import_file(store, sys.argv[2])
            except (ImportReadError, ImportValidationError) as e:
                print(f"ERROR: {e}")
                sys.exit(1)
            print(f"Imported {count} new log entries")
