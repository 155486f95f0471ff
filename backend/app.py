import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlmodel import Session

import analytics
from db import create_db_and_tables, engine, get_session
from errors import ImportReadError, ImportValidationError, NotFoundError, StorageError
from schemas import (
    CheckInRequest,
    CheckInResponse,
    ImportResponse,
    IntakeRequest,
    LogRecord,
    LogUpdate,
    Settings,
)
from seed import initialize_sample_data
from storage import LogStore, local_today
from transfer import export_data, export_filename, import_data
from wizard import IntakeWizard, record_intake, submit_check_in

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

SEED_SAMPLE_DATA = os.getenv("NICOTRACKER_SEED_SAMPLE_DATA", "").lower() in ("1", "true", "yes")

# Write failures mean the medium is full or unavailable
STORAGE_ERROR_STATUS = 507


def get_store(session: Session = Depends(get_session)) -> LogStore:
    return LogStore(session)


def _validate_date(value: str, field: str) -> str:
    try:
        datetime.strptime(value, "%Y-%m-%d")
    except ValueError as e:
        logger.error(f"Invalid date format for {field}: {value}")
        raise HTTPException(
            status_code=400, detail=f"{field} must be in YYYY-MM-DD format"
        ) from e
    return value


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database on startup."""
    create_db_and_tables()

    if SEED_SAMPLE_DATA:
        with Session(engine) as session:
            if initialize_sample_data(LogStore(session)):
                logger.info("Seeded empty store with sample logs")

    logger.info("Database initialized")
    yield


# Create FastAPI app
app = FastAPI(title="NicoTracker API", version="1.0.0", lifespan=lifespan)

# The tracker UI runs in the browser, possibly from a different origin
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/logs", response_model=list[LogRecord])
def get_logs(
    date_from: str = Query(None, description="Start date filter (YYYY-MM-DD)"),
    date_to: str = Query(None, description="End date filter (YYYY-MM-DD)"),
    store: LogStore = Depends(get_store),
):
    """Get logs with optional date filtering."""
    logger.info(f"Logs request - from: {date_from}, to: {date_to}")
    if date_from:
        _validate_date(date_from, "date_from")
    if date_to:
        _validate_date(date_to, "date_to")
    return store.logs_by_date_range(date_from, date_to)


@app.post("/logs", response_model=LogRecord, status_code=201)
def create_log(request: IntakeRequest, store: LogStore = Depends(get_store)):
    """Confirm a completed intake wizard and store it as a new log."""
    wizard = IntakeWizard.from_request(request)
    invalid_step = wizard.first_invalid_step()
    if invalid_step is not None:
        logger.warning(f"Rejected intake: wizard step {invalid_step} incomplete")
        raise HTTPException(status_code=422, detail=f"Wizard step {invalid_step} is incomplete")

    try:
        record = record_intake(store, wizard)
    except StorageError as e:
        logger.error(f"Error saving intake: {str(e)}")
        raise HTTPException(status_code=STORAGE_ERROR_STATUS, detail=str(e)) from e

    logger.info(f"Intake logged: {record.id} ({record.estimated_mg:.2f} mg)")
    return record


@app.patch("/logs/{log_id}", response_model=LogRecord)
def amend_log(log_id: str, updates: LogUpdate, store: LogStore = Depends(get_store)):
    """Shallow-merge fields into an existing log."""
    logger.info(f"Amend request for log: {log_id}")
    try:
        return store.amend(log_id, updates.model_dump(exclude_unset=True))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail="Log not found") from e
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors()[0]["msg"]) from e
    except StorageError as e:
        logger.error(f"Error amending log: {str(e)}")
        raise HTTPException(status_code=STORAGE_ERROR_STATUS, detail=str(e)) from e


@app.post("/checkins", response_model=CheckInResponse)
def create_check_in(request: CheckInRequest, store: LogStore = Depends(get_store)):
    """Record focus and anxiety against today's latest log, or as a check-in-only log."""
    try:
        record, created = submit_check_in(
            store,
            focus_level=request.focus_level,
            anxiety_level=request.anxiety_level,
            clear_thinking=request.clear_thinking,
            notes=request.notes,
        )
    except StorageError as e:
        logger.error(f"Error saving check-in: {str(e)}")
        raise HTTPException(status_code=STORAGE_ERROR_STATUS, detail=str(e)) from e

    return CheckInResponse(created=created, log=record)


@app.get("/settings", response_model=Settings)
def get_settings(store: LogStore = Depends(get_store)):
    return store.load_settings()


@app.put("/settings", response_model=Settings)
def put_settings(settings: Settings, store: LogStore = Depends(get_store)):
    """Replace the settings record wholesale."""
    try:
        store.save_settings(settings)
    except StorageError as e:
        logger.error(f"Error saving settings: {str(e)}")
        raise HTTPException(status_code=STORAGE_ERROR_STATUS, detail=str(e)) from e
    return settings


@app.get("/stats/daily")
def get_daily_stats(
    date: str = Query(None, description="Calendar date (YYYY-MM-DD), defaults to today"),
    store: LogStore = Depends(get_store),
):
    day = _validate_date(date, "date") if date else local_today()
    return analytics.daily_stats(day, store.load_all())


@app.get("/stats/time-of-day")
def get_time_of_day_stats(store: LogStore = Depends(get_store)):
    return analytics.time_bucket_stats(store.load_all())


@app.get("/stats/sweet-spot")
def get_sweet_spot(store: LogStore = Depends(get_store)):
    return analytics.sweet_spot_matrix(store.load_all())


@app.get("/stats/streak")
def get_streak(store: LogStore = Depends(get_store)):
    return {"streak": analytics.calculate_streak(store.load_all())}


@app.get("/dashboard")
def get_dashboard(store: LogStore = Depends(get_store)):
    """Today's total against the daily limit, with status text and streak."""
    return analytics.dashboard_summary(store.load_all(), store.load_settings())


@app.get("/export")
def export_all(store: LogStore = Depends(get_store)):
    """Download all logs and settings as one JSON document."""
    document = export_data(store)
    logger.info(f"Exporting {len(document.logs)} logs")
    return JSONResponse(
        content=document.model_dump(mode="json", by_alias=True),
        headers={"Content-Disposition": f'attachment; filename="{export_filename()}"'},
    )


async def read_body(request: Request) -> bytes:
    """Raw request body, untouched by JSON body parsing."""
    return await request.body()


@app.post("/import", response_model=ImportResponse)
def import_all(raw: bytes = Depends(read_body), store: LogStore = Depends(get_store)):
    """Merge an exported JSON document, sent as the raw request body, into the store."""
    try:
        count = import_data(store, raw)
    except ImportReadError as e:
        logger.error(f"Import read error: {str(e)}")
        raise HTTPException(status_code=400, detail=str(e)) from e
    except ImportValidationError as e:
        logger.error(f"Import validation error: {str(e)}")
        raise HTTPException(status_code=422, detail=str(e)) from e
    except StorageError as e:
        logger.error(f"Error saving import: {str(e)}")
        raise HTTPException(status_code=STORAGE_ERROR_STATUS, detail=str(e)) from e

    return ImportResponse(ok=True, count=count, message=f"Imported {count} new log entries")


@app.get("/")
def root():
    """Root endpoint."""
    return {"message": "NicoTracker API", "docs": "/docs"}
