import random
from datetime import datetime, timedelta
from typing import List, Optional

from sqlmodel import Session

from db import engine
from schemas import LogRecord
from storage import LogStore

SOURCES = ["Vape", "Cigarettes", "Snus"]


def _sample_log(rng: random.Random, day: datetime, time_of_day: str, hour: int, **fields) -> LogRecord:
    moment = day.replace(hour=hour, minute=rng.randrange(60), second=0, microsecond=0)
    date_str = day.date().isoformat()
    return LogRecord(
        id=f"sample-{date_str}-{time_of_day}",
        timestamp=moment.isoformat(),
        date=date_str,
        time_of_day=time_of_day,
        source=rng.choice(SOURCES),
        unit_type="puffs",
        notes=None,
        **fields,
    )


def generate_sample_logs(now: Optional[datetime] = None, rng: Optional[random.Random] = None) -> List[LogRecord]:
    """Demo logs for the past 7 days: every morning, some afternoons and evenings."""
    now = now or datetime.now().astimezone()
    rng = rng or random.Random()
    logs = []

    for days_ago in range(6, -1, -1):
        day = now - timedelta(days=days_ago)

        logs.append(_sample_log(
            rng, day, "morning", 8 + rng.randrange(2),
            amount=rng.randrange(10) + 5,
            estimated_mg=rng.random() * 5 + 2,
            reason="Just woke up / habit",
            health_effects=["Alertness", "Better focus"],
            focus_level=rng.randrange(3) + 6,
            anxiety_level=rng.randrange(3) + 2,
            clear_thinking=True,
        ))

        # Afternoon log (50% chance)
        if rng.random() > 0.5:
            logs.append(_sample_log(
                rng, day, "afternoon", 14 + rng.randrange(3),
                amount=rng.randrange(8) + 3,
                estimated_mg=rng.random() * 4 + 1,
                reason=rng.choice(["Stress", "Studying / focus", "Boredom"]),
                health_effects=["Reduced stress", "Better focus"],
                focus_level=rng.randrange(4) + 5,
                anxiety_level=rng.randrange(4) + 3,
                clear_thinking=rng.random() > 0.3,
            ))

        # Evening log (30% chance)
        if rng.random() > 0.7:
            logs.append(_sample_log(
                rng, day, "evening", 18 + rng.randrange(2),
                amount=rng.randrange(6) + 2,
                estimated_mg=rng.random() * 3 + 1,
                reason=rng.choice(["Partying / social", "Stress", "Boredom"]),
                health_effects=["Reduced stress"],
                focus_level=rng.randrange(3) + 4,
                anxiety_level=rng.randrange(3) + 4,
                clear_thinking=rng.random() > 0.5,
            ))

    return logs


def initialize_sample_data(store: LogStore) -> bool:
    """Seed the store with demo logs if it has none. Returns True if it seeded."""
    if store.load_all():
        return False
    store.save_all(generate_sample_logs())
    return True


if __name__ == "__main__":
    from db import create_db_and_tables

    create_db_and_tables()
    with Session(engine) as session:
        if initialize_sample_data(LogStore(session)):
            print("Seeded database with sample logs.")
        else:
            print("Database already has data, skipping seed.")
