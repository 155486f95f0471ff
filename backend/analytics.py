"""Aggregations over log records for the dashboard, chart and heatmap.

Every function here is pure: it reads the records it is given and returns
plain dicts. Nothing is cached, callers recompute on each request.
"""
from collections import defaultdict
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Sequence

from schemas import TIME_OF_DAY_BUCKETS, LogRecord, Settings
from storage import local_today

# (lower bound inclusive, upper bound exclusive, label)
DOSE_BUCKETS = [
    (0, 5, "0-5 mg"),
    (5, 10, "5-10 mg"),
    (10, 15, "10-15 mg"),
    (15, 20, "15-20 mg"),
    (20, float("inf"), "20+ mg"),
]
TIME_BUCKET_LABELS = ["6AM", "12PM", "6PM", "9PM"]


def _mean(values: Sequence[float]) -> Optional[float]:
    if not values:
        return None
    return sum(values) / len(values)


def _as_date(value) -> date:
    if value is None:
        value = local_today()
    if isinstance(value, str):
        return date.fromisoformat(value)
    return value


def daily_stats(day: str, records: Iterable[LogRecord]) -> Dict:
    """Totals and average levels for one calendar date."""
    day_logs = [r for r in records if r.date == day]

    focus = [r.focus_level for r in day_logs if r.focus_level is not None]
    anxiety = [r.anxiety_level for r in day_logs if r.anxiety_level is not None]

    return {
        "date": day,
        "totalMg": sum(r.estimated_mg or 0 for r in day_logs),
        "eventCount": len(day_logs),
        "avgFocus": _mean(focus),
        "avgAnxiety": _mean(anxiety),
        "logs": day_logs,
    }


def time_bucket_stats(records: Iterable[LogRecord]) -> Dict[str, Dict]:
    """
    Average focus and anxiety per time of day.

    ``count`` is the number of usable samples: whichever of focus or anxiety
    was reported more often in the bucket, not the number of records.
    """
    focus: Dict[str, List[int]] = defaultdict(list)
    anxiety: Dict[str, List[int]] = defaultdict(list)

    for record in records:
        if not record.time_of_day:
            continue
        if record.focus_level is not None:
            focus[record.time_of_day].append(record.focus_level)
        if record.anxiety_level is not None:
            anxiety[record.time_of_day].append(record.anxiety_level)

    return {
        bucket: {
            "avgFocus": _mean(focus[bucket]),
            "avgAnxiety": _mean(anxiety[bucket]),
            "count": max(len(focus[bucket]), len(anxiety[bucket])),
        }
        for bucket in TIME_OF_DAY_BUCKETS
    }


def sweet_spot_score(avg_focus: float, avg_anxiety: float) -> float:
    """Map focus minus anxiety, which spans [-9, 9], onto a 0-100 score."""
    score = ((avg_focus - avg_anxiety) + 9) / 18 * 100
    return max(0.0, min(100.0, score))


def _dose_bucket_index(mg: float) -> Optional[int]:
    for idx, (low, high, _) in enumerate(DOSE_BUCKETS):
        if low <= mg < high:
            return idx
    return None


def sweet_spot_matrix(records: Iterable[LogRecord]) -> Dict:
    """
    Dose bucket x time of day grid of average focus, anxiety and score.

    Only records with a non-zero dose and both levels take part. A dose of
    exactly 0 is treated the same as a missing dose.
    """
    cells: Dict[tuple, Dict[str, List[int]]] = defaultdict(lambda: {"focus": [], "anxiety": []})

    for record in records:
        if not record.estimated_mg or not record.time_of_day:
            continue
        if record.focus_level is None or record.anxiety_level is None:
            continue
        dose_idx = _dose_bucket_index(record.estimated_mg)
        if dose_idx is None:
            continue
        cell = cells[(dose_idx, TIME_OF_DAY_BUCKETS.index(record.time_of_day))]
        cell["focus"].append(record.focus_level)
        cell["anxiety"].append(record.anxiety_level)

    result = {
        "doseBuckets": [label for _, _, label in DOSE_BUCKETS],
        "timeBuckets": list(TIME_BUCKET_LABELS),
        "cells": [],
    }
    for dose_idx, (_, _, dose_label) in enumerate(DOSE_BUCKETS):
        for time_idx, time_of_day in enumerate(TIME_OF_DAY_BUCKETS):
            cell = cells.get((dose_idx, time_idx))
            avg_focus = avg_anxiety = metric = None
            count = 0
            if cell:
                count = len(cell["focus"])
                avg_focus = _mean(cell["focus"])
                avg_anxiety = _mean(cell["anxiety"])
                metric = sweet_spot_score(avg_focus, avg_anxiety)
            result["cells"].append({
                "doseIdx": dose_idx,
                "timeIdx": time_idx,
                "doseLabel": dose_label,
                "timeOfDay": time_of_day,
                "timeLabel": TIME_BUCKET_LABELS[time_idx],
                "avgFocus": avg_focus,
                "avgAnxiety": avg_anxiety,
                "metric": metric,
                "count": count,
            })
    return result


def calculate_streak(records: Iterable[LogRecord], today=None) -> int:
    """Consecutive calendar days with at least one record, counting back from today."""
    dates_with_logs = {r.date for r in records}
    current = _as_date(today)
    streak = 0
    while current.isoformat() in dates_with_logs:
        streak += 1
        current -= timedelta(days=1)
    return streak


def limit_status(percentage: float) -> str:
    if percentage >= 100:
        return "Over Limit"
    if percentage >= 80:
        return "Approaching Limit"
    if percentage >= 50:
        return "Be Mindful"
    if percentage > 0:
        return "Within Limit"
    return "Great Start"


def dashboard_summary(records: Sequence[LogRecord], settings: Settings, today=None) -> Dict:
    """Today's intake against the daily mg limit, plus the current streak."""
    today = _as_date(today)
    stats = daily_stats(today.isoformat(), records)
    percentage = min(100.0, stats["totalMg"] / settings.daily_mg_limit * 100)
    return {
        "date": today.isoformat(),
        "totalMg": stats["totalMg"],
        "eventCount": stats["eventCount"],
        "dailyMgLimit": settings.daily_mg_limit,
        "percentage": percentage,
        "status": limit_status(percentage),
        "streak": calculate_streak(records, today),
    }
