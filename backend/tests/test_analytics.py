import pytest

from analytics import (
    calculate_streak,
    daily_stats,
    dashboard_summary,
    limit_status,
    sweet_spot_matrix,
    time_bucket_stats,
)
from estimation import estimate_mg
from schemas import Settings


def _cell(matrix, dose_label, time_of_day):
    return next(
        c for c in matrix["cells"]
        if c["doseLabel"] == dose_label and c["timeOfDay"] == time_of_day
    )


@pytest.mark.parametrize("source", ["Vape", "Cigarettes", "Snus", "None", "Pipe"])
@pytest.mark.parametrize("quantity,strength", [(0, 5), (-1, 5), (3, 0), (3, -2), (None, 5), (3, None)])
def test_estimate_mg_invalid_input_is_zero(source, quantity, strength):
    assert estimate_mg(source, quantity, strength) == 0


def test_estimate_mg_per_source():
    assert estimate_mg("Cigarettes", 3, 2) == 6
    assert estimate_mg("Vape", 200, 10) == 10
    assert estimate_mg("Snus", 4, 1.5) == 6
    assert estimate_mg("Pipe", 4, 1.5) == 0


def test_daily_stats_empty_date(make_record):
    stats = daily_stats("2024-02-01", [make_record()])
    assert stats["eventCount"] == 0
    assert stats["totalMg"] == 0
    assert stats["avgFocus"] is None
    assert stats["avgAnxiety"] is None


def test_daily_stats_averages_only_present_levels(make_record):
    records = [
        make_record(estimated_mg=4, focus_level=8, anxiety_level=2),
        make_record(estimated_mg=None, focus_level=6),
        make_record(estimated_mg=2.5),
        make_record(date="2024-01-16", estimated_mg=100, focus_level=1),
    ]

    stats = daily_stats("2024-01-15", records)

    assert stats["eventCount"] == 3
    assert stats["totalMg"] == pytest.approx(6.5)
    assert stats["avgFocus"] == pytest.approx(7)
    assert stats["avgAnxiety"] == pytest.approx(2)
    assert len(stats["logs"]) == 3


def test_time_bucket_stats_count_is_max_of_samples(make_record):
    records = [
        make_record(time_of_day="morning", focus_level=6, anxiety_level=4),
        make_record(time_of_day="morning", focus_level=8),
        make_record(time_of_day="morning", focus_level=7),
        make_record(time_of_day="morning"),
        make_record(time_of_day="night", anxiety_level=9),
    ]

    stats = time_bucket_stats(records)

    assert list(stats) == ["morning", "afternoon", "evening", "night"]
    assert stats["morning"]["count"] == 3
    assert stats["morning"]["avgFocus"] == pytest.approx(7)
    assert stats["morning"]["avgAnxiety"] == pytest.approx(4)
    assert stats["night"] == {"avgFocus": None, "avgAnxiety": 9, "count": 1}
    assert stats["afternoon"] == {"avgFocus": None, "avgAnxiety": None, "count": 0}


def test_sweet_spot_matrix_cell_metric(make_record):
    matrix = sweet_spot_matrix([
        make_record(estimated_mg=7, time_of_day="evening", focus_level=8, anxiety_level=2),
    ])

    cell = _cell(matrix, "5-10 mg", "evening")
    assert cell["count"] == 1
    assert cell["avgFocus"] == 8
    assert cell["avgAnxiety"] == 2
    assert cell["metric"] == pytest.approx(83.333, abs=0.01)
    assert cell["timeLabel"] == "6PM"
    assert len(matrix["cells"]) == 20
    assert matrix["doseBuckets"] == ["0-5 mg", "5-10 mg", "10-15 mg", "15-20 mg", "20+ mg"]


def test_sweet_spot_matrix_bucket_edges_and_exclusions(make_record):
    matrix = sweet_spot_matrix([
        make_record(estimated_mg=5, focus_level=5, anxiety_level=5),
        make_record(estimated_mg=20, focus_level=10, anxiety_level=1),
        make_record(estimated_mg=250, focus_level=1, anxiety_level=10),
        make_record(estimated_mg=0, focus_level=9, anxiety_level=1),
        make_record(estimated_mg=3, focus_level=9),
    ])

    assert _cell(matrix, "5-10 mg", "morning")["metric"] == pytest.approx(50)
    top = _cell(matrix, "20+ mg", "morning")
    assert top["count"] == 2
    assert top["metric"] == pytest.approx(50)
    # Zero dose and a missing anxiety level both keep the record out
    empty = _cell(matrix, "0-5 mg", "morning")
    assert empty["count"] == 0
    assert empty["metric"] is None
    assert empty["avgFocus"] is None


def test_streak_counts_back_from_today(make_record):
    records = [
        make_record(date="2024-01-15"),
        make_record(date="2024-01-14"),
        make_record(date="2024-01-12"),
    ]
    assert calculate_streak(records, today="2024-01-15") == 2


def test_streak_is_zero_without_record_today(make_record):
    records = [make_record(date="2024-01-14"), make_record(date="2024-01-13")]
    assert calculate_streak(records, today="2024-01-15") == 0
    assert calculate_streak([], today="2024-01-15") == 0


def test_streak_crosses_month_boundary(make_record):
    records = [make_record(date="2024-03-01"), make_record(date="2024-02-29")]
    assert calculate_streak(records, today="2024-03-01") == 2


@pytest.mark.parametrize(
    "percentage,status",
    [(100, "Over Limit"), (85, "Approaching Limit"), (50, "Be Mindful"), (0.1, "Within Limit"), (0, "Great Start")],
)
def test_limit_status(percentage, status):
    assert limit_status(percentage) == status


def test_dashboard_summary_caps_percentage(make_record):
    records = [make_record(estimated_mg=30), make_record(estimated_mg=30)]
    summary = dashboard_summary(records, Settings(daily_mg_limit=40), today="2024-01-15")

    assert summary["totalMg"] == 60
    assert summary["percentage"] == 100
    assert summary["status"] == "Over Limit"
    assert summary["streak"] == 1


def test_aggregations_are_pure(make_record):
    records = [
        make_record(estimated_mg=7, time_of_day="evening", focus_level=8, anxiety_level=2),
        make_record(estimated_mg=12, time_of_day="morning", focus_level=4, anxiety_level=6),
    ]
    snapshot = [r.model_copy() for r in records]

    assert sweet_spot_matrix(records) == sweet_spot_matrix(records)
    assert time_bucket_stats(records) == time_bucket_stats(records)
    assert daily_stats("2024-01-15", records) == daily_stats("2024-01-15", records)
    assert calculate_streak(records, "2024-01-15") == calculate_streak(records, "2024-01-15")
    assert records == snapshot
