"""Fixed-schema sources: Lyfta rows and Hevy workout records."""

import pytest

from liftlog.adapters import is_lyfta_csv, map_hevy_workouts, parse_lyfta_rows
from liftlog.models import MatchResult, TransformStats

LYFTA_HEADERS = ["Title", "Date", "Duration", "Exercise", "Superset id", "Weight", "Reps", "Distance", "Time", "Set Type"]


@pytest.mark.parametrize(
    "headers,expected",
    [
        (LYFTA_HEADERS, True),
        (["\ufefftitle", "DATE", "duration", "exercise", "weight", "reps", "set-type"], True),
        (["Title", "Date", "Exercise", "Weight", "Reps"], False),
        ([], False),
        (None, False),
    ],
)
def test_is_lyfta_csv(headers, expected) -> None:
    assert is_lyfta_csv(headers) is expected


def _lyfta_row(**overrides) -> dict:
    row = {
        "Title": "Legs",
        "Date": "2025-03-01 10:00:00",
        "Duration": "00:45:00",
        "Exercise": "Squat (Barbell)",
        "Superset id": None,
        "Weight": 100,
        "Reps": 5,
        "Distance": None,
        "Time": None,
        "Set Type": "NORMAL_SET",
    }
    row.update(overrides)
    return row


def test_lyfta_rows_lbs_and_set_types() -> None:
    rows = [
        _lyfta_row(**{"Set Type": "WARMUP_SET", "Weight": 45}),
        _lyfta_row(),
        _lyfta_row(**{"Set Type": "DROP_SET"}),
        _lyfta_row(**{"Set Type": "LEFT"}),
    ]
    sets, dropped = parse_lyfta_rows(rows, unit="lbs")
    assert dropped == 0
    assert [s.set_type for s in sets] == ["warmup", "normal", "dropset", "left"]
    assert sets[1].weight_kg == pytest.approx(45.359237)
    assert [s.set_index for s in sets] == [1, 2, 3, 4]
    assert sets[0].start_time == "01 Mar 2025, 10:00"
    assert sets[0].end_time == "01 Mar 2025, 10:45"
    assert sets[0].title == "Legs"


def test_lyfta_rows_dropped_when_unusable() -> None:
    rows = [
        _lyfta_row(),
        _lyfta_row(Exercise=""),
        _lyfta_row(Date="yesterday"),
    ]
    sets, dropped = parse_lyfta_rows(rows)
    assert len(sets) == 1
    assert dropped == 2


def test_lyfta_rows_use_resolver() -> None:
    stats = TransformStats()
    sets, _ = parse_lyfta_rows(
        [_lyfta_row(Exercise="Back Squat")],
        resolver=lambda name: MatchResult(name="Squat (Barbell)", method="subset", confidence=0.7),
        stats=stats,
    )
    assert sets[0].exercise_title == "Squat (Barbell)"
    assert stats.representative_matches == 1


def _hevy_workout() -> dict:
    return {
        "name": "Push Day",
        "description": "felt strong",
        "start_time": 1704477600,  # 2024-01-05 18:00 UTC
        "end_time": 1704481500,
        "exercises": [
            {
                "title": "Bench Press (Barbell)",
                "notes": "pause reps",
                "superset_id": None,
                "sets": [
                    {"index": 2, "indicator": "normal", "weight_kg": 80, "reps": 5, "rpe": 9},
                    {"index": 0, "indicator": "warmup", "weight_kg": 40, "reps": 10},
                    {"index": 1, "indicator": "normal", "weight_kg": 80, "reps": 6, "rpe": 8},
                ],
            },
            {
                "title": "Rowing (Machine)",
                "superset_id": 1,
                "sets": [
                    {"index": 0, "indicator": "normal", "distance_meters": 1500, "duration_seconds": 420, "reps": None},
                ],
            },
            {"title": "", "sets": [{"index": 0, "reps": 10}]},
        ],
    }


def test_map_hevy_workouts() -> None:
    sets = map_hevy_workouts([_hevy_workout()])
    assert len(sets) == 4

    bench = [s for s in sets if s.exercise_title == "Bench Press (Barbell)"]
    assert [s.set_index for s in bench] == [1, 2, 3]
    assert [s.set_type for s in bench] == ["warmup", "normal", "normal"]
    assert [s.reps for s in bench] == [10, 6, 5]
    assert [s.rpe for s in bench] == [None, 8, 9]
    assert bench[0].start_time == "05 Jan 2024, 18:00"
    assert bench[0].end_time == "05 Jan 2024, 19:05"
    assert bench[0].title == "Push Day"
    assert bench[0].description == "felt strong"
    assert bench[0].exercise_notes == "pause reps"
    assert bench[0].superset_id == ""

    row = sets[-1]
    assert row.exercise_title == "Rowing (Machine)"
    assert row.distance_km == 1.5
    assert row.duration_seconds == 420
    assert row.reps == 0
    assert row.superset_id == "1"
    assert row.set_index == 1


def test_map_hevy_workouts_missing_times() -> None:
    sets = map_hevy_workouts([{"exercises": [{"title": "Plank", "sets": [{"index": 0, "duration_seconds": 60}]}]}])
    assert sets[0].start_time == ""
    assert sets[0].parsed_date is None
    assert sets[0].title == "Workout"


@pytest.mark.parametrize("start_time", [1704477600000, 10**20, 86400])
def test_map_hevy_workouts_epoch_out_of_range(start_time) -> None:
    """Milliseconds, absurd values and pre-1971 instants leave the set undated."""
    workout = _hevy_workout()
    workout["start_time"] = start_time
    sets = map_hevy_workouts([workout])
    assert len(sets) == 4
    assert sets[0].start_time == ""
    assert sets[0].parsed_date is None
    assert sets[0].end_time == "05 Jan 2024, 19:05"
