"""CSV schema detection: header scoring, unit hints, unique-field assignment."""

import pytest

from liftlog.semantic import (
    detect_field_mappings,
    detect_sequential_resets,
    extract_unit_from_header,
    find_best_field_match,
    normalize,
    normalize_header,
    similarity,
)


def test_normalizers() -> None:
    assert normalize("Weight (kg)") == "weightkg"
    assert normalize_header("\ufeffWeight (kg)") == "weight_kg"
    assert normalize_header("  Set #  ") == "set"


def test_similarity() -> None:
    assert similarity("Weight", "weight") == 1.0
    assert similarity("weight", "weightkg") == pytest.approx(0.7 + 6 / 8 * 0.25)
    assert similarity("x", "weight") == 0.0
    assert similarity("reps", "load") == 0.0


@pytest.mark.parametrize(
    "header,unit",
    [
        ("Weight (lbs)", "lbs"),
        ("Weight (kg)", "kg"),
        ("weight_kg", "kg"),
        ("Weight Pounds", "lbs"),
        ("Distance (mi)", "miles"),
        ("distance_km", "km"),
        ("Distance Meters", "meters"),
        ("Reps", None),
        ("Weight", None),
    ],
)
def test_extract_unit_from_header(header, unit) -> None:
    assert extract_unit_from_header(header) == unit


def test_detect_sequential_resets() -> None:
    assert detect_sequential_resets([1, 2, 3, 1, 2, 3])
    assert detect_sequential_resets([1, 2])
    assert not detect_sequential_resets([20, 30, 40])


def test_exact_header_match() -> None:
    match = find_best_field_match("Exercise Name", ["Bench Press", "Squat"])
    assert match is not None
    assert match.field == "exercise"
    assert match.confidence == pytest.approx(1.0)
    assert match.unit_hint is None


def test_weight_header_carries_unit_hint() -> None:
    match = find_best_field_match("Weight (lbs)", [135, 145])
    assert match is not None
    assert match.field == "weight"
    assert match.unit_hint == "lbs"


def test_unknown_header_is_unmapped() -> None:
    assert find_best_field_match("zzqx", ["a", "b"]) is None
    assert find_best_field_match("", ["a"]) is None


def test_symbol_header_matches_literally() -> None:
    match = find_best_field_match("#", [1, 2, 3])
    assert match is not None and match.field == "set_index"


def test_detect_field_mappings_typical_export() -> None:
    headers = ["Date", "Workout Name", "Exercise Name", "Set Order", "Weight (kg)", "Reps", "RPE", "Notes"]
    rows = [
        {"Date": "2024-01-05 18:00:00", "Workout Name": "Push", "Exercise Name": "Bench Press",
         "Set Order": 1, "Weight (kg)": 80, "Reps": 5, "RPE": 8, "Notes": None},
        {"Date": "2024-01-05 18:00:00", "Workout Name": "Push", "Exercise Name": "Bench Press",
         "Set Order": 2, "Weight (kg)": 80, "Reps": 5, "RPE": 8.5, "Notes": "grindy"},
    ]
    mappings = detect_field_mappings(headers, rows)
    fields = {h: m.field for h, m in mappings.items()}
    assert fields == {
        "Date": "start_time",
        "Workout Name": "workout_title",
        "Exercise Name": "exercise",
        "Set Order": "set_index",
        "Weight (kg)": "weight",
        "Reps": "reps",
        "RPE": "rpe",
        "Notes": "notes",
    }
    assert mappings["Weight (kg)"].unit_hint == "kg"
    assert list(mappings) == headers


def test_unique_field_goes_to_one_header() -> None:
    """Date and Time both name start_time; the first (equal confidence) keeps it, the other stays unmapped."""
    headers = ["Date", "Time", "Exercise", "Reps"]
    rows = [{"Date": "2024-01-05", "Time": "18:00", "Exercise": "Squat", "Reps": 5}]
    mappings = detect_field_mappings(headers, rows)
    assert mappings["Date"].field == "start_time"
    assert "Time" not in mappings


def test_non_unique_field_maps_several_headers() -> None:
    headers = ["Date", "Exercise", "Notes", "Comment"]
    rows = [{"Date": "2024-01-05", "Exercise": "Squat", "Notes": "ok", "Comment": "fine"}]
    mappings = detect_field_mappings(headers, rows)
    assert mappings["Notes"].field == "notes"
    assert mappings["Comment"].field == "notes"


def test_detect_field_mappings_is_idempotent() -> None:
    headers = ["Datum", "Lift", "Load", "Unit", "Reps", "RIR"]
    rows = [{"Datum": "05/01/2024", "Lift": "Squat", "Load": 100, "Unit": "kg", "Reps": 5, "RIR": 2}]
    first = detect_field_mappings(headers, rows)
    second = detect_field_mappings(headers, rows)
    assert first == second
