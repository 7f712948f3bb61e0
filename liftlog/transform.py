"""Row transformer: mapped CSV rows -> CanonicalSet, plus the set-index and title post-passes."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Mapping, Optional

from .models import CanonicalSet, FieldMatch, ParseOptions, SemanticField, TransformStats
from .parsers import (
    normalize_set_type,
    parse_duration,
    parse_flexible_date,
    parse_flexible_number,
    rir_to_rpe,
)
from .semantic import normalize

OUTPUT_DATE_FORMAT = "%d %b %Y, %H:%M"
DEFAULT_TITLE = "Workout"

LBS_TO_KG = 0.45359237
MILES_TO_KM = 1.609344
METERS_TO_KM = 0.001
FEET_TO_KM = 0.0003048


# --- Unit conversion ---

def to_kg(weight: float, row_unit: str | None, header_unit: str | None, user_unit: str) -> float:
    """Row unit column wins, then the unit declared in the header, then the caller's preference."""
    if not math.isfinite(weight) or weight < 0:
        return 0.0
    unit = normalize(row_unit or "") or normalize(header_unit or "") or user_unit
    if unit.startswith("kg") or unit in ("kilogram", "kilograms"):
        return weight
    if unit.startswith("lb") or unit in ("pound", "pounds"):
        return weight * LBS_TO_KG
    return weight * LBS_TO_KG if user_unit == "lbs" else weight


def to_km(distance: float, row_unit: str | None, header_unit: str | None, user_unit: str = "km") -> float:
    if not math.isfinite(distance) or distance < 0:
        return 0.0
    unit = normalize(row_unit or "") or normalize(header_unit or "") or user_unit
    if unit.startswith("km") or unit in ("kilometer", "kilometre"):
        return distance
    if unit.startswith("mi") or unit == "mile":
        return distance * MILES_TO_KM
    if unit == "m" or unit.startswith("meter") or unit.startswith("metre"):
        return distance * METERS_TO_KM
    if unit.startswith("ft") or unit in ("feet", "foot"):
        return distance * FEET_TO_KM
    return distance


# --- Row transformation ---

@dataclass
class TransformContext:
    field_mappings: Mapping[str, FieldMatch]
    options: ParseOptions
    stats: TransformStats


@dataclass(frozen=True)
class _Cell:
    value: Any
    unit_hint: Optional[str] = None


def _get_field(row: Mapping[str, Any], mappings: Mapping[str, FieldMatch], field: SemanticField) -> _Cell | None:
    for header, match in mappings.items():
        if match.field == field:
            return _Cell(row.get(header), match.unit_hint)
    return None


def _has_value(cell: _Cell | None) -> bool:
    return cell is not None and cell.value is not None and cell.value != ""


def _text(cell: _Cell | None, default: str = "") -> str:
    if cell is None or cell.value is None:
        return default
    return str(cell.value).strip()


def resolve_exercise_name(raw_name: str, options: ParseOptions, stats: TransformStats) -> str:
    """Run the optional resolver and record the outcome in stats. Unresolved names stay verbatim."""
    if options.resolver is None or not raw_name:
        return raw_name
    result = options.resolver(raw_name)
    if result.method == "none" or not result.name:
        stats.unmatched.add(raw_name)
        return raw_name
    if result.method == "fuzzy":
        stats.fuzzy_matches += 1
    elif result.method in ("subset", "equipment_agnostic"):
        stats.representative_matches += 1
    return result.name


def transform_row(row: Mapping[str, Any], context: TransformContext) -> CanonicalSet | None:
    """Build one CanonicalSet from a raw row, or None when the exercise or date is unusable."""
    mappings = context.field_mappings
    options = context.options

    exercise = _get_field(row, mappings, "exercise")
    if not _has_value(exercise):
        return None

    start = _get_field(row, mappings, "start_time")
    parsed_date = parse_flexible_date(start.value) if start is not None else None
    if parsed_date is None:
        return None

    end = _get_field(row, mappings, "end_time")
    duration_cell = _get_field(row, mappings, "duration")
    duration = parse_duration(duration_cell.value) if duration_cell is not None else 0
    end_date = parse_flexible_date(end.value) if end is not None else None
    if end_date is None and duration > 0:
        try:
            end_date = parsed_date + timedelta(seconds=duration)
        except OverflowError:
            end_date = None

    rpe: float | None = None
    rpe_cell = _get_field(row, mappings, "rpe")
    rir_cell = _get_field(row, mappings, "rir")
    if _has_value(rpe_cell):
        value = parse_flexible_number(rpe_cell.value)
        if math.isfinite(value) and 1 <= value <= 10:
            rpe = value
    elif _has_value(rir_cell):
        value = parse_flexible_number(rir_cell.value)
        if math.isfinite(value) and 0 <= value <= 10:
            rpe = rir_to_rpe(value)

    exercise_title = resolve_exercise_name(_text(exercise), options, context.stats)

    weight = _get_field(row, mappings, "weight")
    weight_unit = _get_field(row, mappings, "weight_unit")
    raw_weight = parse_flexible_number(weight.value, 0.0) if weight is not None else 0.0
    weight_kg = to_kg(
        raw_weight,
        _text(weight_unit) if weight_unit is not None else None,
        weight.unit_hint if weight is not None else None,
        options.user_weight_unit,
    )

    distance = _get_field(row, mappings, "distance")
    distance_unit = _get_field(row, mappings, "distance_unit")
    raw_distance = parse_flexible_number(distance.value, 0.0) if distance is not None else 0.0
    distance_km = to_km(
        raw_distance,
        _text(distance_unit) if distance_unit is not None else None,
        distance.unit_hint if distance is not None else None,
        options.user_distance_unit,
    )

    reps_cell = _get_field(row, mappings, "reps")
    reps = parse_flexible_number(reps_cell.value, 0.0) if reps_cell is not None else 0.0

    return CanonicalSet(
        title=_text(_get_field(row, mappings, "workout_title"), DEFAULT_TITLE),
        start_time=parsed_date.strftime(OUTPUT_DATE_FORMAT),
        end_time=end_date.strftime(OUTPUT_DATE_FORMAT) if end_date else "",
        description=_text(_get_field(row, mappings, "workout_notes")),
        exercise_title=exercise_title,
        superset_id=_text(_get_field(row, mappings, "superset_id")),
        exercise_notes=_text(_get_field(row, mappings, "notes")),
        set_index=0,
        set_type=normalize_set_type(_text(_get_field(row, mappings, "set_type"))),
        weight_kg=weight_kg,
        reps=max(0, int(reps)),
        distance_km=distance_km,
        duration_seconds=duration,
        rpe=rpe,
        parsed_date=parsed_date,
    )


# --- Post-processing ---

def calculate_set_indices(sets: list[CanonicalSet]) -> None:
    """1-based set counter per exercise within each workout (title + start time), in row order."""
    counters: dict[tuple[str, str, str], int] = {}
    for s in sets:
        key = (s.title, s.start_time, s.exercise_title)
        counters[key] = counters.get(key, 0) + 1
        s.set_index = counters[key]


def infer_workout_titles(sets: list[CanonicalSet]) -> None:
    """Give untitled rows a title per calendar day: "A + B + C" or "Workout (N exercises)"."""
    by_day: dict[str, list[CanonicalSet]] = {}
    for s in sets:
        if s.title and s.title != DEFAULT_TITLE:
            continue
        key = s.parsed_date.date().isoformat() if s.parsed_date else s.start_time
        by_day.setdefault(key, []).append(s)

    for day_sets in by_day.values():
        exercises = list(dict.fromkeys(s.exercise_title for s in day_sets))
        if len(exercises) <= 3:
            title = " + ".join(exercises)
        else:
            title = f"Workout ({len(exercises)} exercises)"
        for s in day_sets:
            s.title = title
