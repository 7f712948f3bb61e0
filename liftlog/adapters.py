"""Fixed-schema sources: Lyfta CSV exports and Hevy provider workout records."""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Mapping, Optional

from .models import CanonicalSet, ExerciseNameResolver, ParseOptions, TransformStats, WeightUnit
from .parsers import is_plausible_year, normalize_set_type, parse_flexible_number
from .transform import (
    DEFAULT_TITLE,
    LBS_TO_KG,
    OUTPUT_DATE_FORMAT,
    calculate_set_indices,
    resolve_exercise_name,
)

logger = logging.getLogger(__name__)

# --- Lyfta ---
# Export columns: Title, Date, Duration, Exercise, Superset id, Weight, Reps, Distance, Time, Set Type

LYFTA_REQUIRED_HEADERS = frozenset({"title", "date", "duration", "exercise", "weight", "reps", "set_type"})
LYFTA_DATE_FORMATS = ("%Y-%m-%d %H:%M:%S", "%Y-%m-%d %H:%M", "%Y-%m-%d")

_CLOCK = re.compile(r"^\d{1,2}:\d{2}(?::\d{2})?$")
_MM_SS = re.compile(r"^\d{1,2}:\d{2}$")


def canonicalize_lyfta_header(header: str) -> str:
    h = str(header or "").strip().lstrip("\ufeff").lower()
    return re.sub(r"[^a-z0-9]+", "_", h).strip("_")


def is_lyfta_csv(headers: Iterable[str] | None) -> bool:
    """True when every required Lyfta column is present (any casing / punctuation)."""
    if not headers:
        return False
    present = {canonicalize_lyfta_header(h) for h in headers}
    return LYFTA_REQUIRED_HEADERS <= present


def _parse_lyfta_date(value: Any) -> datetime | None:
    s = str(value if value is not None else "").strip()
    for fmt in LYFTA_DATE_FORMATS:
        try:
            return datetime.strptime(s, fmt)
        except ValueError:
            continue
    return None


def _parse_clock(value: Any, pattern: re.Pattern[str]) -> int:
    """Seconds from "HH:mm:ss" / "mm:ss" (whichever the pattern allows), else 0."""
    s = str(value if value is not None else "").strip()
    if not pattern.match(s):
        return 0
    parts = [int(p) for p in s.split(":")]
    if len(parts) == 2:
        return parts[0] * 60 + parts[1]
    return parts[0] * 3600 + parts[1] * 60 + parts[2]


def _text(value: Any) -> str:
    if value is None or value == "null":
        return ""
    return str(value).strip()


def parse_lyfta_rows(
    rows: Iterable[Mapping[str, Any]],
    unit: WeightUnit = "kg",
    resolver: Optional[ExerciseNameResolver] = None,
    stats: Optional[TransformStats] = None,
) -> tuple[list[CanonicalSet], int]:
    """
    Map Lyfta rows to canonical sets. Weight follows the caller's unit (Lyfta headers carry none),
    distance is already km. Set indices count per raw exercise within (title, date).
    Returns (sets, dropped_rows); rows with no exercise or an unparseable date are dropped.
    """
    options = ParseOptions(user_weight_unit=unit, resolver=resolver)
    stats = stats if stats is not None else TransformStats()
    counters: dict[tuple[str, str, str], int] = {}
    sets: list[CanonicalSet] = []
    dropped = 0

    for raw in rows:
        row = {canonicalize_lyfta_header(k): v for k, v in raw.items()}
        raw_exercise = _text(row.get("exercise"))
        start = _parse_lyfta_date(row.get("date"))
        if not raw_exercise or start is None:
            dropped += 1
            continue

        duration = _parse_clock(row.get("duration"), _CLOCK)
        end = start + timedelta(seconds=duration) if duration > 0 else None

        weight = parse_flexible_number(row.get("weight"), 0.0)
        weight_kg = (weight * LBS_TO_KG if unit == "lbs" else weight) if weight > 0 else 0.0
        distance = parse_flexible_number(row.get("distance"), 0.0)

        key = (_text(row.get("title")), _text(row.get("date")), raw_exercise)
        counters[key] = counters.get(key, 0) + 1

        sets.append(CanonicalSet(
            title=_text(row.get("title")) or DEFAULT_TITLE,
            start_time=start.strftime(OUTPUT_DATE_FORMAT),
            end_time=end.strftime(OUTPUT_DATE_FORMAT) if end else "",
            exercise_title=resolve_exercise_name(raw_exercise, options, stats),
            superset_id=_text(row.get("superset_id")),
            set_index=counters[key],
            set_type=normalize_set_type(row.get("set_type")),
            weight_kg=weight_kg,
            reps=max(0, int(parse_flexible_number(row.get("reps"), 0.0))),
            distance_km=distance if distance > 0 else 0.0,
            duration_seconds=_parse_clock(row.get("time"), _MM_SS),
            parsed_date=start,
        ))

    logger.debug("Lyfta rows mapped: %d sets, %d dropped", len(sets), dropped)
    return sets, dropped


# --- Hevy ---

def _format_epoch(epoch_seconds: Any) -> tuple[str, datetime | None]:
    """Unix seconds to the output format. Values outside 1971..2099 (e.g. milliseconds) give no date."""
    n = parse_flexible_number(epoch_seconds, 0.0)
    if n <= 0:
        return "", None
    try:
        d = datetime.fromtimestamp(n, tz=timezone.utc).replace(tzinfo=None)
    except (OverflowError, OSError, ValueError):
        logger.debug("Epoch %r is out of range", epoch_seconds)
        return "", None
    if not is_plausible_year(d.year):
        return "", None
    return d.strftime(OUTPUT_DATE_FORMAT), d


def _number(value: Any, fallback: float = 0.0) -> float:
    return parse_flexible_number(value, fallback) if value is not None else fallback


def map_hevy_workouts(workouts: Iterable[Mapping[str, Any]]) -> list[CanonicalSet]:
    """
    Flatten Hevy workouts (name, description, start_time/end_time epoch seconds,
    exercises[].sets[]) into canonical sets. Sets are ordered by their Hevy index
    and renumbered 1-based per exercise.
    """
    out: list[CanonicalSet] = []
    for w in workouts:
        start_time, parsed_date = _format_epoch(w.get("start_time"))
        end_time, _ = _format_epoch(w.get("end_time"))
        title = str(w.get("name") or DEFAULT_TITLE)
        description = str(w.get("description") or "")

        for ex in w.get("exercises") or []:
            exercise_title = str(ex.get("title") or "").strip()
            if not exercise_title:
                continue
            ordered = sorted(ex.get("sets") or [], key=lambda s: _number(s.get("index")))
            for s in ordered:
                distance_m = _number(s.get("distance_meters"))
                rpe = s.get("rpe")
                out.append(CanonicalSet(
                    title=title,
                    start_time=start_time,
                    end_time=end_time,
                    description=description,
                    exercise_title=exercise_title,
                    superset_id="" if ex.get("superset_id") is None else str(ex.get("superset_id")),
                    exercise_notes=str(ex.get("notes") or ""),
                    set_type=normalize_set_type(s.get("indicator") or "normal"),
                    weight_kg=max(0.0, _number(s.get("weight_kg"))),
                    reps=max(0, int(_number(s.get("reps")))),
                    distance_km=distance_m / 1000 if distance_m > 0 else 0.0,
                    duration_seconds=max(0, int(_number(s.get("duration_seconds")))),
                    rpe=None if rpe is None else _number(rpe),
                    parsed_date=parsed_date,
                ))

    calculate_set_indices(out)
    return out
