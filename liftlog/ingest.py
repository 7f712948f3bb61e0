"""CSV import workflow: read, detect schema, transform rows, post-process, report. Stateless; no persistence."""

from __future__ import annotations

import asyncio
import csv
import io
import logging
import re
from datetime import datetime
from typing import Any, Optional

from .adapters import canonicalize_lyfta_header, is_lyfta_csv, parse_lyfta_rows
from .models import CanonicalSet, ParseMeta, ParseOptions, ParseResult, TransformStats
from .semantic import detect_field_mappings, mean_confidence, missing_mandatory_fields
from .transform import TransformContext, calculate_set_indices, infer_workout_titles, transform_row

logger = logging.getLogger(__name__)

SAMPLE_SIZE = 50
LOW_CONFIDENCE_THRESHOLD = 0.6
LOW_CONFIDENCE_WARNING = "Some columns may not have been detected correctly. Please verify your data after import."

EMPTY_CSV_ERROR = "CSV file is empty or has no valid data rows."
NO_EXERCISE_COLUMN_ERROR = (
    "Could not detect an exercise column. Please ensure your CSV has a column for exercises "
    '(e.g., "Exercise", "Exercise Name", "Movement", "Lift", etc.)'
)
NO_DATE_COLUMN_ERROR = (
    "Could not detect a date/time column. Please ensure your CSV has a column for dates "
    '(e.g., "Date", "Time", "Start Time", "Timestamp", etc.)'
)

LYFTA_FIELD_MAPPINGS = {
    "title": "workout_title",
    "date": "start_time",
    "duration": "duration",
    "exercise": "exercise",
    "superset_id": "superset_id",
    "weight": "weight",
    "reps": "reps",
    "distance": "distance",
    "time": "duration",
    "set_type": "set_type",
}


class CsvImportError(ValueError):
    """Fatal import condition: the whole import is rejected with this message."""


# --- Reading ---

_INT = re.compile(r"^\s*-?\d+\s*$")
_FLOAT = re.compile(r"^\s*-?(\d+\.?|\.\d+|\d+\.\d+)([eE][-+]?\d+)?\s*$")
# "1.234" in a semicolon file: EU thousands grouping, not a decimal point.
_EU_THOUSANDS = re.compile(r"^\s*-?[1-9]\d{0,2}(\.\d{3})+\s*$")


def _coerce_cell(value: Any, delimiter: str = ",") -> Any:
    """Numbers become int/float, true/false become bool, empty becomes None; everything else stays text."""
    if value is None or isinstance(value, list):
        return value
    if value == "":
        return None
    lowered = value.strip().lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    if delimiter == ";" and _EU_THOUSANDS.match(value):
        digits = value.replace(".", "")
    elif _INT.match(value):
        digits = value
    else:
        digits = None
    if digits is not None:
        try:
            return int(digits)
        except ValueError:  # past the int string-conversion digit limit
            return value
    if _FLOAT.match(value):
        return float(value)
    return value


def guess_delimiter(content: str) -> str:
    """Tab, semicolon or comma, whichever the first line uses most (comma on ties)."""
    first_line = content.splitlines()[0] if content else ""
    commas = first_line.count(",")
    semicolons = first_line.count(";")
    tabs = first_line.count("\t")
    if tabs > commas and tabs > semicolons:
        return "\t"
    if semicolons > commas:
        return ";"
    return ","


def read_csv_rows(content: str) -> tuple[list[str], list[dict[str, Any]]]:
    """Parse CSV text into (headers, rows) with typed cells. Blank lines are skipped."""
    text = content.lstrip("\ufeff")
    delimiter = guess_delimiter(text)
    reader = csv.DictReader(io.StringIO(text), delimiter=delimiter)
    try:
        headers = [h.strip().lstrip("\ufeff") for h in (reader.fieldnames or [])]
        reader.fieldnames = headers
        rows = [{k: _coerce_cell(v, delimiter) for k, v in row.items() if k is not None} for row in reader]
    except csv.Error as e:
        raise CsvImportError(f"CSV parsing error: {e}") from e
    return headers, rows


# --- Orchestration ---

def _sort_sets(sets: list[CanonicalSet]) -> None:
    """Newest first; within one timestamp, ascending set_index."""
    sets.sort(key=lambda s: s.set_index)
    sets.sort(key=lambda s: s.parsed_date or datetime.min, reverse=True)


def _build_meta(
    confidence: float,
    field_mappings: dict[str, str],
    stats: TransformStats,
    row_count: int,
    set_count: int,
) -> ParseMeta:
    warnings = [LOW_CONFIDENCE_WARNING] if confidence < LOW_CONFIDENCE_THRESHOLD else []
    if warnings:
        logger.warning("Low column-mapping confidence %.2f", confidence)
    return ParseMeta(
        confidence=confidence,
        field_mappings=field_mappings,
        unmatched_exercises=sorted(stats.unmatched),
        fuzzy_matches=stats.fuzzy_matches,
        representative_matches=stats.representative_matches,
        row_count=row_count,
        dropped_rows=row_count - set_count,
        warnings=warnings or None,
    )


def _parse_lyfta(headers: list[str], rows: list[dict[str, Any]], options: ParseOptions) -> ParseResult:
    stats = TransformStats()
    sets, _ = parse_lyfta_rows(rows, unit=options.user_weight_unit, resolver=options.resolver, stats=stats)
    _sort_sets(sets)
    field_mappings = {
        h: LYFTA_FIELD_MAPPINGS[canonicalize_lyfta_header(h)]
        for h in headers
        if canonicalize_lyfta_header(h) in LYFTA_FIELD_MAPPINGS
    }
    meta = _build_meta(1.0, field_mappings, stats, len(rows), len(sets))
    logger.info("Lyfta import: %d rows -> %d sets (%d dropped)", len(rows), len(sets), meta.dropped_rows)
    return ParseResult(sets=sets, meta=meta)


def parse_workout_csv(content: str, options: Optional[ParseOptions] = None) -> ParseResult:
    """
    Import a workout CSV of unknown layout.
    Raises CsvImportError when the file has no headers/rows or no exercise or date column can be detected.
    Individual rows with no exercise or an unparseable date are dropped and counted in meta.dropped_rows.
    """
    options = options or ParseOptions()
    headers, rows = read_csv_rows(content)
    if not headers or not rows:
        raise CsvImportError(EMPTY_CSV_ERROR)

    if is_lyfta_csv(headers):
        return _parse_lyfta(headers, rows, options)

    mappings = detect_field_mappings(headers, rows[:SAMPLE_SIZE])
    missing = missing_mandatory_fields(mappings)
    if "exercise" in missing:
        raise CsvImportError(NO_EXERCISE_COLUMN_ERROR)
    if "start_time" in missing:
        raise CsvImportError(NO_DATE_COLUMN_ERROR)

    stats = TransformStats()
    context = TransformContext(field_mappings=mappings, options=options, stats=stats)
    sets = [s for s in (transform_row(row, context) for row in rows) if s is not None]

    calculate_set_indices(sets)
    infer_workout_titles(sets)
    _sort_sets(sets)

    confidence = mean_confidence(mappings)
    meta = _build_meta(
        confidence,
        {header: match.field for header, match in mappings.items()},
        stats,
        len(rows),
        len(sets),
    )
    logger.info(
        "CSV import: %d rows -> %d sets (%d dropped), confidence %.2f",
        len(rows), len(sets), meta.dropped_rows, confidence,
    )
    return ParseResult(sets=sets, meta=meta)


async def parse_workout_csv_async(content: str, options: Optional[ParseOptions] = None) -> ParseResult:
    """Same as parse_workout_csv, run in a worker thread so the event loop stays responsive."""
    return await asyncio.to_thread(parse_workout_csv, content, options)
