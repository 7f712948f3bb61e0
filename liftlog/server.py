"""MCP server: liftlog.import_csv, liftlog.import_hevy_workouts, liftlog.match_exercise, liftlog.exercise_trend."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from fastmcp import FastMCP

from .adapters import map_hevy_workouts
from .catalog import get_default_matcher
from .history import build_exercise_history, summarize_exercise_history
from .ingest import CsvImportError, parse_workout_csv
from .models import (
    ExerciseTrendInput,
    ImportCsvInput,
    ImportHevyInput,
    ImportSummary,
    MatchExerciseInput,
    ParseMeta,
    ParseOptions,
)
from .storage import Storage
from .trend import analyze_exercise_trend

logging.basicConfig(level=os.environ.get("LIFTLOG_LOG_LEVEL", "WARNING").upper())
logger = logging.getLogger(__name__)

# Default DB next to the package (or use LIFTLOG_DB_PATH)
_db_path = os.environ.get("LIFTLOG_DB_PATH", str(Path(__file__).parent.parent / "liftlog.db"))
_storage = Storage(_db_path)

mcp = FastMCP(name="liftlog")


def import_csv_impl(inp: ImportCsvInput, storage: Storage | None = None) -> ImportSummary:
    """Parse a CSV export and optionally persist it. Fatal import errors become status="error"."""
    options = ParseOptions(
        user_weight_unit=inp.weight_unit,
        user_distance_unit=inp.distance_unit,
        resolver=get_default_matcher() if inp.resolve_exercises else None,
    )
    try:
        result = parse_workout_csv(inp.content, options)
    except CsvImportError as e:
        logger.info("CSV import rejected: %s", e)
        return ImportSummary(status="error", user_id=inp.user_id, error=str(e))

    user_id = inp.user_id
    import_id = None
    if inp.store and storage is not None:
        user_id = storage.ensure_user(inp.user_id, inp.weight_unit)
        import_id = storage.store_import(user_id, result.sets, result.meta, source="csv")
    return ImportSummary(
        status="ok",
        user_id=user_id,
        import_id=import_id,
        sets_imported=len(result.sets),
        meta=result.meta,
    )


def import_hevy_impl(inp: ImportHevyInput, storage: Storage | None = None) -> ImportSummary:
    sets = map_hevy_workouts(inp.workouts)
    user_id = inp.user_id
    import_id = None
    if inp.store and storage is not None:
        user_id = storage.ensure_user(inp.user_id)
        import_id = storage.store_import(user_id, sets, ParseMeta(confidence=1.0, row_count=len(sets)), source="hevy")
    return ImportSummary(status="ok", user_id=user_id, import_id=import_id, sets_imported=len(sets))


def exercise_trend_impl(inp: ExerciseTrendInput, storage: Storage | None = None) -> dict:
    """Trend for one exercise over the given sets, or over the user's stored sets."""
    if inp.sets is not None:
        sets = inp.sets
    elif inp.user_id and storage is not None:
        sets = storage.get_sets_for_user(inp.user_id, inp.exercise_title)
    else:
        sets = []
    history = build_exercise_history(sets, inp.exercise_title)
    sessions = summarize_exercise_history(history, separate_sides=inp.separate_sides)
    trend = analyze_exercise_trend(sessions)
    return {
        "exercise_title": inp.exercise_title,
        "session_count": len(sessions),
        "trend": trend.model_dump(),
        "sessions": [s.model_dump(mode="json") for s in sessions],
    }


@mcp.tool(name="liftlog.import_csv")
def liftlog_import_csv(payload: dict) -> dict:
    """
    Import a workout CSV of any layout (Hevy, Strong, Lyfta, spreadsheets, ...).
    Columns are detected from header text and sample values; weights are stored in kg.
    Set weight_unit to the unit your file uses when its headers do not say.
    Returns { status, user_id, import_id, sets_imported, meta } or { status: "error", error }.
    """
    inp = ImportCsvInput.model_validate(payload)
    return import_csv_impl(inp, storage=_storage).model_dump(mode="json")


@mcp.tool(name="liftlog.import_hevy_workouts")
def liftlog_import_hevy_workouts(payload: dict) -> dict:
    """Import Hevy workout records (as returned by the Hevy API) as canonical sets."""
    inp = ImportHevyInput.model_validate(payload)
    return import_hevy_impl(inp, storage=_storage).model_dump(mode="json")


@mcp.tool(name="liftlog.match_exercise")
def liftlog_match_exercise(payload: dict) -> dict:
    """
    Resolve a free-text exercise name against the exercise catalog.
    Returns { query, name, method, confidence }; method is exact, subset, equipment_agnostic, fuzzy or none.
    """
    inp = MatchExerciseInput.model_validate(payload)
    result = get_default_matcher()(inp.query)
    return {"query": inp.query, **result.model_dump()}


@mcp.tool(name="liftlog.exercise_trend")
def liftlog_exercise_trend(payload: dict) -> dict:
    """
    Classify one exercise's recent training as overload, stagnant, regression, neutral or new.
    Provide `sets` (canonical sets) or a `user_id` with stored imports.
    """
    inp = ExerciseTrendInput.model_validate(payload)
    return exercise_trend_impl(inp, storage=_storage)


@mcp.resource("import://{import_id}/meta", mime_type="application/json")
def resource_import_meta(import_id: str) -> str:
    """Read-only: parse meta for a stored import."""
    row = _storage.get_import(import_id)
    if not row:
        return json.dumps({"error": "import not found", "import_id": import_id})
    return json.dumps(row, indent=2)


@mcp.resource("user://{user_id}/exercises", mime_type="application/json")
def resource_user_exercises(user_id: str) -> str:
    """Read-only: exercises a user has logged, with set counts and last date."""
    return json.dumps({"user_id": user_id, "exercises": _storage.list_exercises(user_id)}, indent=2)


def run() -> None:
    """Run the MCP server with stdio transport (default)."""
    mcp.run()
