"""Pydantic models for liftlog: canonical set schema, import results, matching and trend outputs."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


WeightUnit = Literal["kg", "lbs"]
DistanceUnit = Literal["km", "miles", "meters"]

SetType = Literal[
    "normal",
    "warmup",
    "left",
    "right",
    "dropset",
    "failure",
    "amrap",
    "restpause",
    "myoreps",
    "cluster",
    "giantset",
    "superset",
    "backoff",
    "topset",
    "feederset",
    "partial",
]

SemanticField = Literal[
    "workout_title",
    "exercise",
    "start_time",
    "end_time",
    "duration",
    "set_index",
    "set_type",
    "weight",
    "weight_unit",
    "reps",
    "distance",
    "distance_unit",
    "rpe",
    "rir",
    "notes",
    "workout_notes",
    "superset_id",
    "rest_time",
]


# --- Canonical set schema ---

class CanonicalSet(BaseModel):
    """One normalized logged set. Weight is always kilograms."""
    title: str = "Workout"
    start_time: str  # "dd MMM yyyy, HH:mm"
    end_time: str = ""
    description: str = ""
    exercise_title: str
    superset_id: str = ""
    exercise_notes: str = ""
    set_index: int = 0  # assigned by the post-pass, >= 1 afterwards
    set_type: SetType = "normal"
    weight_kg: float = 0.0
    reps: int = 0
    distance_km: float = 0.0
    duration_seconds: int = 0
    rpe: Optional[float] = None
    parsed_date: Optional[datetime] = None


# --- Schema detection ---

class FieldMatch(BaseModel):
    field: SemanticField
    confidence: float  # 0.0–1.0
    original_header: str
    unit_hint: Optional[str] = None  # kg / lbs / km / miles / meters


# --- Exercise matching ---

MatchMethod = Literal["exact", "subset", "equipment_agnostic", "fuzzy", "none"]


class MatchResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    method: MatchMethod
    confidence: float


# Resolver collaborator: raw exercise name -> MatchResult (swappable / stubbable by callers)
ExerciseNameResolver = Callable[[str], MatchResult]


# --- CSV import ---

class ParseOptions(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    user_weight_unit: WeightUnit = "kg"
    user_distance_unit: DistanceUnit = "km"
    resolver: Optional[Callable[[str], MatchResult]] = None


class ParseMeta(BaseModel):
    confidence: float = 0.0
    field_mappings: dict[str, str] = Field(default_factory=dict)  # header -> semantic field
    unmatched_exercises: list[str] = Field(default_factory=list)
    fuzzy_matches: int = 0
    representative_matches: int = 0
    row_count: int = 0
    dropped_rows: int = 0
    warnings: Optional[list[str]] = None


class ParseResult(BaseModel):
    sets: list[CanonicalSet] = Field(default_factory=list)
    meta: ParseMeta = Field(default_factory=ParseMeta)


class TransformStats(BaseModel):
    """Mutable counters shared by every row of one import."""
    unmatched: set[str] = Field(default_factory=set)
    fuzzy_matches: int = 0
    representative_matches: int = 0


# --- Exercise history & trends ---

PrType = Literal["weight", "one_rm", "volume"]
Side = Literal["left", "right"]


class ExerciseHistoryEntry(BaseModel):
    """One logged working set of one exercise."""
    date: Optional[datetime] = None
    weight: float = 0.0
    reps: int = 0
    one_rep_max: float = 0.0
    volume: float = 0.0
    pr_types: list[PrType] = Field(default_factory=list)
    side: Optional[Side] = None


class ExerciseSessionEntry(BaseModel):
    """One training session of one exercise (sets may be fractional for L/R pairs)."""
    date: datetime
    weight: float = 0.0
    reps: int = 0
    one_rep_max: float = 0.0
    volume: float = 0.0
    sets: float = 0.0
    total_reps: int = 0
    max_reps: int = 0
    pr_types: list[PrType] = Field(default_factory=list)
    side: Optional[Side] = None


TrendStatus = Literal["overload", "stagnant", "regression", "neutral", "new"]

RecentDirection = Literal[
    "improving",
    "worsening",
    "accelerating",
    "getting_worse",
    "steady_progress",
    "easing",
    "still_improving",
    "still_declining",
    "rebound",
    "slipping",
]


class Plateau(BaseModel):
    weight: float
    min_reps: float
    max_reps: float


class RecentEvidence(BaseModel):
    """Latest session vs the one before it."""
    delta: float  # reps when bodyweight-like, percent otherwise
    unit: Literal["reps", "pct"]
    direction: Optional[RecentDirection] = None


class TrendCalculation(BaseModel):
    history_len: int
    window_size: int
    current_avg: float
    previous_avg: float


class TrendResult(BaseModel):
    status: TrendStatus
    is_bodyweight_like: bool = False
    diff_pct: Optional[float] = None
    confidence: Literal["low", "medium", "high"] = "low"
    plateau: Optional[Plateau] = None
    recent_evidence: Optional[RecentEvidence] = None
    calculation: Optional[TrendCalculation] = None
    premature_pr: bool = False
    pr_spike_pct: Optional[float] = None
    pr_drop_pct: Optional[float] = None


# --- Tool inputs (server) ---

class ImportCsvInput(BaseModel):
    user_id: Optional[str] = None
    content: str
    weight_unit: WeightUnit = "kg"
    distance_unit: DistanceUnit = "km"
    resolve_exercises: bool = True
    store: bool = True


class ImportHevyInput(BaseModel):
    user_id: Optional[str] = None
    workouts: list[dict[str, Any]] = Field(default_factory=list)
    store: bool = True


class MatchExerciseInput(BaseModel):
    query: str


class ExerciseTrendInput(BaseModel):
    user_id: Optional[str] = None
    exercise_title: str
    sets: Optional[list[CanonicalSet]] = None  # when omitted, read from storage
    separate_sides: bool = False


class ImportSummary(BaseModel):
    status: Literal["ok", "error"]
    user_id: Optional[str] = None
    import_id: Optional[str] = None
    sets_imported: int = 0
    meta: Optional[ParseMeta] = None
    error: Optional[str] = None
