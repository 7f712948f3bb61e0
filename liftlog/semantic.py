"""CSV schema detection: map arbitrary headers to semantic fields using header text and sample values."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional, Sequence

from .models import FieldMatch, SemanticField
from .parsers import parse_flexible_date, parse_flexible_number

logger = logging.getLogger(__name__)

MIN_FIELD_SCORE = 0.5
FUZZY_HEADER_THRESHOLD = 0.75

# --- String helpers ---


def normalize(s: Any) -> str:
    """Lowercase, alphanumerics only."""
    return re.sub(r"[^a-z0-9]", "", str(s if s is not None else "").lower().strip())


def normalize_header(s: Any) -> str:
    """Lowercase, strip BOM, punctuation collapsed to single underscores."""
    h = str(s if s is not None else "").lower().strip().lstrip("\ufeff")
    h = re.sub(r"[^a-z0-9_]", "_", h)
    h = re.sub(r"_+", "_", h)
    return h.strip("_")


def _bigrams(s: str) -> set[str]:
    return {s[i : i + 2] for i in range(len(s) - 1)}


def similarity(a: str, b: str) -> float:
    """Dice coefficient over character bigrams, with a containment shortcut."""
    a_norm = normalize(a)
    b_norm = normalize(b)
    if a_norm == b_norm:
        return 1.0
    if len(a_norm) < 2 or len(b_norm) < 2:
        return 0.0
    if a_norm in b_norm or b_norm in a_norm:
        ratio = min(len(a_norm), len(b_norm)) / max(len(a_norm), len(b_norm))
        return 0.7 + ratio * 0.25
    a_bi = _bigrams(a_norm)
    b_bi = _bigrams(b_norm)
    matches = len(a_bi & b_bi)
    return (2 * matches) / (len(a_bi) + len(b_bi))


def detect_sequential_resets(nums: Sequence[int]) -> bool:
    """True when numbers look like per-exercise set counters (1,2,3,1,2,...)."""
    if len(nums) < 3:
        return True
    resets = sum(1 for i in range(1, len(nums)) if nums[i] == 1 and nums[i - 1] > 1)
    return resets >= 1 or all(1 <= n <= 15 for n in nums)


def extract_unit_from_header(header: str) -> str | None:
    """Unit declared in the header text, e.g. "Weight (lbs)" -> "lbs"."""
    h = header.lower().strip()
    if re.search(r"kgs?$|_kgs?$|\(kgs?\)", h):
        return "kg"
    if re.search(r"lbs?$|_lbs?$|pounds|\(lbs?\)", h):
        return "lbs"
    if re.search(r"km$|_km$|kilometers?|kilometres?|\(km\)", h):
        return "km"
    if re.search(r"mi$|_mi$|miles?|\(mi\)", h):
        return "miles"
    if re.search(r"(?:^|_|\s)m$|meters?|metres?|\(m\)", h) and not re.search(r"km|mi", h):
        return "meters"
    return None


def _parse_int_prefix(v: Any) -> int | None:
    m = re.match(r"^\s*([+-]?\d+)", str(v if v is not None else ""))
    return int(m.group(1)) if m else None


# --- Value-shape validators (sample column -> [0, 1]) ---

_FITNESS_TERMS = re.compile(
    r"bench|squat|deadlift|press|curl|row|pull|push|raise|extension|fly|lunge|crunch|plank|cable|"
    r"dumbbell|barbell|machine|lat|tricep|bicep|chest|leg|shoulder|core|glute|calf|ham|quad",
    re.IGNORECASE,
)
_SET_TYPE_TERMS = re.compile(r"normal|warm|drop|failure|working|amrap|cluster|rest|pause|myo|regular|standard", re.IGNORECASE)
_WEIGHT_UNIT_TERMS = re.compile(r"^(kg|kgs|kilograms?|lb|lbs|pounds?)$", re.IGNORECASE)
_DISTANCE_UNIT_TERMS = re.compile(r"^(km|kilometers?|kilometres?|mi|miles?|m|meters?|metres?|ft|feet)$", re.IGNORECASE)
_DURATION_TEXT = re.compile(r"^\d+\s*(s|sec|m|min|h|hr)", re.IGNORECASE)
_CLOCK = re.compile(r"^\d{1,2}:\d{2}(:\d{2})?$")


def _strings(values: Sequence[Any]) -> list[str]:
    return [v for v in values if isinstance(v, str) and v]


def _numbers(values: Sequence[Any]) -> list[float]:
    return [n for n in (parse_flexible_number(v) for v in values) if n == n]


def _validate_title(values: Sequence[Any]) -> float:
    strings = _strings(values)
    if not strings:
        return 0.0
    unique_ratio = len(set(strings)) / len(strings)
    return 0.8 if unique_ratio < 0.3 else 0.4


def _validate_exercise(values: Sequence[Any]) -> float:
    return 0.9 if any(_FITNESS_TERMS.search(s) for s in _strings(values)) else 0.5


def _validate_date(values: Sequence[Any]) -> float:
    if not values:
        return 0.0
    return sum(1 for v in values if parse_flexible_date(v) is not None) / len(values)


def _validate_duration(values: Sequence[Any]) -> float:
    if not values:
        return 0.0

    def _looks_like_duration(v: Any) -> bool:
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return 0 <= v < 86400
        s = str(v)
        return bool(_CLOCK.match(s) or _DURATION_TEXT.match(s))

    return sum(1 for v in values if _looks_like_duration(v)) / len(values)


def _validate_set_index(values: Sequence[Any]) -> float:
    nums = [n for n in (_parse_int_prefix(v) for v in values) if n is not None]
    if not nums:
        return 0.0
    all_small = all(0 <= n <= 50 for n in nums)
    if all_small and detect_sequential_resets(nums):
        return 0.9
    return 0.6 if all_small else 0.2


def _validate_set_type(values: Sequence[Any]) -> float:
    if not values:
        return 0.0
    return sum(1 for v in values if _SET_TYPE_TERMS.search(str(v))) / len(values)


def _validate_weight(values: Sequence[Any]) -> float:
    nums = _numbers(values)
    if not nums:
        return 0.0
    return sum(1 for n in nums if 0 <= n <= 1000) / len(nums)


def _ratio_matching(pattern: re.Pattern[str]) -> Callable[[Sequence[Any]], float]:
    def _validate(values: Sequence[Any]) -> float:
        if not values:
            return 0.0
        return sum(1 for v in values if pattern.match(str(v).strip())) / len(values)

    return _validate


def _validate_reps(values: Sequence[Any]) -> float:
    nums = [n for n in (_parse_int_prefix(v) for v in values) if n is not None]
    if not nums:
        return 0.0
    reasonable = sum(1 for n in nums if 0 <= n <= 200)
    return 0.9 if reasonable / len(nums) > 0.8 else 0.5


def _validate_distance(values: Sequence[Any]) -> float:
    return 0.7 if any(n > 0 for n in _numbers(values)) else 0.2


def _validate_rpe(values: Sequence[Any]) -> float:
    nums = _numbers(values)
    if not nums:
        return 0.0
    return 0.9 if sum(1 for n in nums if 1 <= n <= 10) / len(nums) > 0.7 else 0.4


def _validate_rir(values: Sequence[Any]) -> float:
    nums = _numbers(values)
    if not nums:
        return 0.0
    return 0.85 if sum(1 for n in nums if 0 <= n <= 10) / len(nums) > 0.7 else 0.3


# --- Semantic dictionary ---
# Add synonyms here to support new exporters.


@dataclass(frozen=True)
class SemanticConfig:
    synonyms: tuple[str, ...]
    priority: int  # 1-10
    validate: Optional[Callable[[Sequence[Any]], float]] = None


SEMANTIC_DICTIONARY: Mapping[SemanticField, SemanticConfig] = MappingProxyType({
    "workout_title": SemanticConfig(
        synonyms=(
            "title", "workout", "workout name", "workout title", "routine", "routine name",
            "session", "session name", "training", "program", "name",
            "workoutname", "workouttitle", "routinename", "sessionname",
            "workout_name", "workout_title", "routine_name", "session_name",
        ),
        priority=5,
        validate=_validate_title,
    ),
    "exercise": SemanticConfig(
        synonyms=(
            "exercise", "exercise name", "exercise title", "movement", "lift", "activity",
            "drill", "move", "action",
            "exercisename", "exercisetitle",
            "exercise_name", "exercise_title",
        ),
        priority=10,
        validate=_validate_exercise,
    ),
    "start_time": SemanticConfig(
        synonyms=(
            "date", "time", "datetime", "timestamp", "when",
            "start", "start time", "start date", "started", "started at",
            "performed", "performed at", "logged", "logged at", "recorded", "created", "created at",
            "starttime", "startdate", "startedat", "performedat", "createdat", "logdate",
            "start_time", "start_date", "started_at", "performed_at", "created_at", "log_date",
            "workout date", "workout time", "session date", "session time",
            "workoutdate", "workouttime", "sessiondate",
            "workout_date", "workout_time", "session_date",
        ),
        priority=9,
        validate=_validate_date,
    ),
    "end_time": SemanticConfig(
        synonyms=(
            "end", "end time", "end date", "ended", "ended at",
            "finished", "finished at", "completed", "completed at", "stop", "stopped",
            "endtime", "enddate", "endedat", "finishedat", "completedat",
            "end_time", "end_date", "ended_at", "finished_at", "completed_at",
        ),
        priority=3,
    ),
    "duration": SemanticConfig(
        synonyms=(
            "duration", "length", "elapsed", "total time",
            "workout duration", "session duration", "workout length",
            "seconds", "secs", "sec", "minutes", "mins", "min",
            "totaltime", "workoutduration", "sessionduration", "workoutlength", "elapsedtime",
            "durationseconds", "durationminutes",
            "total_time", "workout_duration", "session_duration", "workout_length", "elapsed_time",
            "duration_seconds", "duration_minutes",
        ),
        priority=5,
        validate=_validate_duration,
    ),
    "set_index": SemanticConfig(
        synonyms=(
            "set", "set index", "set number", "set order", "set num", "set no", "set #",
            "order", "index", "number", "num", "no", "#",
            "setindex", "setnumber", "setorder", "setnum", "setno",
            "set_index", "set_number", "set_order", "set_num", "set_no",
        ),
        priority=6,
        validate=_validate_set_index,
    ),
    "set_type": SemanticConfig(
        synonyms=(
            "set type", "type", "kind", "category", "set category", "set kind",
            "settype", "setkind", "setcategory",
            "set_type", "set_kind", "set_category",
        ),
        priority=5,
        validate=_validate_set_type,
    ),
    "weight": SemanticConfig(
        synonyms=(
            "weight", "load", "resistance", "mass",
            "weight kg", "weight kgs", "weight lb", "weight lbs", "weight pounds",
            "kg", "kgs", "lb", "lbs", "pounds", "kilograms",
            "weight (kg)", "weight (lbs)", "weight (lb)",
            "weightkg", "weightkgs", "weightlb", "weightlbs", "weightpounds",
            "weight_kg", "weight_kgs", "weight_lb", "weight_lbs", "weight_pounds",
            "weight in kg", "weight in lbs", "weight in pounds",
            "weight_in_kg", "weight_in_lbs", "weight_in_pounds",
        ),
        priority=9,
        validate=_validate_weight,
    ),
    "weight_unit": SemanticConfig(
        synonyms=(
            "weight unit", "unit", "units", "mass unit", "load unit",
            "weightunit", "massunit", "loadunit",
            "weight_unit", "mass_unit", "load_unit",
        ),
        priority=7,
        validate=_ratio_matching(_WEIGHT_UNIT_TERMS),
    ),
    "reps": SemanticConfig(
        synonyms=(
            "reps", "repetitions", "rep", "repetition", "rep count", "reps count",
            "count", "number of reps", "num reps",
            "repcount", "repscount", "numreps", "numberofreps",
            "rep_count", "reps_count", "num_reps", "number_of_reps",
        ),
        priority=9,
        validate=_validate_reps,
    ),
    "distance": SemanticConfig(
        synonyms=(
            "distance", "dist",
            "distance km", "distance mi", "distance m", "distance miles", "distance meters",
            "km", "kilometers", "kilometres", "miles", "mi", "meters", "metres", "m",
            "distance (km)", "distance (mi)", "distance (m)",
            "distancekm", "distancemi", "distancem", "distancemiles", "distancemeters",
            "distance_km", "distance_mi", "distance_m", "distance_miles", "distance_meters",
        ),
        priority=5,
        validate=_validate_distance,
    ),
    "distance_unit": SemanticConfig(
        synonyms=(
            "distance unit", "dist unit",
            "distanceunit", "distunit",
            "distance_unit", "dist_unit",
        ),
        priority=4,
        validate=_ratio_matching(_DISTANCE_UNIT_TERMS),
    ),
    "rpe": SemanticConfig(
        synonyms=(
            "rpe", "perceived exertion", "rate of perceived exertion",
            "effort", "intensity", "difficulty", "hardness", "rating",
            "perceivedexertion", "rateofperceivedexertion",
            "perceived_exertion", "rate_of_perceived_exertion",
        ),
        priority=4,
        validate=_validate_rpe,
    ),
    "rir": SemanticConfig(
        synonyms=(
            "rir", "reps in reserve", "reserve", "reps left", "remaining reps",
            "repsinreserve", "repsleft", "remainingreps",
            "reps_in_reserve", "reps_left", "remaining_reps",
        ),
        priority=4,
        validate=_validate_rir,
    ),
    "notes": SemanticConfig(
        synonyms=(
            "notes", "note", "comment", "comments", "memo", "remark", "remarks",
            "exercise notes", "exercise note", "set notes", "set note",
            "exercisenotes", "exercisenote", "setnotes", "setnote",
            "exercise_notes", "exercise_note", "set_notes", "set_note",
        ),
        priority=3,
    ),
    "workout_notes": SemanticConfig(
        synonyms=(
            "workout notes", "workout note", "session notes", "session note",
            "description", "desc", "details", "workout description",
            "workoutnotes", "workoutnote", "sessionnotes", "sessionnote", "workoutdescription",
            "workout_notes", "workout_note", "session_notes", "session_note", "workout_description",
        ),
        priority=3,
    ),
    "superset_id": SemanticConfig(
        synonyms=(
            "superset", "superset id", "superset group", "group", "group id",
            "circuit", "circuit id", "pairing", "pair", "linked",
            "supersetid", "supersetgroup", "groupid", "circuitid",
            "superset_id", "superset_group", "group_id", "circuit_id",
        ),
        priority=3,
    ),
    "rest_time": SemanticConfig(
        synonyms=(
            "rest", "rest time", "rest period", "recovery", "recovery time",
            "break", "break time", "pause", "pause time",
            "resttime", "restperiod", "recoverytime", "breaktime", "pausetime",
            "rest_time", "rest_period", "recovery_time", "break_time", "pause_time",
        ),
        priority=2,
    ),
})

# Fields that may be assigned to at most one header
UNIQUE_FIELDS: frozenset[SemanticField] = frozenset({
    "exercise",
    "workout_title",
    "start_time",
    "end_time",
    "set_index",
    "weight",
    "reps",
    "rpe",
    "rir",
    "distance",
    "weight_unit",
    "distance_unit",
})

MANDATORY_FIELDS: tuple[SemanticField, ...] = ("exercise", "start_time")


def _header_score(header: str, config: SemanticConfig) -> float:
    normalized_header = normalize(header)
    if not normalized_header:
        # Symbol-only headers such as "#" match literally or not at all
        literal = str(header).strip().lower()
        return 1.0 if literal and literal in config.synonyms else 0.0
    clean_header = normalize_header(header)
    score = 0.0
    for synonym in config.synonyms:
        if normalized_header == normalize(synonym):
            return 1.0
        if clean_header == normalize_header(synonym):
            score = max(score, 0.95)
            continue
        sim = similarity(header, synonym)
        if sim > FUZZY_HEADER_THRESHOLD:
            score = max(score, sim)
    return score


def find_best_field_match(header: str, sample_values: Sequence[Any]) -> FieldMatch | None:
    """
    Score one header against every semantic field and return the best FieldMatch, or None.
    Header similarity is blended with the field's value validator; exact header matches are only
    ever boosted by validation and always outrank fuzzy ones.
    """
    valid_values = [v for v in sample_values if v is not None and v != ""]
    best: FieldMatch | None = None
    best_rank = 0.0

    for field, config in SEMANTIC_DICTIONARY.items():
        score = _header_score(header, config)
        is_exact = score >= 0.95

        if config.validate is not None and valid_values:
            if 0 < score < 0.95:
                score = score * 0.6 + config.validate(valid_values) * 0.4
            elif is_exact:
                validation = config.validate(valid_values)
                if validation > 0.5:
                    score = max(score, score * 0.9 + validation * 0.1)

        rank = score * (config.priority / 10)
        if is_exact:
            rank += 1.0

        if rank > best_rank and score > MIN_FIELD_SCORE:
            best_rank = rank
            best = FieldMatch(
                field=field,
                confidence=score,
                original_header=header,
                unit_hint=extract_unit_from_header(header) if field in ("weight", "distance") else None,
            )
    return best


def detect_field_mappings(headers: Sequence[str], sample_rows: Sequence[Mapping[str, Any]]) -> dict[str, FieldMatch]:
    """
    Map headers to semantic fields. Headers are assigned greedily by descending confidence
    (header order breaks ties); a unique field goes to one header only, the rest stay unmapped.
    """
    scored: list[tuple[str, FieldMatch | None]] = []
    for header in headers:
        values = [row.get(header) for row in sample_rows]
        scored.append((header, find_best_field_match(header, values)))

    scored.sort(key=lambda item: -(item[1].confidence if item[1] else 0.0))

    mappings: dict[str, FieldMatch] = {}
    used: set[str] = set()
    for header, match in scored:
        if match is None:
            logger.debug("Header %r left unmapped", header)
            continue
        if match.field in UNIQUE_FIELDS and match.field in used:
            logger.debug("Header %r lost %s to a higher-confidence header", header, match.field)
            continue
        mappings[header] = match
        used.add(match.field)
        logger.debug("Header %r -> %s (%.2f)", header, match.field, match.confidence)

    # Restore original header order
    return {h: mappings[h] for h in headers if h in mappings}


def mean_confidence(mappings: Mapping[str, FieldMatch]) -> float:
    if not mappings:
        return 0.0
    return sum(m.confidence for m in mappings.values()) / len(mappings)


def missing_mandatory_fields(mappings: Mapping[str, FieldMatch]) -> list[SemanticField]:
    detected = {m.field for m in mappings.values()}
    return [f for f in MANDATORY_FIELDS if f not in detected]
