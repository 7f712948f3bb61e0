"""Locale-flexible value parsers: numbers, dates, durations, set types, RIR -> RPE.

Every parser here is total: bad input yields the documented fallback, never an exception.
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime, timezone
from typing import Any

from .models import SetType

MIN_PLAUSIBLE_YEAR = 1971
MAX_PLAUSIBLE_YEAR = 2099

_EMPTY_TOKENS = frozenset({"", "null", "undefined", "-", "none", "nan"})

# --- Numbers ---

_UNIT_SUFFIX = re.compile(r"\s*(kgs?|lbs?|km|mi|m|sec|s|min|reps?)$", re.IGNORECASE)
_EU_DECIMAL = re.compile(r"^\d{1,3}(\.\d{3})*,\d+$")  # 1.234,56
_US_DECIMAL = re.compile(r"^\d{1,3}(,\d{3})*\.\d+$")  # 1,234.56
_LEADING_FLOAT = re.compile(r"^\s*[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")


def parse_flexible_number(value: Any, fallback: float = math.nan) -> float:
    """
    Parse a number written in US or EU convention, with an optional trailing unit.
    "1.234,56" -> 1234.56, "1,234.56" -> 1234.56, "62,5 kg" -> 62.5. Returns fallback otherwise.
    """
    if isinstance(value, bool):
        return fallback
    if isinstance(value, (int, float)):
        try:
            return float(value) if math.isfinite(value) else fallback
        except OverflowError:  # int beyond float range
            return fallback
    s = str(value if value is not None else "").strip()
    if s.lower() in _EMPTY_TOKENS:
        return fallback
    s = _UNIT_SUFFIX.sub("", s)
    if _EU_DECIMAL.match(s):
        s = s.replace(".", "").replace(",", ".")
    elif _US_DECIMAL.match(s):
        s = s.replace(",", "")
    elif "," in s and "." not in s:
        s = s.replace(",", ".", 1)
    m = _LEADING_FLOAT.match(s)
    if not m:
        return fallback
    try:
        n = float(m.group(0))
    except ValueError:
        return fallback
    return n if math.isfinite(n) else fallback


# --- Dates ---

# Order matters: the first format that parses to a plausible year wins.
DATE_FORMATS: tuple[str, ...] = (
    # ISO
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%Y-%m-%dT%H:%M:%S.%f",
    # Hevy
    "%d %b %Y, %H:%M",
    "%d %b %Y %H:%M",
    # European
    "%d/%m/%Y %H:%M:%S",
    "%d/%m/%Y %H:%M",
    "%d/%m/%Y",
    "%d/%m/%y %H:%M:%S",
    "%d/%m/%y %H:%M",
    "%d/%m/%y",
    "%d-%m-%Y %H:%M:%S",
    "%d-%m-%y %H:%M:%S",
    "%d-%m-%y",
    "%d-%m-%Y",
    "%d. %m.%Y %H:%M:%S",
    "%d. %m.%Y",
    "%d.%m.%Y %H:%M:%S",
    "%d.%m.%Y",
    # US
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y",
    "%m/%d/%y %H:%M:%S",
    "%m/%d/%y %H:%M",
    "%m/%d/%y",
    "%m/%d/%Y %I:%M %p",
    "%m/%d/%Y %I:%M:%S %p",
    "%m/%d/%y %I:%M %p",
    "%m/%d/%y %I:%M:%S %p",
    # Other
    "%Y/%m/%d %H:%M:%S",
    "%Y/%m/%d",
    "%b %d, %Y %H:%M",
    "%B %d, %Y",
    "%d %b %Y",
)


def is_plausible_year(year: int) -> bool:
    return MIN_PLAUSIBLE_YEAR <= year <= MAX_PLAUSIBLE_YEAR


def _bump_two_digit_year(d: datetime) -> datetime:
    """Years like "23" that land before 1971 move forward a century when that is plausible."""
    if 0 < d.year < MIN_PLAUSIBLE_YEAR and is_plausible_year(d.year + 100):
        try:
            return d.replace(year=d.year + 100)
        except ValueError:  # Feb 29 in a non-leap target year
            return d
    return d


def _to_naive_utc(d: datetime) -> datetime:
    if d.tzinfo is not None:
        return d.astimezone(timezone.utc).replace(tzinfo=None)
    return d


def parse_flexible_date(value: Any) -> datetime | None:
    """Parse a date/time from any supported export format. None when nothing plausible parses."""
    if isinstance(value, datetime):
        try:
            d = _to_naive_utc(value)
        except OverflowError:
            return None
        return d if is_plausible_year(d.year) else None
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day) if is_plausible_year(value.year) else None

    s = str(value if value is not None else "").strip()
    if not s:
        return None

    for fmt in DATE_FORMATS:
        try:
            d = datetime.strptime(s, fmt)
        except ValueError:
            continue
        if "%y" in fmt:
            d = _bump_two_digit_year(d)
        try:
            d = _to_naive_utc(d)
        except OverflowError:  # offset pushes the instant outside datetime range
            continue
        if is_plausible_year(d.year):
            return d

    # Free-form fallback
    try:
        d = datetime.fromisoformat(s)
    except ValueError:
        return None
    try:
        d = _to_naive_utc(d)
    except OverflowError:
        return None
    return d if is_plausible_year(d.year) else None


# --- Durations ---

_PURE_NUMBER = re.compile(r"^-?\d+(\.\d+)?$")
_CLOCK = re.compile(r"^\d{1,2}:\d{2}(:\d{2})?$")
_HOURS = re.compile(r"(\d+(?:\.\d+)?)\s*(?:h|hr|hrs|hour)", re.IGNORECASE)
_MINUTES = re.compile(r"(\d+(?:\.\d+)?)\s*(?:m|min|mins|minute)", re.IGNORECASE)
_SECONDS = re.compile(r"(\d+(?:\.\d+)?)\s*(?:s|sec|secs|second)", re.IGNORECASE)


def round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def _whole_seconds(x: float) -> int:
    try:
        return round_half_up(x) if math.isfinite(x) else 0
    except OverflowError:
        return 0


def parse_duration(value: Any) -> int:
    """Total seconds from raw seconds, "H:MM:SS" / "MM:SS", or text like "1h 30m 45s". 0 otherwise."""
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return _whole_seconds(value)
    s = str(value if value is not None else "").strip()
    if not s:
        return 0
    if _PURE_NUMBER.match(s):
        return _whole_seconds(float(s))
    if _CLOCK.match(s):
        parts = [int(p) for p in s.split(":")]
        if len(parts) == 2:
            return parts[0] * 60 + parts[1]
        return parts[0] * 3600 + parts[1] * 60 + parts[2]

    total = 0.0
    hours = _HOURS.search(s)
    mins = _MINUTES.search(s)
    secs = _SECONDS.search(s)
    if hours:
        total += float(hours.group(1)) * 3600
    if mins:
        total += float(mins.group(1)) * 60
    if secs:
        total += float(secs.group(1))
    return _whole_seconds(total)


# --- Set types ---

_NORMAL_ALIASES = frozenset({"", "normalset", "normal", "working", "work", "regular", "standard"})


def normalize_set_type(value: Any) -> SetType:
    """Collapse any exporter's set-type vocabulary to the canonical set; unknown -> "normal"."""
    s = re.sub(r"[^a-z0-9]", "", str(value if value is not None else "").lower())

    if s in _NORMAL_ALIASES:
        return "normal"
    if "warm" in s or s == "w":
        return "warmup"
    if s in ("left", "leftset", "l") or ("left" in s and "set" in s):
        return "left"
    if s in ("right", "rightset", "r") or ("right" in s and "set" in s):
        return "right"
    if "drop" in s or s == "d":
        return "dropset"
    if "fail" in s or s == "x":
        return "failure"
    if "amrap" in s or s == "a":
        return "amrap"
    if ("rest" in s and "pause" in s) or s == "rp":
        return "restpause"
    if "myo" in s or s == "m":
        return "myoreps"
    if "cluster" in s or s == "c":
        return "cluster"
    if "giant" in s or s == "g":
        return "giantset"
    if "super" in s or s == "s":
        return "superset"
    if "backoff" in s or ("back" in s and "off" in s) or s == "b":
        return "backoff"
    if "top" in s or s == "t":
        return "topset"
    if "feeder" in s or s == "f":
        return "feederset"
    if "partial" in s or s == "p":
        return "partial"
    return "normal"


def is_warmup_set_type(set_type: str | None) -> bool:
    return set_type == "warmup"


def is_unilateral_set_type(set_type: str | None) -> bool:
    return set_type in ("left", "right")


# --- Exertion ---

def rir_to_rpe(rir: float) -> float:
    """RPE = 10 - RIR, clamped to [1, 10]."""
    return max(1.0, min(10.0, 10.0 - rir))
