"""Exercise-name fingerprints and the waterfall matcher (exact -> subset -> equipment-agnostic -> fuzzy)."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Mapping

from .models import MatchResult

logger = logging.getLogger(__name__)

# --- Vocabulary ---

FILLER_WORDS = frozenset({"a", "an", "the", "with", "on", "of", "to", "for", "in", "at", "using", "and"})

# One-to-many entries expand into several tokens ("rdl" -> "romanian deadlift").
WORD_SYNONYMS: Mapping[str, str] = MappingProxyType({
    "db": "dumbbell",
    "dumbbells": "dumbbell",
    "bb": "barbell",
    "barbells": "barbell",
    "kb": "kettlebell",
    "kettlebells": "kettlebell",
    "ez": "ezbar",
    "curlbar": "ezbar",
    "bw": "bodyweight",
    "cables": "cable",
    "machines": "machine",
    "rdl": "romanian deadlift",
    "sldl": "stiff leg deadlift",
    "ohp": "overhead press",
    "dl": "deadlift",
    "deadlifts": "deadlift",
    "squats": "squat",
    "presses": "press",
    "rows": "row",
    "curls": "curl",
    "raises": "raise",
    "lunges": "lunge",
    "crunches": "crunch",
    "extensions": "extension",
    "ext": "extension",
    "flyes": "fly",
    "flys": "fly",
    "flies": "fly",
    "flye": "fly",
    "pullups": "pullup",
    "chinups": "chinup",
    "pushups": "pushup",
    "pulldowns": "pulldown",
    "pushdowns": "pushdown",
    "dips": "dip",
    "shrugs": "shrug",
    "tricep": "triceps",
    "bicep": "biceps",
    "incl": "incline",
    "decl": "decline",
})

EQUIPMENT_WORDS = frozenset({
    "db", "dumbbell", "dumbbells",
    "bb", "barbell",
    "kb", "kettlebell",
    "ez", "ezbar", "curlbar",
    "bw", "bodyweight",
    "machine", "cable", "smith", "band", "plate", "trapbar",
    "none", "other",
})

# Scan order for equipment named inside parentheses, e.g. "Bench Press (Smith)".
_PAREN_EQUIPMENT_ORDER: tuple[str, ...] = (
    "dumbbell", "barbell", "kettlebell", "ezbar", "bodyweight",
    "smith", "machine", "cable", "band", "plate", "trapbar",
)

_EQUIPMENT_ALIASES: Mapping[str, str] = MappingProxyType({
    "db": "dumbbell",
    "dumbbells": "dumbbell",
    "bb": "barbell",
    "kb": "kettlebell",
    "ez": "ezbar",
    "curlbar": "ezbar",
    "bw": "bodyweight",
})

_EQUIPMENT_PREFERENCE: Mapping[str, int] = MappingProxyType({
    "dumbbell": 3,
    "barbell": 2,
    "machine": 1,
    "cable": 1,
})

IMPORTANT_WORDS = frozenset({
    "curl", "press", "row", "squat", "deadlift", "raise", "fly", "extension",
    "pulldown", "pushdown", "pullup", "chinup", "lunge", "crunch", "plank",
})

_COMPOUNDS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"\bpull ups?\b"), "pullup"),
    (re.compile(r"\bchin ups?\b"), "chinup"),
    (re.compile(r"\bpush ups?\b"), "pushup"),
    (re.compile(r"\bsit ups?\b"), "situp"),
    (re.compile(r"\bpull downs?\b"), "pulldown"),
    (re.compile(r"\bpush downs?\b"), "pushdown"),
)

FUZZY_THRESHOLD = 0.4
FUZZY_CONFIDENCE_CAP = 0.8
IMPORTANT_WORD_BOOST = 1.2


# --- Fingerprints ---

def _tokens(text: str) -> list[str]:
    s = text.lower()
    s = re.sub(r"['’]", "", s)
    s = re.sub(r"[^\w\s]|_", " ", s)
    s = re.sub(r"\s+", " ", s).strip()
    for pattern, joined in _COMPOUNDS:
        s = pattern.sub(joined, s)
    out: list[str] = []
    for word in s.split():
        if word in FILLER_WORDS:
            continue
        out.extend(WORD_SYNONYMS.get(word, word).split())
    return out


def get_fingerprint(text: str) -> str:
    """Sorted, synonym-expanded token key: word order does not matter."""
    if not text:
        return ""
    return " ".join(sorted(_tokens(text)))


def get_fingerprint_without_equipment(text: str) -> str:
    """Fingerprint with equipment words removed."""
    if not text:
        return ""
    return " ".join(w for w in get_fingerprint(text).split() if w not in EQUIPMENT_WORDS)


def extract_equipment(text: str) -> str | None:
    """First equipment word in the name (aliases normalized), else equipment named in parentheses."""
    if not text:
        return None
    for word in re.sub(r"[^\w\s]", " ", text.lower()).split():
        if word in EQUIPMENT_WORDS and word not in ("none", "other"):
            return _EQUIPMENT_ALIASES.get(word, word)
    paren = re.search(r"\(([^)]+)\)", text)
    if paren:
        content = paren.group(1).lower()
        for eq in _PAREN_EQUIPMENT_ORDER:
            if eq in content:
                return eq
    return None


# --- Index ---

@dataclass(frozen=True)
class FingerprintIndex:
    """Read-only lookup tables over an ordered exercise catalog."""
    exact_map: Mapping[str, str]
    agnostic_map: Mapping[str, tuple[str, ...]]
    name_to_fingerprint: Mapping[str, str]
    all_names: tuple[str, ...]


def build_fingerprint_index(names: Iterable[str]) -> FingerprintIndex:
    """Index a catalog. On fingerprint collisions the earliest catalog name wins."""
    all_names = tuple(names)
    exact: dict[str, str] = {}
    agnostic: dict[str, list[str]] = {}
    reverse: dict[str, str] = {}

    for name in all_names:
        fingerprint = get_fingerprint(name)
        reverse[name] = fingerprint
        if fingerprint and fingerprint not in exact:
            exact[fingerprint] = name
        agnostic_fp = get_fingerprint_without_equipment(name)
        if agnostic_fp:
            agnostic.setdefault(agnostic_fp, []).append(name)

    logger.info("Fingerprint index built: %d names, %d fingerprints", len(all_names), len(exact))
    return FingerprintIndex(
        exact_map=MappingProxyType(exact),
        agnostic_map=MappingProxyType({k: tuple(v) for k, v in agnostic.items()}),
        name_to_fingerprint=MappingProxyType(reverse),
        all_names=all_names,
    )


# --- Matching waterfall ---

_NO_MATCH = MatchResult(name="", method="none", confidence=0.0)


def _subset_match(fingerprint: str, index: FingerprintIndex) -> MatchResult | None:
    candidates: list[tuple[float, int, int, int, str]] = []
    for order, (master_fp, master_name) in enumerate(index.exact_map.items()):
        if fingerprint in master_fp or master_fp in fingerprint:
            diff = abs(len(master_fp) - len(fingerprint))
            score = 1 - diff / max(len(master_fp), len(fingerprint))
            candidates.append((-score, diff, len(master_name), order, master_name))
    if not candidates:
        return None
    neg_score, _, _, _, name = min(candidates)
    return MatchResult(name=name, method="subset", confidence=-neg_score)


def _agnostic_match(query: str, agnostic_fp: str, index: FingerprintIndex) -> MatchResult | None:
    names = index.agnostic_map.get(agnostic_fp)
    if not names:
        return None
    query_equipment = extract_equipment(query)
    if query_equipment:
        for name in names:
            if extract_equipment(name) == query_equipment:
                return MatchResult(name=name, method="equipment_agnostic", confidence=0.95)
    ranked = sorted(names, key=lambda n: -_EQUIPMENT_PREFERENCE.get(extract_equipment(n) or "", 0))
    return MatchResult(name=ranked[0], method="equipment_agnostic", confidence=0.85)


def _fuzzy_match(fingerprint: str, index: FingerprintIndex) -> MatchResult | None:
    query_words = set(fingerprint.split())
    best_name: str | None = None
    best_score = 0.0
    for master_fp, master_name in index.exact_map.items():
        master_words = set(master_fp.split())
        shared = query_words & master_words
        score = len(shared) / len(query_words | master_words)
        if shared & IMPORTANT_WORDS:
            score *= IMPORTANT_WORD_BOOST
        if score > FUZZY_THRESHOLD and score > best_score:
            best_name, best_score = master_name, score
    if best_name is None:
        return None
    return MatchResult(name=best_name, method="fuzzy", confidence=min(best_score, FUZZY_CONFIDENCE_CAP))


def find_best_match(query: str, index: FingerprintIndex) -> MatchResult:
    """
    Resolve a free-text exercise name against the index. First tier that succeeds wins:
    exact (1.0), subset (length-similarity score), equipment-agnostic (0.95 when the
    query's equipment matches, else 0.85 by equipment preference), fuzzy Jaccard (capped
    at 0.8), none (0).
    """
    if not query or not query.strip():
        return _NO_MATCH
    fingerprint = get_fingerprint(query)
    if not fingerprint:
        return _NO_MATCH

    exact = index.exact_map.get(fingerprint)
    if exact is not None:
        return MatchResult(name=exact, method="exact", confidence=1.0)

    result = _subset_match(fingerprint, index)
    if result is None:
        result = _agnostic_match(query, get_fingerprint_without_equipment(query), index)
    if result is None:
        result = _fuzzy_match(fingerprint, index)
    if result is None:
        result = _NO_MATCH
    logger.debug("Exercise %r -> %r via %s (%.2f)", query, result.name, result.method, result.confidence)
    return result


class FingerprintMatcher:
    """Callable resolver over one catalog: matcher("DB Bench Press") -> MatchResult."""

    def __init__(self, names: Iterable[str]):
        self.index = build_fingerprint_index(names)

    def __call__(self, query: str) -> MatchResult:
        return find_best_match(query, self.index)

    match = __call__
