"""Per-exercise history: working sets with PR tags, and their aggregation into sessions."""

from __future__ import annotations

from typing import Iterable, Optional

from .models import CanonicalSet, ExerciseHistoryEntry, ExerciseSessionEntry, PrType, Side
from .parsers import is_unilateral_set_type, is_warmup_set_type


def one_rep_max(weight: float, reps: int) -> float:
    """Epley estimate, rounded to 2 places; 0 unless both weight and reps are positive."""
    if reps <= 0 or weight <= 0:
        return 0.0
    return round(weight * (1 + reps / 30.0), 2)


def _side(set_type: str) -> Optional[Side]:
    if is_unilateral_set_type(set_type):
        return "left" if set_type == "left" else "right"
    return None


def build_exercise_history(sets: Iterable[CanonicalSet], exercise_title: str) -> list[ExerciseHistoryEntry]:
    """
    Working sets of one exercise, newest first. Warmups and undated sets are skipped.
    PR tags come from a running maximum walked in chronological order (date, set_index, row order).
    """
    rows = [
        (i, s) for i, s in enumerate(sets)
        if s.exercise_title == exercise_title and s.parsed_date is not None and not is_warmup_set_type(s.set_type)
    ]
    rows.sort(key=lambda item: (item[1].parsed_date, item[1].set_index, item[0]))

    best_weight = best_one_rm = best_volume = 0.0
    entries: list[ExerciseHistoryEntry] = []
    for _, s in rows:
        weight = s.weight_kg or 0.0
        reps = s.reps or 0
        one_rm = one_rep_max(weight, reps)
        volume = weight * reps

        pr_types: list[PrType] = []
        if weight > 0 and weight > best_weight:
            pr_types.append("weight")
            best_weight = weight
        if one_rm > 0 and one_rm > best_one_rm:
            pr_types.append("one_rm")
            best_one_rm = one_rm
        if volume > 0 and volume > best_volume:
            pr_types.append("volume")
            best_volume = volume

        entries.append(ExerciseHistoryEntry(
            date=s.parsed_date,
            weight=weight,
            reps=reps,
            one_rep_max=one_rm,
            volume=volume,
            pr_types=pr_types,
            side=_side(s.set_type),
        ))

    entries.reverse()
    return entries


def summarize_exercise_history(
    history: Iterable[ExerciseHistoryEntry],
    separate_sides: bool = False,
) -> list[ExerciseSessionEntry]:
    """
    Group per-set history into sessions (same timestamp; split by side when separate_sides).
    A left or right set counts as half a set. The session's weight/reps/1RM come from its best
    1RM set; on ties the set seen last wins. Newest first.
    """
    sessions: dict[str, ExerciseSessionEntry] = {}
    for h in history:
        if h.date is None:
            continue
        key = h.date.isoformat()
        if separate_sides and h.side:
            key = f"{key}-{h.side}"

        entry = sessions.get(key)
        if entry is None:
            entry = ExerciseSessionEntry(date=h.date, side=h.side if separate_sides else None)
            sessions[key] = entry

        entry.sets += 0.5 if h.side else 1
        entry.volume += h.volume or 0.0
        entry.total_reps += h.reps or 0
        entry.max_reps = max(entry.max_reps, h.reps or 0)
        for pr in h.pr_types:
            if pr not in entry.pr_types:
                entry.pr_types.append(pr)

        if (h.one_rep_max or 0.0) >= entry.one_rep_max:
            entry.one_rep_max = h.one_rep_max or 0.0
            entry.weight = h.weight or 0.0
            entry.reps = h.reps or 0

    return sorted(sessions.values(), key=lambda e: e.date, reverse=True)
