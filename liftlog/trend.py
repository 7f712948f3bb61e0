"""Trend classification over exercise sessions: overload / stagnant / regression / neutral / new."""

from __future__ import annotations

import math
from typing import Optional, Sequence

from .models import (
    ExerciseSessionEntry,
    Plateau,
    RecentDirection,
    RecentEvidence,
    TrendCalculation,
    TrendResult,
)
from .parsers import round_half_up

RECENT_SESSIONS = 4
MIN_SESSIONS_FOR_TREND = 4
MIN_SIGNAL_REPS = 2
ZERO_WEIGHT_KG = 0.0001
BODYWEIGHT_SHARE = 0.75
WEIGHT_STATIC_EPSILON_KG = 0.5
REP_STATIC_EPSILON = 1

# Overload / regression need both an absolute floor and a relative change
MIN_DIFF_PCT = 2.5
MIN_DIFF_ONE_RM_KG = 0.25
MIN_DIFF_REPS = 1.0

RECENT_NOISE_REPS = 1
RECENT_NOISE_PCT = 0.5
RECENT_HYSTERESIS = 1.0

# Premature PR: a spike in the last six sessions that later sessions did not hold
PR_LOOKBACK_SESSIONS = 6
PR_MARGIN_ONE_RM_KG = 0.001
PR_MARGIN_REPS = 0.25
PR_SPIKE_MIN_PCT = 2.0
PR_SPIKE_MIN_REPS = 1.0
PR_DROP_PCT = -2.5
PR_DROP_REPS = -1.0
PR_REHIT_SESSIONS = 2


def _avg(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _sign(x: float) -> int:
    return 1 if x > 0 else -1 if x < 0 else 0


def trend_confidence(history_len: int, window_size: int) -> str:
    if history_len < MIN_SESSIONS_FOR_TREND:
        return "low"
    if history_len >= 10 and window_size >= 6:
        return "high"
    if history_len >= 6:
        return "medium"
    return "low"


def recent_direction_tag(overall: float, recent: float) -> Optional[RecentDirection]:
    """Short-term direction of the latest change relative to the overall window trend."""
    recent_sign = _sign(recent)
    if recent_sign == 0:
        return None
    overall_sign = _sign(overall)
    if overall_sign == 0:
        return "improving" if recent_sign > 0 else "worsening"

    abs_overall = abs(overall)
    abs_recent = abs(recent)
    if overall_sign == recent_sign:
        if abs_recent > abs_overall + RECENT_HYSTERESIS:
            return "accelerating" if recent_sign > 0 else "getting_worse"
        if abs_recent < abs_overall - RECENT_HYSTERESIS:
            return "steady_progress" if recent_sign > 0 else "easing"
        return "still_improving" if recent_sign > 0 else "still_declining"
    return "rebound" if recent_sign > 0 else "slipping"


def build_recent_evidence(
    sessions: Sequence[ExerciseSessionEntry],
    is_bodyweight_like: bool,
    diff_abs: float,
    diff_pct: float,
) -> Optional[RecentEvidence]:
    """Latest session vs the one before it; None when there is no previous session or the change is noise."""
    if len(sessions) < 2:
        return None
    latest, previous = sessions[0], sessions[1]
    if is_bodyweight_like:
        delta = round_half_up(latest.max_reps - previous.max_reps)
        if abs(delta) < RECENT_NOISE_REPS:
            return None
        return RecentEvidence(delta=delta, unit="reps", direction=recent_direction_tag(diff_abs, delta))

    previous_metric = previous.one_rep_max
    delta_pct = (latest.one_rep_max - previous_metric) / previous_metric * 100 if previous_metric > 0 else 0.0
    if abs(delta_pct) < RECENT_NOISE_PCT:
        return None
    return RecentEvidence(delta=delta_pct, unit="pct", direction=recent_direction_tag(diff_pct, delta_pct))


def detect_premature_pr(
    sessions: Sequence[ExerciseSessionEntry],
    is_bodyweight_like: bool,
) -> tuple[bool, Optional[float], Optional[float]]:
    """
    Look for the newest session (never the latest one) whose metric beats every older session in the
    last six, then check what happened after it. The PR is premature when it was a meaningful jump,
    fewer than two later sessions got back to it, and the best later session stays clearly below it.

    Returns (premature, spike_pct, drop_pct); the percentages are only set for weighted work.
    """
    recent = sessions[:PR_LOOKBACK_SESSIONS]
    metric = [float(s.max_reps) if is_bodyweight_like else s.one_rep_max for s in recent]
    margin = PR_MARGIN_REPS if is_bodyweight_like else PR_MARGIN_ONE_RM_KG
    pr_index = next(
        (i for i in range(1, len(metric) - 1) if metric[i] > max(0.0, *metric[i + 1:]) + margin),
        None,
    )
    if pr_index is None:
        return False, None, None

    pr_metric = metric[pr_index]
    prior = metric[pr_index + 1]
    spike_abs = pr_metric - prior
    spike_pct = spike_abs / prior * 100 if prior > 0 else 0.0

    later = recent[:pr_index]
    drop_abs = max(0.0, *metric[:pr_index]) - pr_metric
    drop_pct = drop_abs / pr_metric * 100 if pr_metric > 0 else 0.0

    if is_bodyweight_like:
        meaningful = spike_abs >= PR_SPIKE_MIN_REPS
        rehits = sum(1 for s in later if s.max_reps >= pr_metric)
        sustained_drop = drop_abs <= PR_DROP_REPS
    else:
        meaningful = spike_pct >= PR_SPIKE_MIN_PCT
        pr_weight = recent[pr_index].weight
        rehits = sum(1 for s in later if s.weight >= pr_weight - WEIGHT_STATIC_EPSILON_KG)
        sustained_drop = drop_pct <= PR_DROP_PCT

    premature = meaningful and sustained_drop and rehits < PR_REHIT_SESSIONS
    if premature and not is_bodyweight_like:
        return True, spike_pct, drop_pct
    return premature, None, None


def analyze_exercise_trend(sessions: Sequence[ExerciseSessionEntry]) -> TrendResult:
    """
    Classify a newest-first session list.
    new: no sessions, no usable signal, fewer than four sessions, or an empty window average.
    stagnant: last four sessions hold weight within 0.5 kg and reps within one.
    overload / regression / neutral: recent half-window vs the previous half (6 sessions when
    available, else 4) on average 1RM, or on average max reps for bodyweight-like work. These also
    carry the premature-PR flag.
    """
    if not sessions:
        return TrendResult(status="new")

    recent = sessions[:RECENT_SESSIONS]
    weights = [s.weight for s in recent]
    zero_weight = sum(1 for w in weights if w <= ZERO_WEIGHT_KG)
    is_bodyweight_like = zero_weight >= math.ceil(len(recent) * BODYWEIGHT_SHARE)

    if is_bodyweight_like:
        has_signal = max(s.max_reps for s in recent) >= MIN_SIGNAL_REPS
    else:
        has_signal = max(weights) > ZERO_WEIGHT_KG
    if not has_signal or len(sessions) < MIN_SESSIONS_FOR_TREND:
        return TrendResult(status="new", is_bodyweight_like=is_bodyweight_like)

    if is_bodyweight_like:
        rep_metric = [float(s.max_reps) for s in recent]
    else:
        rep_metric = [float(s.reps) if s.reps else (s.volume / s.weight if s.weight > 0 else 0.0) for s in recent]

    weight_static = all(abs(w - weights[0]) < WEIGHT_STATIC_EPSILON_KG for w in weights)
    rep_static = max(rep_metric) - min(rep_metric) <= REP_STATIC_EPSILON
    if weight_static and rep_static:
        return TrendResult(
            status="stagnant",
            is_bodyweight_like=is_bodyweight_like,
            confidence=trend_confidence(len(sessions), RECENT_SESSIONS),
            plateau=Plateau(weight=weights[0], min_reps=min(rep_metric), max_reps=max(rep_metric)),
        )

    window_size = 6 if len(sessions) >= 6 else 4
    window = sessions[:window_size]
    metric = [float(s.max_reps) if is_bodyweight_like else s.one_rep_max for s in window]
    half = window_size // 2
    current_avg = _avg(metric[:half])
    previous_avg = _avg(metric[half:])
    if current_avg <= 0 or previous_avg <= 0:
        return TrendResult(status="new", is_bodyweight_like=is_bodyweight_like)

    diff_abs = current_avg - previous_avg
    diff_pct = diff_abs / previous_avg * 100
    abs_floor = MIN_DIFF_REPS if is_bodyweight_like else MIN_DIFF_ONE_RM_KG

    if diff_abs >= abs_floor and diff_pct >= MIN_DIFF_PCT:
        status = "overload"
    elif diff_abs <= -abs_floor and diff_pct <= -MIN_DIFF_PCT:
        status = "regression"
    else:
        status = "neutral"

    premature_pr, pr_spike_pct, pr_drop_pct = detect_premature_pr(sessions, is_bodyweight_like)
    return TrendResult(
        status=status,
        is_bodyweight_like=is_bodyweight_like,
        diff_pct=diff_pct,
        confidence=trend_confidence(len(sessions), window_size),
        recent_evidence=build_recent_evidence(sessions, is_bodyweight_like, diff_abs, diff_pct),
        calculation=TrendCalculation(
            history_len=len(sessions),
            window_size=window_size,
            current_avg=current_avg,
            previous_avg=previous_avg,
        ),
        premature_pr=premature_pr,
        pr_spike_pct=pr_spike_pct,
        pr_drop_pct=pr_drop_pct,
    )
