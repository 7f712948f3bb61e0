"""Trend classification over newest-first session lists."""

from datetime import datetime, timedelta

import pytest

from liftlog.history import one_rep_max
from liftlog.models import ExerciseSessionEntry
from liftlog.trend import analyze_exercise_trend, detect_premature_pr, recent_direction_tag, trend_confidence


def _sessions(weights, reps=None, one_rms=None, max_reps=None) -> list[ExerciseSessionEntry]:
    """Newest first, one session per week."""
    latest = datetime(2024, 6, 1, 18, 0)
    out = []
    for i, weight in enumerate(weights):
        r = reps[i] if reps else 5
        out.append(ExerciseSessionEntry(
            date=latest - timedelta(weeks=i),
            weight=weight,
            reps=r,
            one_rep_max=one_rms[i] if one_rms else one_rep_max(weight, r),
            volume=weight * r,
            sets=3,
            total_reps=r * 3,
            max_reps=max_reps[i] if max_reps else r,
        ))
    return out


def test_no_sessions_is_new() -> None:
    result = analyze_exercise_trend([])
    assert result.status == "new"
    assert result.confidence == "low"


def test_fewer_than_four_sessions_is_new() -> None:
    result = analyze_exercise_trend(_sessions([110, 105, 100]))
    assert result.status == "new"
    assert result.is_bodyweight_like is False


def test_stagnant_plateau() -> None:
    result = analyze_exercise_trend(_sessions([100, 100, 100, 100], reps=[5, 5, 6, 5]))
    assert result.status == "stagnant"
    assert result.plateau is not None
    assert (result.plateau.weight, result.plateau.min_reps, result.plateau.max_reps) == (100, 5, 6)
    assert result.confidence == "low"
    assert result.recent_evidence is None


def test_overload() -> None:
    result = analyze_exercise_trend(_sessions(
        [100, 98, 96, 90, 88, 86],
        one_rms=[110, 108, 106, 100, 98, 96],
    ))
    assert result.status == "overload"
    assert result.confidence == "medium"
    assert result.diff_pct == pytest.approx((108 - 98) / 98 * 100)
    assert result.calculation is not None
    assert result.calculation.window_size == 6
    assert (result.calculation.current_avg, result.calculation.previous_avg) == (108, 98)
    assert result.recent_evidence is not None
    assert result.recent_evidence.unit == "pct"
    assert result.recent_evidence.delta == pytest.approx(2 / 108 * 100)
    assert result.recent_evidence.direction == "steady_progress"


def test_regression() -> None:
    result = analyze_exercise_trend(_sessions(
        [86, 88, 90, 96, 98, 100],
        one_rms=[96, 98, 100, 106, 108, 110],
    ))
    assert result.status == "regression"
    assert result.diff_pct == pytest.approx((98 - 108) / 108 * 100)
    assert result.recent_evidence is not None
    assert result.recent_evidence.direction == "easing"


def test_neutral_small_change() -> None:
    result = analyze_exercise_trend(_sessions(
        [100, 95, 90, 100],
        one_rms=[100.1, 100, 100, 100.05],
    ))
    assert result.status == "neutral"
    assert result.calculation is not None
    assert result.calculation.window_size == 4
    assert result.recent_evidence is None


def test_bodyweight_overload_uses_max_reps() -> None:
    result = analyze_exercise_trend(_sessions([0, 0, 0, 0], max_reps=[12, 11, 8, 7]))
    assert result.is_bodyweight_like is True
    assert result.status == "overload"
    assert result.recent_evidence is not None
    assert result.recent_evidence.unit == "reps"
    assert result.recent_evidence.delta == 1
    assert result.recent_evidence.direction == "steady_progress"


def test_bodyweight_without_signal_is_new() -> None:
    result = analyze_exercise_trend(_sessions([0, 0, 0, 0], max_reps=[1, 1, 0, 1]))
    assert result.status == "new"
    assert result.is_bodyweight_like is True


def test_empty_previous_window_is_new() -> None:
    result = analyze_exercise_trend(_sessions([100, 90, 80, 70], one_rms=[100, 100, 0, 0]))
    assert result.status == "new"


def test_unheld_pr_spike_is_premature() -> None:
    result = analyze_exercise_trend(_sessions(
        [100, 100, 110, 100, 100, 100],
        one_rms=[104, 104, 115, 104, 104, 104],
    ))
    assert result.status == "overload"
    assert result.premature_pr is True
    assert result.pr_spike_pct == pytest.approx(11 / 104 * 100)
    assert result.pr_drop_pct == pytest.approx(-11 / 115 * 100)


def test_pr_weight_rehit_twice_is_not_premature() -> None:
    """Two later sessions back at the PR weight validate it even though the estimate dipped."""
    result = analyze_exercise_trend(_sessions(
        [110, 110, 110, 100, 100, 100],
        one_rms=[112, 112, 115, 104, 104, 104],
    ))
    assert result.premature_pr is False
    assert result.pr_spike_pct is None
    assert result.pr_drop_pct is None


def test_pr_in_latest_session_is_not_premature() -> None:
    result = analyze_exercise_trend(_sessions(
        [115, 100, 100, 100, 100, 100],
        one_rms=[120, 104, 104, 104, 104, 104],
    ))
    assert result.status == "overload"
    assert result.premature_pr is False


def test_bodyweight_premature_pr_has_no_percentages() -> None:
    result = analyze_exercise_trend(_sessions([0] * 6, max_reps=[10, 10, 14, 10, 10, 10]))
    assert result.is_bodyweight_like is True
    assert result.premature_pr is True
    assert result.pr_spike_pct is None


def test_premature_pr_needs_sessions_on_both_sides() -> None:
    assert detect_premature_pr(_sessions([110, 100]), False) == (False, None, None)
    assert analyze_exercise_trend(_sessions([100, 100, 100, 100])).premature_pr is False


@pytest.mark.parametrize(
    "overall,recent,tag",
    [
        (5, 0, None),
        (0, 2, "improving"),
        (0, -2, "worsening"),
        (2, 4, "accelerating"),
        (-2, -4, "getting_worse"),
        (5, 1, "steady_progress"),
        (-5, -1, "easing"),
        (2, 2, "still_improving"),
        (-2, -2, "still_declining"),
        (-3, 2, "rebound"),
        (3, -2, "slipping"),
    ],
)
def test_recent_direction_tag(overall, recent, tag) -> None:
    assert recent_direction_tag(overall, recent) == tag


@pytest.mark.parametrize(
    "history_len,window_size,confidence",
    [(3, 4, "low"), (4, 4, "low"), (6, 6, "medium"), (10, 6, "high"), (10, 4, "medium")],
)
def test_trend_confidence(history_len, window_size, confidence) -> None:
    assert trend_confidence(history_len, window_size) == confidence
