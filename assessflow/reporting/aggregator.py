"""
Reporting Aggregator.

Stateless helpers that turn per-attempt and per-module percentages into the
figures shown on dashboards and reports: time windows, distribution buckets,
trends, percentile and status labels.
"""

import datetime
from collections import Counter, defaultdict
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from assessflow.assessments.scoring import round_half_up

DISTRIBUTION_BUCKETS: Sequence[Tuple[str, float]] = (
    ("90–100", 90),
    ("80–89", 80),
    ("70–79", 70),
    ("60–69", 60),
    ("< 60", float("-inf")),
)


def resolve_timeframe(timeframe: Optional[str], now: datetime.datetime) -> Tuple[datetime.datetime, datetime.datetime]:
    """Dashboard window ``today`` | ``7d`` | ``30d``; anything else means today."""
    if timeframe == "7d":
        return now - datetime.timedelta(days=7), now
    if timeframe == "30d":
        return now - datetime.timedelta(days=30), now
    return now.replace(hour=0, minute=0, second=0, microsecond=0), now


def resolve_report_range(time_range: Optional[str], now: datetime.datetime) -> Optional[datetime.datetime]:
    """Report window start; ``all`` has none and the default is the last 7 days."""
    if time_range == "all":
        return None
    if time_range == "today":
        return now.replace(hour=0, minute=0, second=0, microsecond=0)
    if time_range == "30d":
        return now - datetime.timedelta(days=30)
    return now - datetime.timedelta(days=7)


def average(values: Iterable[Optional[float]]) -> Optional[float]:
    present = [value for value in values if value is not None]
    if not present:
        return None
    return sum(present) / len(present)


def build_score_distribution(scores: Iterable[Optional[float]]) -> List[Dict[str, object]]:
    """
    Share of scores per fixed bucket, as rounded percentages.

    An empty input yields zero in every bucket.
    """
    present = [score for score in scores if score is not None]
    total = max(1, len(present))

    counts: Counter = Counter()
    for score in present:
        for label, lower_bound in DISTRIBUTION_BUCKETS:
            if score >= lower_bound:
                counts[label] += 1
                break

    return [
        {"label": label, "pct": round_half_up(counts[label] / total * 100)}
        for label, _ in DISTRIBUTION_BUCKETS
    ]


def build_submission_trend(
    submitted_at: Iterable[datetime.datetime],
    start: datetime.datetime,
    end: datetime.datetime,
    max_points: int = 12,
) -> List[int]:
    """Submissions per day, oldest first, ending on ``end``'s day, at most ``max_points`` days."""
    per_day = Counter(moment.date() for moment in submitted_at if moment is not None)
    days = min(max_points, (end.date() - start.date()).days + 1)
    return [
        per_day.get(end.date() - datetime.timedelta(days=offset), 0)
        for offset in range(days - 1, -1, -1)
    ]


def build_daily_average_trend(
    points: Iterable[Tuple[datetime.datetime, float]],
) -> List[Dict[str, object]]:
    """Average percentage (one decimal) and attempt count per submission day."""
    by_day: Dict[datetime.date, List[float]] = defaultdict(list)
    for submitted_at, pct in points:
        by_day[submitted_at.date()].append(pct)

    return [
        {
            "date": day.isoformat(),
            "label": day.strftime("%a, %b ") + str(day.day),
            "avg_score": round_half_up(sum(values) / len(values), 1),
            "attempts": len(values),
        }
        for day, values in sorted(by_day.items())
    ]


def progress_status_label(completed: int, total: int) -> str:
    if total == 0 or completed == 0:
        return "Not started"
    if completed < total:
        return "In progress"
    return "Completed"


def performance_status(
    average_pct: Optional[float],
    attempt_count: int,
    at_risk_threshold: float,
    excelling_threshold: float = 80.0,
) -> str:
    """Inactive / At Risk / Exceling / On Track."""
    if attempt_count == 0 or average_pct is None:
        return "Inactive"
    if average_pct < at_risk_threshold:
        return "At Risk"
    if average_pct > excelling_threshold:
        return "Exceling"
    return "On Track"


def count_at_risk(averages: Iterable[Optional[float]], threshold: float) -> int:
    return sum(1 for value in averages if value is not None and value < threshold)


def percentile_rank(own_average: Optional[float], cohort_averages: Sequence[float]) -> int:
    """
    Share of cohort members with a lower average, as a rounded percentage.

    A student who is the only one with attempts ranks 100.
    """
    if own_average is None or not cohort_averages:
        return 0
    if len(cohort_averages) == 1:
        return 100
    below = sum(1 for value in cohort_averages if value < own_average)
    return round_half_up(below / len(cohort_averages) * 100)


def difficulty_index(score: float) -> str:
    if score < 50:
        return "High"
    if score < 75:
        return "Medium"
    return "Low"


def summarize_topics(outcomes: Iterable[Tuple[str, bool]], limit: int = 8) -> List[Dict[str, object]]:
    """Weakest topics first: correct-answer rate per topic over ``(topic, correct)`` pairs."""
    totals: Dict[str, List[int]] = defaultdict(lambda: [0, 0])
    for topic, correct in outcomes:
        if not topic:
            continue
        totals[topic][0] += int(correct)
        totals[topic][1] += 1

    rows = []
    for topic, (correct, answered) in totals.items():
        score = round_half_up(correct / answered * 100)
        rows.append({
            "topic": topic,
            "avg_score": score,
            "total_attempts": answered,
            "difficulty_index": difficulty_index(score),
        })
    rows.sort(key=lambda row: (row["avg_score"], row["topic"]))
    return rows[:limit]


def format_duration(seconds: Optional[int]) -> str:
    """``HH:MM:SS`` or ``N/A`` when nothing was recorded."""
    if not seconds:
        return "N/A"
    hours, remainder = divmod(int(seconds), 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"
