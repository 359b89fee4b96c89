"""
Tests for the reporting aggregation helpers.
"""

import datetime

import pytest

from assessflow.reporting.aggregator import (
    average,
    build_daily_average_trend,
    build_score_distribution,
    build_submission_trend,
    count_at_risk,
    difficulty_index,
    format_duration,
    percentile_rank,
    performance_status,
    progress_status_label,
    resolve_report_range,
    resolve_timeframe,
    summarize_topics,
)

NOW = datetime.datetime(2026, 3, 15, 14, 30, 0)


class TestWindows:
    def test_today_starts_at_midnight(self):
        start, end = resolve_timeframe("today", NOW)
        assert start == datetime.datetime(2026, 3, 15)
        assert end == NOW

    @pytest.mark.parametrize("timeframe,days", [("7d", 7), ("30d", 30)])
    def test_rolling_windows(self, timeframe, days):
        start, end = resolve_timeframe(timeframe, NOW)
        assert end - start == datetime.timedelta(days=days)

    def test_unknown_timeframe_means_today(self):
        assert resolve_timeframe("90d", NOW) == resolve_timeframe("today", NOW)
        assert resolve_timeframe(None, NOW) == resolve_timeframe("today", NOW)

    def test_report_range(self):
        assert resolve_report_range("all", NOW) is None
        assert resolve_report_range("today", NOW) == datetime.datetime(2026, 3, 15)
        assert resolve_report_range("30d", NOW) == NOW - datetime.timedelta(days=30)
        assert resolve_report_range(None, NOW) == NOW - datetime.timedelta(days=7)


class TestDistribution:
    def test_buckets_in_order(self):
        rows = build_score_distribution([95, 90, 85, 72, 65, 10, None])
        assert [row["label"] for row in rows] == ["90–100", "80–89", "70–79", "60–69", "< 60"]
        assert [row["pct"] for row in rows] == [33, 17, 17, 17, 17]

    def test_empty_input(self):
        assert all(row["pct"] == 0 for row in build_score_distribution([]))

    def test_boundaries(self):
        rows = {row["label"]: row["pct"] for row in build_score_distribution([89.9, 60, 59.9])}
        assert rows["80–89"] == 33
        assert rows["60–69"] == 33
        assert rows["< 60"] == 33


class TestTrends:
    def test_submission_trend_is_oldest_first(self):
        start, end = resolve_timeframe("7d", NOW)
        moments = [
            NOW,
            NOW - datetime.timedelta(hours=1),
            NOW - datetime.timedelta(days=2),
        ]
        trend = build_submission_trend(moments, start, end)

        assert len(trend) == 8
        assert trend[-1] == 2
        assert trend[-3] == 1
        assert sum(trend) == 3

    def test_submission_trend_is_capped(self):
        start, end = resolve_timeframe("30d", NOW)
        assert len(build_submission_trend([], start, end, max_points=12)) == 12

    def test_today_has_one_point(self):
        start, end = resolve_timeframe("today", NOW)
        assert build_submission_trend([NOW], start, end) == [1]

    def test_daily_average_trend(self):
        points = [
            (datetime.datetime(2026, 3, 14, 9), 50.0),
            (datetime.datetime(2026, 3, 14, 11), 66.66),
            (datetime.datetime(2026, 3, 13, 8), 100.0),
        ]
        trend = build_daily_average_trend(points)

        assert [row["date"] for row in trend] == ["2026-03-13", "2026-03-14"]
        assert trend[1]["avg_score"] == pytest.approx(58.3)
        assert trend[1]["attempts"] == 2
        assert trend[0]["label"] == "Fri, Mar 13"


class TestStatusLabels:
    def test_progress_status_label(self):
        assert progress_status_label(0, 10) == "Not started"
        assert progress_status_label(3, 0) == "Not started"
        assert progress_status_label(3, 10) == "In progress"
        assert progress_status_label(10, 10) == "Completed"

    def test_performance_status(self):
        assert performance_status(None, 0, 60) == "Inactive"
        assert performance_status(59.9, 2, 60) == "At Risk"
        assert performance_status(60, 2, 60) == "On Track"
        assert performance_status(80, 2, 60) == "On Track"
        assert performance_status(80.5, 2, 60) == "Exceling"

    def test_count_at_risk(self):
        assert count_at_risk([59, 60, None, 12], 60) == 2

    def test_difficulty_index(self):
        assert difficulty_index(49) == "High"
        assert difficulty_index(50) == "Medium"
        assert difficulty_index(75) == "Low"


class TestCohort:
    def test_percentile_rank(self):
        assert percentile_rank(70, [50, 60, 70, 80]) == 50
        assert percentile_rank(90, [90]) == 100
        assert percentile_rank(None, [50, 60]) == 0
        assert percentile_rank(50, []) == 0

    def test_average(self):
        assert average([]) is None
        assert average([None, 4, 6]) == 5


class TestTopics:
    def test_weakest_first_and_limited(self):
        outcomes = [("Algebra", True), ("Algebra", False), ("Grammar", False), ("Logic", True), (None, False)]
        outcomes += [(f"Topic {index}", True) for index in range(10)]

        rows = summarize_topics(outcomes)

        assert len(rows) == 8
        assert rows[0] == {"topic": "Grammar", "avg_score": 0, "total_attempts": 1, "difficulty_index": "High"}
        assert rows[1]["topic"] == "Algebra"
        assert rows[1]["avg_score"] == 50


def test_format_duration():
    assert format_duration(None) == "N/A"
    assert format_duration(0) == "N/A"
    assert format_duration(3725) == "01:02:05"
