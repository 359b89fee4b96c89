"""
Tests for the report and dashboard services over a seeded database.
"""

import pytest

from assessflow.assessments.lifecycle import AttemptLifecycleManager
from assessflow.assessments.models import AssessmentSummary, StudentData, TrainingStatus, WorkflowAssessments
from assessflow.common.auth.context import TenantContext, UserRole
from assessflow.common.error_handling import AttemptNotFoundError, StudentNotFoundError, TenantContextError
from assessflow.dashboard.service import DashboardService, next_action, resolve_stage
from assessflow.reporting.service import ReportingService
from assessflow.tests.test_lifecycle import admin_ctx, finish_baseline, student_ctx


def block_titled(payload, title):
    return next(block for block in payload["assessments"] if block["title"] == title)


def kpi(payload, label):
    return next(item for item in payload["kpis"] if item["label"] == label)


class TestNextAction:
    def test_enabled_actions_link_to_the_attempt(self):
        action = next_action(TrainingStatus.READY_FOR_BASELINE)
        assert action == {"label": "Start Baseline Assessment", "enabled": True, "href": "/assessment/attempt"}

    def test_training_is_disabled(self):
        action = next_action(TrainingStatus.IN_TRAINING)
        assert action["enabled"] is False
        assert action["href"] is None
        assert action["helper"]

    def test_stored_status_wins_over_attempts(self):
        student = StudentData(
            id=1, tenant_id=1, reg_no="S1", name="S",
            training_status=TrainingStatus.IN_TRAINING, stored_status="in_training",
        )
        workflow = WorkflowAssessments(baseline=AssessmentSummary(id=1, title="B", order=1))
        assert resolve_stage(student, workflow, {}) is TrainingStatus.IN_TRAINING

    def test_missing_status_is_derived(self):
        student = StudentData(id=1, tenant_id=1, reg_no="S1", name="S")
        workflow = WorkflowAssessments(baseline=AssessmentSummary(id=1, title="B", order=1))
        assert resolve_stage(student, workflow, {}) is TrainingStatus.READY_FOR_BASELINE


@pytest.mark.asyncio
async def test_overview_after_one_baseline(db_session, seed):
    await finish_baseline(AttemptLifecycleManager(db_session), seed, student_ctx(seed))

    overview = await ReportingService(db_session).overview(admin_ctx(seed), "7d")

    assert overview["kpis"] == {
        "total_students": 2,
        "active_now": 0,
        "avg_performance": 75,
        "at_risk_count": 0,
    }
    assert len(overview["trend"]) == 1
    assert overview["trend"][0]["avg_score"] == 75
    assert overview["trend"][0]["attempts"] == 1
    assert [row["topic"] for row in overview["weak_points"]] == ["Arithmetic", "Grammar"]
    assert overview["weak_points"][0]["avg_score"] == 50
    assert overview["weak_points"][0]["difficulty_index"] == "Medium"

    stats = {row["title"]: row for row in overview["assessment_stats"]}
    assert stats["Baseline Assessment"]["completion_rate"] == 50
    assert stats["Baseline Assessment"]["avg_score"] == 75
    assert stats["Final Assessment"]["completion_rate"] == 0

    students = {row["reg_no"]: row for row in overview["student_performances"]}
    assert students["S001"]["avg_score"] == 75
    assert students["S001"]["total_attempts"] == 1
    assert students["S001"]["status"] == "On Track"
    assert students["S001"]["last_active"] is not None
    assert students["S002"]["status"] == "Inactive"


@pytest.mark.asyncio
async def test_overview_counts_open_attempts_as_active(db_session, seed):
    await AttemptLifecycleManager(db_session).start_current(student_ctx(seed))

    overview = await ReportingService(db_session).overview(admin_ctx(seed))

    assert overview["kpis"]["active_now"] == 1
    assert overview["kpis"]["avg_performance"] == 0
    assert overview["weak_points"] == []


@pytest.mark.asyncio
async def test_student_report(db_session, seed):
    await finish_baseline(AttemptLifecycleManager(db_session), seed, student_ctx(seed))

    report = await ReportingService(db_session).student_report(admin_ctx(seed), seed.alice_id)

    assert report["student"]["name"] == "Alice Andrews"
    assert report["student"]["training_status"] == "in_training"
    assert report["stats"] == {"avg_score": 75, "total_attempts": 1, "percentile": 100, "status": "On Track"}
    [entry] = report["history"]
    assert entry["assessment"] == "Baseline Assessment"
    assert entry["score_obtained"] == 15
    assert entry["total_mark"] == 20
    assert entry["score"] == 75
    assert entry["cohort_avg"] == 75


@pytest.mark.asyncio
async def test_student_report_is_tenant_scoped(db_session, seed):
    with pytest.raises(StudentNotFoundError) as exc_info:
        await ReportingService(db_session).student_report(admin_ctx(seed), seed.carol_id)
    assert exc_info.value.http_status == 404


@pytest.mark.asyncio
async def test_attempt_details(db_session, seed):
    attempt = await finish_baseline(AttemptLifecycleManager(db_session), seed, student_ctx(seed))

    details = await ReportingService(db_session).attempt_details(admin_ctx(seed), attempt.id)

    assert details["score_obtained"] == 15
    assert details["score"] == 75
    assert details["assessment"] == {"id": seed.baseline_id, "title": "Baseline Assessment", "total_mark": 20}
    rows = {row["question"]["id"]: row for row in details["responses"]}
    assert len(rows) == 4

    wrong = rows[seed.questions["qa_q2"]]
    assert wrong["is_correct"] is False
    assert wrong["option"]["is_correct"] is False
    assert wrong["correct_text"] == "QA two A"

    text = rows[seed.questions["va_text"]]
    assert text["is_correct"] is True
    assert text["option"] is None
    assert text["text_answer"] == "paris"


@pytest.mark.asyncio
async def test_attempt_details_of_another_tenant(db_session, seed):
    attempt = await finish_baseline(AttemptLifecycleManager(db_session), seed, student_ctx(seed))
    other_admin = TenantContext(tenant_id=seed.other_tenant_id, user_id="user-admin-b", role=UserRole.ADMIN)

    with pytest.raises(AttemptNotFoundError):
        await ReportingService(db_session).attempt_details(other_admin, attempt.id)


@pytest.mark.asyncio
async def test_search(db_session, seed):
    service = ReportingService(db_session)

    assert await service.search(admin_ctx(seed), " ali ") == [
        {"id": seed.alice_id, "label": "Alice Andrews (S001)", "value": seed.alice_id}
    ]
    by_reg_no = await service.search(admin_ctx(seed), "S00")
    assert [entry["id"] for entry in by_reg_no] == [seed.alice_id, seed.bob_id]
    assert await service.search(admin_ctx(seed), "Carol") == []


@pytest.mark.asyncio
async def test_student_dashboard_before_any_attempt(db_session, seed):
    dashboard = await DashboardService(db_session).student_dashboard(student_ctx(seed))

    assert dashboard["stage"] == "ready_for_baseline"
    assert dashboard["nextAction"]["label"] == "Start Baseline Assessment"
    assert dashboard["activeModule"]["title"] == "Quantitative Aptitude"
    assert dashboard["activeModule"]["assessment_id"] == seed.baseline_id
    assert dashboard["aggregateScore"] is None
    assert dashboard["myQueue"]["submitted"] == []
    assert [item["title"] for item in dashboard["myQueue"]["upcoming"]] == ["Quantitative Aptitude", "Verbal Ability"]
    assert block_titled(dashboard, "Baseline Assessment")["stage"] == "baseline"
    assert block_titled(dashboard, "Final Assessment")["stage"] == "final"


@pytest.mark.asyncio
async def test_student_dashboard_after_baseline(db_session, seed):
    await finish_baseline(AttemptLifecycleManager(db_session), seed, student_ctx(seed))

    dashboard = await DashboardService(db_session).student_dashboard(student_ctx(seed))

    assert dashboard["stage"] == "in_training"
    assert dashboard["nextAction"]["enabled"] is False
    assert dashboard["activeModule"] is None

    baseline = block_titled(dashboard, "Baseline Assessment")
    assert baseline["score"] == 75
    assert [(module["status"], module["score"]) for module in baseline["modules"]] == [
        ("Complete", 50),
        ("Complete", 50),
    ]
    final = block_titled(dashboard, "Final Assessment")
    assert all(module["status"] == "Incomplete" for module in final["modules"])

    assert dashboard["comparisons"] == [
        {"number": 1, "title": "Quantitative Aptitude", "a1": 50, "a2": None},
        {"number": 2, "title": "Verbal Ability", "a1": 50, "a2": None},
        {"number": 3, "title": "Data Interpretation", "a1": None, "a2": None},
    ]
    assert dashboard["aggregateScore"] == 50
    assert len(dashboard["myQueue"]["submitted"]) == 2


@pytest.mark.asyncio
async def test_open_attempt_is_not_scored(db_session, seed):
    manager = AttemptLifecycleManager(db_session)
    attempt = await manager.start_current(student_ctx(seed))
    await manager.save_progress(student_ctx(seed), attempt.id, seed.questions["qa_q1"], option_id=seed.options["qa_q1_B"])

    dashboard = await DashboardService(db_session).student_dashboard(student_ctx(seed))

    baseline = block_titled(dashboard, "Baseline Assessment")
    assert dashboard["stage"] == "baseline_in_progress"
    assert dashboard["nextAction"]["label"] == "Continue Baseline Assessment"
    assert baseline["attempt_id"] == attempt.id
    assert baseline["score"] is None
    assert all(module["score"] is None for module in baseline["modules"])


@pytest.mark.asyncio
async def test_empty_module_stays_incomplete(db_session, seed):
    manager = AttemptLifecycleManager(db_session)
    ctx = student_ctx(seed)
    attempt = await manager.start_explicit(ctx, seed.practice_id)
    await manager.save_progress(ctx, attempt.id, seed.questions["practice"], option_id=seed.options["practice_A"])
    await manager.submit(ctx, attempt.id)

    dashboard = await DashboardService(db_session).student_dashboard(ctx)

    practice = block_titled(dashboard, "Practice")
    modules = {module["title"]: module for module in practice["modules"]}
    assert modules["Warm Up"]["status"] == "Incomplete"
    assert modules["Warm Up"]["score"] is None
    assert modules["Unweighted"]["status"] == "Complete"
    assert modules["Unweighted"]["score"] == 100


@pytest.mark.asyncio
async def test_student_dashboard_requires_profile(db_session, seed):
    service = DashboardService(db_session)

    with pytest.raises(StudentNotFoundError):
        await service.student_dashboard(student_ctx(seed, user_id="user-nobody"))
    with pytest.raises(TenantContextError):
        await service.student_dashboard(TenantContext(tenant_id=None, user_id="user-alice", role=UserRole.STUDENT))


@pytest.mark.asyncio
async def test_admin_dashboard_after_one_baseline(db_session, seed):
    await finish_baseline(AttemptLifecycleManager(db_session), seed, student_ctx(seed))

    dashboard = await DashboardService(db_session).admin_dashboard(admin_ctx(seed), "today")

    assert dashboard["tenants"] == [{"id": str(seed.college_id), "name": "North Campus"}]
    assert kpi(dashboard, "Active Assessments")["value"] == 3
    assert kpi(dashboard, "Submissions") == {"label": "Submissions", "value": 1, "delta": 1}
    assert kpi(dashboard, "Average Score") == {"label": "Average Score", "value": 50, "delta": None}
    assert kpi(dashboard, "At-Risk Students")["value"] == 1
    assert dashboard["trend"] == [1]

    [recent] = dashboard["recent"]
    assert recent["student"] == "Alice Andrews"
    assert recent["regNo"] == "S001"
    assert recent["assessment"] == "Baseline Assessment"
    assert recent["score"] == 50
    assert recent["tenantName"] == "North Campus"

    buckets = {row["label"]: row["pct"] for row in dashboard["distribution"]}
    assert buckets["< 60"] == 100
    assert str(seed.college_id) in dashboard["distributionByTenant"]

    [progress] = dashboard["progressByCollege"]
    assert progress["students"] == 2
    assert progress["baseline"] == {"completed": 1, "status": "In progress"}
    assert progress["final"] == {"completed": 0, "status": "Not started"}


@pytest.mark.asyncio
async def test_admin_dashboard_empty_tenant(db_session, seed):
    other_admin = TenantContext(tenant_id=seed.other_tenant_id, user_id="user-admin-b", role=UserRole.ADMIN)

    dashboard = await DashboardService(db_session).admin_dashboard(other_admin, "30d")

    assert dashboard["tenants"] == []
    assert kpi(dashboard, "Submissions")["value"] == 0
    assert kpi(dashboard, "Average Score")["value"] is None
    assert dashboard["recent"] == []
    assert all(row["pct"] == 0 for row in dashboard["distribution"])
    assert len(dashboard["trend"]) == 12


@pytest.mark.asyncio
async def test_report_history_is_newest_first(db_session, seed):
    manager = AttemptLifecycleManager(db_session)
    ctx = student_ctx(seed)
    await finish_baseline(manager, seed, ctx)
    await manager.approve_final(admin_ctx(seed), seed.alice_id)
    final = await manager.start_current(ctx)
    await manager.submit(ctx, final.id)

    report = await ReportingService(db_session).student_report(admin_ctx(seed), seed.alice_id)

    assert [entry["assessment"] for entry in report["history"]] == ["Final Assessment", "Baseline Assessment"]


@pytest.mark.asyncio
async def test_admin_dashboard_buckets_each_module_score(db_session, seed):
    manager = AttemptLifecycleManager(db_session)
    ctx = student_ctx(seed)
    attempt = await manager.start_current(ctx)
    await manager.save_progress(ctx, attempt.id, seed.questions["qa_q1"], option_id=seed.options["qa_q1_B"])
    await manager.save_progress(ctx, attempt.id, seed.questions["qa_q2"], option_id=seed.options["qa_q2_A"])
    await manager.save_progress(ctx, attempt.id, seed.questions["va_q1"], option_id=seed.options["va_q1_B"])
    await manager.submit(ctx, attempt.id)

    dashboard = await DashboardService(db_session).admin_dashboard(admin_ctx(seed), "today")

    buckets = {row["label"]: row["pct"] for row in dashboard["distribution"]}
    assert buckets == {"90–100": 50, "80–89": 0, "70–79": 0, "60–69": 0, "< 60": 50}
    college_buckets = {row["label"]: row["pct"] for row in dashboard["distributionByTenant"][str(seed.college_id)]}
    assert college_buckets["90–100"] == 50
    assert kpi(dashboard, "Average Score")["value"] == 50
    assert kpi(dashboard, "At-Risk Students")["value"] == 1
    assert dashboard["recent"][0]["score"] == 50


@pytest.mark.asyncio
async def test_admin_dashboard_skips_unscored_attempts_in_recent(db_session, seed):
    manager = AttemptLifecycleManager(db_session)
    ctx = student_ctx(seed)
    attempt = await manager.start_explicit(ctx, seed.practice_id)
    await manager.submit(ctx, attempt.id)

    dashboard = await DashboardService(db_session).admin_dashboard(admin_ctx(seed), "today")

    assert kpi(dashboard, "Submissions")["value"] == 1
    assert kpi(dashboard, "Average Score")["value"] is None
    assert kpi(dashboard, "At-Risk Students")["value"] == 0
    assert dashboard["recent"] == []
