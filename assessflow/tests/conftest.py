"""
Shared fixtures.

Every test gets a fresh in-memory SQLite database holding two tenants:

- tenant A: a college, two students (Alice with no stored status, Bob ready
  for the Baseline), Baseline and Final assessments sharing module titles, and
  a Practice assessment with an empty module and unweighted questions
- tenant B: one student and one assessment, used for isolation checks
"""

from dataclasses import dataclass, field
from typing import Dict, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from assessflow.common.auth.jwt import create_access_token
from assessflow.database.init_db import build_engine, build_session_factory, create_all, get_async_db
from assessflow.database.models import (
    Assessment,
    College,
    Module,
    Option,
    Question,
    Student,
    Tenant,
)
from assessflow.main import create_app

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@dataclass
class SeedData:
    """Ids of the seeded rows."""
    tenant_id: int
    other_tenant_id: int
    college_id: int
    alice_id: int
    bob_id: int
    carol_id: int
    baseline_id: int
    final_id: int
    practice_id: int
    other_assessment_id: int
    modules: Dict[str, int] = field(default_factory=dict)
    questions: Dict[str, int] = field(default_factory=dict)
    options: Dict[str, int] = field(default_factory=dict)


def _mcq(tenant_id: int, stem: str, points: Optional[int], correct: str, topic: Optional[str] = None) -> Question:
    question = Question(tenant_id=tenant_id, stem=stem, type="MCQ", points=points, topic=topic)
    question.options = [
        Option(label="A", text=f"{stem} A", is_correct=correct == "A"),
        Option(label="B", text=f"{stem} B", is_correct=correct == "B"),
    ]
    return question


async def _seed(session) -> SeedData:
    tenant = Tenant(name="Tenant A")
    other = Tenant(name="Tenant B")
    session.add_all([tenant, other])
    await session.flush()

    college = College(tenant_id=tenant.id, name="North Campus")
    session.add(college)
    await session.flush()

    alice = Student(
        tenant_id=tenant.id, college_id=college.id, user_id="user-alice",
        reg_no="S001", name="Alice Andrews", email="alice@example.com", training_status=None,
    )
    bob = Student(
        tenant_id=tenant.id, college_id=college.id, user_id="user-bob",
        reg_no="S002", name="Bob Brown", email="bob@example.com", training_status="ready_for_baseline",
    )
    carol = Student(tenant_id=other.id, user_id="user-carol", reg_no="S001", name="Carol Clark")
    session.add_all([alice, bob, carol])

    # Baseline
    qa_q1 = _mcq(tenant.id, "QA one", 5, "B", topic="Arithmetic")
    qa_q2 = _mcq(tenant.id, "QA two", 5, "A", topic="Arithmetic")
    va_q1 = _mcq(tenant.id, "VA one", 5, "A", topic="Grammar")
    va_text = Question(tenant_id=tenant.id, stem="Capital of France?", type="TEXT", points=5, topic="Grammar")
    va_text.options = [Option(label="A", text="  Paris  ", is_correct=True)]

    baseline_qa = Module(tenant_id=tenant.id, title="Quantitative Aptitude", order=1, questions=[qa_q1, qa_q2])
    baseline_va = Module(tenant_id=tenant.id, title="Verbal Ability", order=2, questions=[va_q1, va_text])
    baseline = Assessment(
        tenant_id=tenant.id, title="Baseline Assessment", order=1, total_marks=100,
        modules=[baseline_qa, baseline_va],
    )

    # Final
    final_qa_q = _mcq(tenant.id, "Final QA", 5, "A")
    final_va_q = _mcq(tenant.id, "Final VA", 5, "A")
    final_di_q = _mcq(tenant.id, "Final DI", 5, "A")
    final_qa = Module(tenant_id=tenant.id, title="Quantitative Aptitude", order=1, questions=[final_qa_q])
    final_va = Module(tenant_id=tenant.id, title="Verbal Ability", order=2, questions=[final_va_q])
    final_di = Module(tenant_id=tenant.id, title="Data Interpretation", order=3, questions=[final_di_q])
    final = Assessment(
        tenant_id=tenant.id, title="Final Assessment", order=2, total_marks=100,
        modules=[final_qa, final_va, final_di],
    )

    # Practice: an empty module and questions without points
    practice_q = _mcq(tenant.id, "Practice", None, "A")
    practice_empty = Module(tenant_id=tenant.id, title="Warm Up", order=1)
    practice_module = Module(tenant_id=tenant.id, title="Unweighted", order=2, questions=[practice_q])
    practice = Assessment(
        tenant_id=tenant.id, title="Practice", order=3, modules=[practice_empty, practice_module],
    )

    other_q = _mcq(other.id, "Other", 5, "A")
    other_assessment = Assessment(
        tenant_id=other.id, title="Other Baseline", order=1,
        modules=[Module(tenant_id=other.id, title="Other Module", order=1, questions=[other_q])],
    )

    session.add_all([baseline, final, practice, other_assessment])
    await session.flush()

    questions = {
        "qa_q1": qa_q1, "qa_q2": qa_q2, "va_q1": va_q1, "va_text": va_text,
        "final_qa": final_qa_q, "final_va": final_va_q, "final_di": final_di_q,
        "practice": practice_q, "other": other_q,
    }
    options = {}
    for name, question in questions.items():
        for option in question.options:
            options[f"{name}_{option.label}"] = option.id

    return SeedData(
        tenant_id=tenant.id,
        other_tenant_id=other.id,
        college_id=college.id,
        alice_id=alice.id,
        bob_id=bob.id,
        carol_id=carol.id,
        baseline_id=baseline.id,
        final_id=final.id,
        practice_id=practice.id,
        other_assessment_id=other_assessment.id,
        modules={
            "baseline_qa": baseline_qa.id,
            "baseline_va": baseline_va.id,
            "final_qa": final_qa.id,
            "final_va": final_va.id,
            "final_di": final_di.id,
            "practice_empty": practice_empty.id,
        },
        questions={name: question.id for name, question in questions.items()},
        options=options,
    )


@pytest_asyncio.fixture
async def engine():
    """Fresh in-memory database with the full schema."""
    test_engine = build_engine(TEST_DATABASE_URL)
    await create_all(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest_asyncio.fixture
async def seed(session_factory) -> SeedData:
    """Seed both tenants and commit."""
    async with session_factory() as session:
        async with session.begin():
            data = await _seed(session)
    return data


@pytest_asyncio.fixture
async def db_session(session_factory, seed):
    """Session on the seeded database, closed after the test."""
    async with session_factory() as session:
        yield session


def make_token(
    tenant_id: Optional[int],
    role: str = "student",
    user_id: str = "user-alice",
    student_id: Optional[int] = None,
) -> str:
    claims = {"role": role}
    if tenant_id is not None:
        claims["tenant_id"] = tenant_id
    if student_id is not None:
        claims["student_id"] = student_id
    return create_access_token(user_id, additional_claims=claims)


def bearer(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def student_headers(seed):
    """Headers for Alice."""
    return bearer(make_token(seed.tenant_id, "student", "user-alice"))


@pytest.fixture
def bob_headers(seed):
    return bearer(make_token(seed.tenant_id, "student", "user-bob", student_id=seed.bob_id))


@pytest.fixture
def admin_headers(seed):
    return bearer(make_token(seed.tenant_id, "admin", "user-admin"))


@pytest_asyncio.fixture
async def client(session_factory, seed):
    """HTTP client over the app with sessions bound to the test database."""
    app = create_app(manage_database=False)

    async def override_get_async_db():
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_async_db] = override_get_async_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as test_client:
        yield test_client
