"""
Demo content.

One tenant with a college, a handful of students and the Baseline/Final pair of
assessments. Both assessments share their module titles so the adaptive Final
can map weak Baseline modules onto it.
"""

import datetime
from typing import Dict, List, Sequence, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from assessflow.common.logger import get_logger
from assessflow.database.base import utcnow
from assessflow.database.models import (
    Assessment,
    College,
    Module,
    Option,
    Question,
    Student,
    Tenant,
    University,
)

logger = get_logger(__name__)

DEMO_TENANT_NAME = "TechNirma Institute of Technology"

STUDENT_NAMES = [
    "Aarav Sharma", "Diya Patel", "Ishaan Mehta", "Priya Nair", "Rohan Iyer",
    "Ananya Reddy", "Karan Gupta", "Sneha Raj", "Devansh Das", "Meera Singh",
]

# (title, code, minutes)
MODULES: Sequence[Tuple[str, str, int]] = (
    ("Quantitative Aptitude", "QA", 30),
    ("Logical Reasoning", "LR", 30),
    ("Verbal Ability", "VA", 25),
    ("Technical Fundamentals", "TF", 35),
)

# Per module title: (stem, type, [(option text, correct)])
QUESTION_BANK: Dict[str, List[Tuple[str, str, List[Tuple[str, bool]]]]] = {
    "Quantitative Aptitude": [
        (
            "If A can complete a task in 10 days and B in 15 days, in how many days can they complete it together?",
            "MCQ",
            [("10 days", False), ("6 days", True), ("12 days", False), ("8 days", False)],
        ),
        (
            "A shopkeeper offers a discount of 20% on a marked price of 2,500. What is the selling price?",
            "MCQ",
            [("2,000", True), ("2,100", False), ("1,900", False), ("2,200", False)],
        ),
        (
            "The perimeter of a rectangle is 60 cm and its length is 18 cm. What is its breadth in cm?",
            "TEXT",
            [("12", True)],
        ),
    ],
    "Logical Reasoning": [
        (
            "Find the next number in the series: 2, 6, 12, 20, ?",
            "MCQ",
            [("28", False), ("30", True), ("26", False), ("32", False)],
        ),
        (
            "All roses are flowers and some flowers fade quickly. Therefore some roses fade quickly.",
            "BOOLEAN",
            [("True", False), ("False", True)],
        ),
        (
            "If CAT is coded as DBU, how is DOG coded?",
            "MCQ",
            [("EPH", True), ("EPI", False), ("FPH", False), ("DPH", False)],
        ),
    ],
    "Verbal Ability": [
        (
            "Choose the synonym of 'abundant'.",
            "MCQ",
            [("Scarce", False), ("Plentiful", True), ("Rare", False), ("Meagre", False)],
        ),
        (
            "Choose the antonym of 'transparent'.",
            "MCQ",
            [("Clear", False), ("Opaque", True), ("Lucid", False), ("Obvious", False)],
        ),
        (
            "Fill in the blank: She has been working here ___ 2019.",
            "TEXT",
            [("since", True)],
        ),
    ],
    "Technical Fundamentals": [
        (
            "Which data structure works on the First In, First Out principle?",
            "MCQ",
            [("Stack", False), ("Queue", True), ("Tree", False), ("Graph", False)],
        ),
        (
            "What is the time complexity of binary search on a sorted array?",
            "MCQ",
            [("O(n)", False), ("O(log n)", True), ("O(n log n)", False), ("O(1)", False)],
        ),
        (
            "HTTP is a stateless protocol.",
            "BOOLEAN",
            [("True", True), ("False", False)],
        ),
    ],
}

ASSESSMENTS = (
    {
        "title": "Baseline Assessment",
        "order": 1,
        "instructions": "Measures the current level across every module before training. Complete all modules in order.",
        "opens_in_days": -7,
        "closes_in_days": 7,
    },
    {
        "title": "Final Assessment",
        "order": 2,
        "instructions": "Compares performance after the training programme. Complete all modules in order.",
        "opens_in_days": 15,
        "closes_in_days": 30,
    },
)


def _build_assessment(tenant_id: int, definition: Dict, now: datetime.datetime) -> Assessment:
    open_at = now + datetime.timedelta(days=definition["opens_in_days"])
    close_at = now + datetime.timedelta(days=definition["closes_in_days"])
    assessment = Assessment(
        tenant_id=tenant_id,
        title=definition["title"],
        type="online",
        instructions=definition["instructions"],
        order=definition["order"],
        total_marks=sum(len(QUESTION_BANK[title]) for title, _, _ in MODULES),
        is_active=True,
        open_at=open_at,
        close_at=close_at,
    )

    for position, (title, code, minutes) in enumerate(MODULES, start=1):
        module = Module(
            tenant_id=tenant_id,
            title=title,
            code=code,
            order=position,
            per_student_time_limit_min=minutes,
            start_at=open_at,
            end_at=close_at,
            status="unlocked" if position == 1 else "locked",
        )
        for stem, question_type, options in QUESTION_BANK[title]:
            question = Question(tenant_id=tenant_id, stem=stem, type=question_type, points=1, topic=title)
            question.options = [
                Option(label=chr(ord("A") + index), text=text, is_correct=correct)
                for index, (text, correct) in enumerate(options)
            ]
            module.questions.append(question)
        assessment.modules.append(module)

    return assessment


async def seed_demo_content(session: AsyncSession) -> Tenant:
    """Insert the demo tenant unless it already exists; returns the tenant."""
    existing = await session.execute(select(Tenant).where(Tenant.name == DEMO_TENANT_NAME))
    tenant = existing.scalar_one_or_none()
    if tenant is not None:
        logger.info(f"Demo tenant already present (id={tenant.id}), skipping seed")
        return tenant

    tenant = Tenant(name=DEMO_TENANT_NAME)
    session.add(tenant)
    await session.flush()

    university = University(tenant_id=tenant.id, name="TechNirma University", code="TNU")
    session.add(university)
    await session.flush()

    college = College(tenant_id=tenant.id, university_id=university.id, name="TechNirma College of Engineering", code="TNCE")
    session.add(college)
    await session.flush()

    for index, name in enumerate(STUDENT_NAMES, start=1):
        session.add(Student(
            tenant_id=tenant.id,
            college_id=college.id,
            user_id=f"demo-student-{index}",
            reg_no=f"TN{index:04d}",
            name=name,
            email=f"{name.split()[0].lower()}{index}@example.com",
        ))

    now = utcnow()
    for definition in ASSESSMENTS:
        session.add(_build_assessment(tenant.id, definition, now))

    await session.flush()
    logger.info(f"Seeded demo tenant {tenant.id} with {len(STUDENT_NAMES)} students")
    return tenant
