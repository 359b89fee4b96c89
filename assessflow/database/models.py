"""
SQLAlchemy ORM models for AssessFlow.

Organisation tree:
- Tenant: isolation root, every tenant-owned row carries ``tenant_id``
- University / College: static reference data
- Student: enrolled person, owns the workflow ``training_status``

Content tree (read-only for the workflow and scoring code):
- Assessment -> Module -> Question -> Option

Attempt records:
- Attempt: one per (tenant, assessment, student)
- Response: one per (attempt, question)
"""

from sqlalchemy import (
    Boolean, Column, DateTime, Float, ForeignKey, Index, Integer, JSON, String, Text
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from sqlalchemy.schema import UniqueConstraint

from assessflow.database.base import ModelBase, utcnow

# JSONB on PostgreSQL, plain JSON elsewhere
MetaJSON = JSON().with_variant(JSONB(), "postgresql")


class Tenant(ModelBase):
    __tablename__ = "tenants"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class University(ModelBase):
    __tablename__ = "universities"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    code = Column(String(64), nullable=True)

    colleges = relationship("College", back_populates="university")


class College(ModelBase):
    __tablename__ = "colleges"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    university_id = Column(Integer, ForeignKey("universities.id"), nullable=True)
    name = Column(String(255), nullable=False)
    code = Column(String(64), nullable=True)

    university = relationship("University", back_populates="colleges")
    students = relationship("Student", back_populates="college")


class Student(ModelBase):
    """
    Enrolled student.

    ``training_status`` is the only column the workflow writes. ``NULL`` is read
    as ``ready_for_baseline``.
    """
    __tablename__ = "students"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    college_id = Column(Integer, ForeignKey("colleges.id"), nullable=True, index=True)
    user_id = Column(String(255), nullable=True, index=True)
    reg_no = Column(String(64), nullable=False)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    training_status = Column(String(32), nullable=True, default="ready_for_baseline")
    created_at = Column(DateTime, default=utcnow, nullable=False)

    college = relationship("College", back_populates="students")
    attempts = relationship("Attempt", back_populates="student")

    __table_args__ = (
        UniqueConstraint("tenant_id", "reg_no"),
    )


class Assessment(ModelBase):
    """
    Named container of modules.

    The two lowest ``order`` values (ties broken by id) are the Baseline and
    Final assessments of the tenant. ``total_marks`` is informational only.
    """
    __tablename__ = "assessments"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    type = Column(String(32), nullable=True)
    instructions = Column(Text, nullable=True)
    order = Column("order", Integer, nullable=False, default=0)
    total_marks = Column(Integer, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    open_at = Column(DateTime, nullable=True)
    close_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    modules = relationship(
        "Module",
        back_populates="assessment",
        order_by=lambda: [Module.order, Module.id],
    )

    __table_args__ = (
        Index("idx_assessments_tenant_order", tenant_id, order),
    )


class Module(ModelBase):
    __tablename__ = "modules"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    assessment_id = Column(Integer, ForeignKey("assessments.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    code = Column(String(64), nullable=True)
    start_at = Column(DateTime, nullable=True)
    end_at = Column(DateTime, nullable=True)
    per_student_time_limit_min = Column(Integer, nullable=True)
    order = Column("order", Integer, nullable=False, default=0)
    status = Column(String(32), nullable=True)

    assessment = relationship("Assessment", back_populates="modules")
    questions = relationship("Question", back_populates="module", order_by="Question.id")


class Question(ModelBase):
    __tablename__ = "questions"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    module_id = Column(Integer, ForeignKey("modules.id", ondelete="CASCADE"), nullable=False, index=True)
    stem = Column(Text, nullable=False)
    type = Column(String(16), nullable=False, default="MCQ")
    points = Column(Integer, nullable=True)
    topic = Column(String(255), nullable=True)
    difficulty = Column(String(32), nullable=True)

    module = relationship("Module", back_populates="questions")
    options = relationship("Option", back_populates="question", order_by="Option.id")


class Option(ModelBase):
    __tablename__ = "options"

    id = Column(Integer, primary_key=True)
    question_id = Column(Integer, ForeignKey("questions.id", ondelete="CASCADE"), nullable=False, index=True)
    label = Column(String(255), nullable=True)
    text = Column(Text, nullable=True)
    is_correct = Column(Boolean, nullable=False, default=False)

    question = relationship("Question", back_populates="options")


class Attempt(ModelBase):
    """
    One student's single pass at one assessment.

    ``meta`` holds ``{"focused_modules": [module ids]}`` when the served module
    set was restricted at creation time.
    """
    __tablename__ = "attempts"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    assessment_id = Column(Integer, ForeignKey("assessments.id"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("students.id"), nullable=False, index=True)
    started_at = Column(DateTime, nullable=False, default=utcnow)
    submitted_at = Column(DateTime, nullable=True, index=True)
    duration_sec = Column(Integer, nullable=False, default=0)
    score = Column(Float, nullable=True)
    total_marks = Column(Float, nullable=True)
    meta = Column(MetaJSON, nullable=True)

    assessment = relationship("Assessment")
    student = relationship("Student", back_populates="attempts")
    responses = relationship(
        "Response",
        back_populates="attempt",
        cascade="all, delete-orphan",
        order_by="Response.id",
    )

    __table_args__ = (
        UniqueConstraint("tenant_id", "assessment_id", "student_id"),
    )


class Response(ModelBase):
    __tablename__ = "responses"

    id = Column(Integer, primary_key=True)
    attempt_id = Column(Integer, ForeignKey("attempts.id", ondelete="CASCADE"), nullable=False, index=True)
    question_id = Column(Integer, ForeignKey("questions.id"), nullable=False)
    option_id = Column(Integer, ForeignKey("options.id"), nullable=True)
    text_answer = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    attempt = relationship("Attempt", back_populates="responses")
    question = relationship("Question")
    option = relationship("Option")

    __table_args__ = (
        UniqueConstraint("attempt_id", "question_id"),
    )
