"""Thesis model: one row per student, mutated in place across revision loops."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import Boolean, DateTime, Enum, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import JSON

from thesisflow.db import Base
from thesisflow.models.enums import FinalGrade, ThesisStatus


class Thesis(Base):
    """Thesis record driven by the review state machine.

    Every write goes through a conditional update on ``version`` so two
    callers racing on the same thesis cannot both win.
    """

    __tablename__ = "theses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    student_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    file_ref: Mapped[Optional[str]] = mapped_column(String(512))
    submission_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    status: Mapped[ThesisStatus] = mapped_column(
        Enum(ThesisStatus), default=ThesisStatus.SUBMITTED, nullable=False
    )
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    # === role slots, written only by the assignment ledger ===
    assigned_reviewer_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"))
    assigned_consultant_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"))
    assigned_supervisor_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"))
    supervisor_approved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # === grading ===
    # Rubric snapshot, see thesisflow.schemas.assessment.Rubric
    assessment_json: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON)
    final_grade: Mapped[Optional[FinalGrade]] = mapped_column(Enum(FinalGrade))

    # === embedded plagiarism record ===
    plagiarism_is_checked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    plagiarism_similarity_score: Mapped[Optional[float]] = mapped_column(Float)
    plagiarism_attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    plagiarism_max_attempts: Mapped[int] = mapped_column(Integer, default=3, nullable=False)
    plagiarism_is_approved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    plagiarism_report_ref: Mapped[Optional[str]] = mapped_column(String(512))
    plagiarism_checked_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # === iterations ===
    current_iteration: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_review_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    # Append-only; entries are never edited once written
    review_iterations_json: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, default=list)
    status_before_revision: Mapped[Optional[ThesisStatus]] = mapped_column(Enum(ThesisStatus))
    revision_comment: Mapped[Optional[str]] = mapped_column(Text)

    # === signing ===
    review_document_ref: Mapped[Optional[str]] = mapped_column(String(512))
    signed_review_ref: Mapped[Optional[str]] = mapped_column(String(512))
    signed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    student = relationship("User", foreign_keys=[student_id])
    ledger_entries = relationship(
        "AssignmentEntry", back_populates="thesis", cascade="all, delete-orphan"
    )
    stage_reviews = relationship(
        "StageReview",
        back_populates="thesis",
        cascade="all, delete-orphan",
        order_by="StageReview.id",
    )

    def __repr__(self) -> str:
        return f"<Thesis(id={self.id}, student_id={self.student_id}, status={self.status.value})>"
