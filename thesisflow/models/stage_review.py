"""Consultant and supervisor sign-off documents, one per iteration and slot."""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import JSON

from thesisflow.db import Base
from thesisflow.models.enums import RoleSlot


class StageReview(Base):
    """Team member's approval of one iteration.

    ``document_ref`` is the rendered unsigned sheet; ``signed_ref`` is filled
    once the signed copy is uploaded and never overwritten afterwards.
    """

    __tablename__ = "stage_reviews"
    __table_args__ = (
        UniqueConstraint("thesis_id", "iteration", "role_slot", name="uq_stage_review"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    thesis_id: Mapped[int] = mapped_column(
        ForeignKey("theses.id", ondelete="CASCADE"), nullable=False, index=True
    )
    iteration: Mapped[int] = mapped_column(Integer, nullable=False)
    role_slot: Mapped[RoleSlot] = mapped_column(Enum(RoleSlot), nullable=False)
    principal_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)

    comments: Mapped[Optional[str]] = mapped_column(Text)
    # Rubric snapshot when the team member filled one in
    assessment_json: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON)
    document_ref: Mapped[str] = mapped_column(String(512), nullable=False)
    signed_ref: Mapped[Optional[str]] = mapped_column(String(512))
    signed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    thesis = relationship("Thesis", back_populates="stage_reviews")

    def __repr__(self) -> str:
        return (
            f"<StageReview(thesis_id={self.thesis_id}, iteration={self.iteration}, "
            f"slot={self.role_slot.value}, signed={self.signed_ref is not None})>"
        )
