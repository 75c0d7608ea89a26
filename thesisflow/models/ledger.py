"""Assignment ledger: a principal's personal list of theses per role slot."""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from thesisflow.db import Base
from thesisflow.models.enums import LedgerState, RoleSlot


class AssignmentEntry(Base):
    """Principal -> thesis binding.

    The thesis side of the binding lives in ``Thesis.assigned_*_id``; both are
    written in the same transaction.
    """

    __tablename__ = "assignment_ledger"
    __table_args__ = (
        UniqueConstraint("principal_id", "thesis_id", "role_slot", name="uq_ledger_binding"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    principal_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    thesis_id: Mapped[int] = mapped_column(
        ForeignKey("theses.id", ondelete="CASCADE"), nullable=False
    )
    role_slot: Mapped[RoleSlot] = mapped_column(Enum(RoleSlot), nullable=False)
    state: Mapped[LedgerState] = mapped_column(
        Enum(LedgerState), default=LedgerState.ACTIVE, nullable=False
    )
    assigned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    thesis = relationship("Thesis", back_populates="ledger_entries")
    principal = relationship("User", foreign_keys=[principal_id])

    def __repr__(self) -> str:
        return (
            f"<AssignmentEntry(principal_id={self.principal_id}, thesis_id={self.thesis_id}, "
            f"slot={self.role_slot.value}, state={self.state.value})>"
        )
