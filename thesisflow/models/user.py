"""Principal directory model, one row per authenticated user."""

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import JSON

from thesisflow.db import Base
from thesisflow.models.enums import DegreeLevel, Role


class User(Base):
    """Principal with one role and role-specific profile fields.

    Profile completeness is evaluated per role by the identity provider:
    - students need their study programme fields
    - reviewing roles need institution and positions
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    role: Mapped[Role] = mapped_column(Enum(Role), nullable=False)
    is_approved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    institution: Mapped[Optional[str]] = mapped_column(String(255))
    positions: Mapped[List[str]] = mapped_column(JSON, default=list)

    # student profile
    faculty: Mapped[Optional[str]] = mapped_column(String(255))
    group_name: Mapped[Optional[str]] = mapped_column(String(50))
    subject_area: Mapped[Optional[str]] = mapped_column(String(255))
    educational_program: Mapped[Optional[str]] = mapped_column(String(255))
    degree_level: Mapped[Optional[DegreeLevel]] = mapped_column(Enum(DegreeLevel))

    # topic proposal; None means pending
    thesis_topic: Mapped[Optional[str]] = mapped_column(Text)
    is_topic_approved: Mapped[Optional[bool]] = mapped_column(Boolean)
    topic_rejection_comments: Mapped[Optional[str]] = mapped_column(Text)

    # accepted supervisor; set by a request being accepted or by assignment
    supervisor_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username={self.username}, role={self.role.value})>"
