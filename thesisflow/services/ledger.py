"""Assignment ledger: exclusive principal bindings per role slot.

The thesis slot column and the principal's ledger row are written in one
transaction; the slot write is a compare-and-swap that also requires the
slot to hold the value we read.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from thesisflow.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from thesisflow.models import (
    AssignmentEntry,
    Capability,
    LedgerState,
    RoleSlot,
    Thesis,
    ThesisStatus,
    User,
)
from thesisflow.services.identity import Principal
from thesisflow.services.transitions import (
    compare_and_swap,
    latest_stage_review,
    reload,
    unit_of_work,
    utcnow,
)
from thesisflow.utils.storage import FileStore

logger = logging.getLogger(__name__)

REVIEWER_REASSIGNABLE = (ThesisStatus.ASSIGNED, ThesisStatus.UNDER_REVIEW)
TEAM_REASSIGNABLE = tuple(s for s in ThesisStatus if s is not ThesisStatus.EVALUATED)


@dataclass(frozen=True)
class LedgerStats:
    assigned: int
    completed: int
    total: int


def _slot_column(slot: RoleSlot):
    return getattr(Thesis, slot.column)


def thesis_for_student(db: Session, student_id: int) -> Thesis:
    thesis = db.scalars(
        select(Thesis).where(Thesis.student_id == student_id).execution_options(populate_existing=True)
    ).first()
    if thesis is None:
        raise NotFoundError("Thesis", {"student_id": student_id})
    return thesis


class AssignmentLedger:
    def __init__(self, store: FileStore):
        self.store = store

    # === validation ===

    def _target(self, db: Session, slot: RoleSlot, principal_id: int) -> User:
        user = db.get(User, principal_id)
        if user is None:
            raise NotFoundError("Principal", principal_id)
        if user.role != slot.required_role:
            raise ValidationError(
                f"Principal {principal_id} is a {user.role.value}, not a {slot.value}",
                missing_fields=["principal_id"],
                guard="role_mismatch",
            )
        if not user.is_approved:
            raise ValidationError(
                f"Principal {principal_id} is not approved yet",
                missing_fields=["principal_id"],
                guard="principal_not_approved",
            )
        return user

    def _assign_transition(self, thesis: Thesis, slot: RoleSlot) -> Tuple[Tuple[ThesisStatus, ...], ThesisStatus]:
        """Allowed source states and the resulting status for a first binding."""

        status = thesis.status
        if slot is RoleSlot.REVIEWER:
            allowed: Tuple[ThesisStatus, ...] = (ThesisStatus.SUBMITTED,)
            if thesis.supervisor_approved:
                allowed += (ThesisStatus.WITH_SUPERVISOR,)
            target = ThesisStatus.ASSIGNED
        elif slot is RoleSlot.CONSULTANT:
            allowed = (ThesisStatus.SUBMITTED,)
            if not thesis.supervisor_approved:
                allowed += (ThesisStatus.WITH_SUPERVISOR,)
            target = ThesisStatus.WITH_CONSULTANT
        else:
            allowed = (ThesisStatus.SUBMITTED, ThesisStatus.WITH_CONSULTANT)
            target = (
                ThesisStatus.WITH_SUPERVISOR if status is ThesisStatus.SUBMITTED else status
            )

        if status not in allowed:
            raise ValidationError(
                f"Cannot assign a {slot.value} while thesis is {status.value}",
                guard="status",
                status=status.value,
            )
        return allowed, target

    # === ledger rows ===

    def _entry(self, db: Session, principal_id: int, thesis_id: int, slot: RoleSlot) -> Optional[AssignmentEntry]:
        return db.scalars(
            select(AssignmentEntry).where(
                AssignmentEntry.principal_id == principal_id,
                AssignmentEntry.thesis_id == thesis_id,
                AssignmentEntry.role_slot == slot,
            )
        ).first()

    def activate(self, db: Session, principal_id: int, thesis_id: int, slot: RoleSlot) -> None:
        """Put the thesis back on the principal's active list; active rows are left alone."""
        entry = self._entry(db, principal_id, thesis_id, slot)
        if entry is None:
            db.add(
                AssignmentEntry(
                    principal_id=principal_id,
                    thesis_id=thesis_id,
                    role_slot=slot,
                    state=LedgerState.ACTIVE,
                )
            )
        elif entry.state is not LedgerState.ACTIVE:
            entry.state = LedgerState.ACTIVE
            entry.assigned_at = utcnow()
            entry.completed_at = None

    def mark_completed(self, db: Session, principal_id: int, thesis_id: int, slot: RoleSlot) -> None:
        entry = self._entry(db, principal_id, thesis_id, slot)
        if entry is not None:
            entry.state = LedgerState.COMPLETED
            entry.completed_at = utcnow()

    def _link_student(self, db: Session, thesis: Thesis, supervisor_id: int) -> None:
        db.execute(
            update(User)
            .where(User.id == thesis.student_id)
            .values(supervisor_id=supervisor_id)
            .execution_options(synchronize_session=False)
        )

    # === operations ===

    def bind(
        self,
        db: Session,
        thesis: Thesis,
        slot: RoleSlot,
        principal_id: int,
        expected_version: Optional[int] = None,
    ) -> None:
        """First binding of an empty slot, inside the caller's transaction."""

        if getattr(thesis, slot.column) is not None:
            logger.warning("Slot %s on thesis %s already bound", slot.value, thesis.id)
            raise ConflictError(
                f"The {slot.value} slot is already bound; use reassign",
                thesis_id=thesis.id,
                role_slot=slot.value,
            )
        source = thesis.status
        allowed, target = self._assign_transition(thesis, slot)
        if slot is RoleSlot.REVIEWER:
            if not (thesis.file_ref and self.store.exists(thesis.file_ref)):
                raise ValidationError(
                    "Thesis has no uploaded file", missing_fields=["file"], guard="file_missing"
                )
            if source is ThesisStatus.WITH_SUPERVISOR:
                review = latest_stage_review(db, thesis.id, RoleSlot.SUPERVISOR)
                if review is None or review.signed_ref is None:
                    raise ValidationError(
                        "Supervisor has not uploaded the signed review",
                        missing_fields=["supervisor_signed_review"],
                        guard="supervisor_unsigned",
                    )

        values = {slot.column: principal_id, "status": target}
        if thesis.current_iteration == 0:
            values.update(current_iteration=1, total_review_count=1)

        compare_and_swap(
            db,
            thesis,
            allowed=allowed,
            values=values,
            where=[_slot_column(slot).is_(None)],
            expected_version=expected_version,
        )
        self.activate(db, principal_id, thesis.id, slot)
        if slot is RoleSlot.SUPERVISOR:
            self._link_student(db, thesis, principal_id)
        logger.info(
            "Assigned %s %s to thesis %s (%s -> %s)",
            slot.value,
            principal_id,
            thesis.id,
            source.value,
            target.value,
        )

    def assign(
        self,
        db: Session,
        principal: Principal,
        student_id: int,
        slot: RoleSlot,
        principal_id: int,
        expected_version: Optional[int] = None,
    ) -> Thesis:
        principal.require(Capability.ASSIGN)
        thesis = thesis_for_student(db, student_id)
        self._target(db, slot, principal_id)
        with unit_of_work(db):
            self.bind(db, thesis, slot, principal_id, expected_version)
        return reload(db, thesis)

    def reassign(
        self,
        db: Session,
        principal: Principal,
        student_id: int,
        slot: RoleSlot,
        principal_id: int,
        expected_version: Optional[int] = None,
    ) -> Thesis:
        principal.require(Capability.ASSIGN)
        thesis = thesis_for_student(db, student_id)
        previous_id = getattr(thesis, slot.column)
        if previous_id is None:
            raise ValidationError(
                f"The {slot.value} slot is not bound; use assign",
                missing_fields=[slot.column],
                guard="slot_unbound",
            )
        if previous_id == principal_id:
            raise ValidationError(
                f"Principal {principal_id} already holds the {slot.value} slot",
                missing_fields=["principal_id"],
                guard="same_principal",
            )
        self._target(db, slot, principal_id)

        values = {slot.column: principal_id}
        if slot is RoleSlot.REVIEWER:
            allowed = REVIEWER_REASSIGNABLE
            # the new reviewer starts from a blank rubric
            values.update(status=ThesisStatus.ASSIGNED, assessment_json=None, final_grade=None)
        else:
            allowed = TEAM_REASSIGNABLE
            if slot is RoleSlot.SUPERVISOR and thesis.status is ThesisStatus.WITH_SUPERVISOR:
                values["supervisor_approved"] = False
        if thesis.status not in allowed:
            raise ValidationError(
                f"Cannot reassign the {slot.value} while thesis is {thesis.status.value}",
                guard="status",
                status=thesis.status.value,
            )

        with unit_of_work(db):
            compare_and_swap(
                db,
                thesis,
                allowed=allowed,
                values=values,
                where=[_slot_column(slot) == previous_id],
                expected_version=expected_version,
            )
            old_entry = self._entry(db, previous_id, thesis.id, slot)
            if old_entry is not None:
                db.delete(old_entry)
            self.activate(db, principal_id, thesis.id, slot)
            if slot is RoleSlot.SUPERVISOR:
                self._link_student(db, thesis, principal_id)
        logger.info(
            "Reassigned %s on thesis %s from %s to %s",
            slot.value,
            thesis.id,
            previous_id,
            principal_id,
        )
        return reload(db, thesis)

    def entries(
        self, db: Session, principal: Principal, principal_id: int, state: LedgerState
    ) -> List[AssignmentEntry]:
        if principal.id != principal_id and not principal.can(Capability.VIEW_ALL):
            raise AuthorizationError("Cannot read another principal's assignments")
        return list(
            db.scalars(
                select(AssignmentEntry)
                .where(
                    AssignmentEntry.principal_id == principal_id,
                    AssignmentEntry.state == state,
                )
                .order_by(AssignmentEntry.assigned_at, AssignmentEntry.id)
            )
        )

    def get_assigned(self, db: Session, principal: Principal, principal_id: int) -> List[AssignmentEntry]:
        return self.entries(db, principal, principal_id, LedgerState.ACTIVE)

    def get_completed(self, db: Session, principal: Principal, principal_id: int) -> List[AssignmentEntry]:
        return self.entries(db, principal, principal_id, LedgerState.COMPLETED)

    def stats(self, db: Session, principal: Principal, principal_id: int) -> LedgerStats:
        if principal.id != principal_id and not principal.can(Capability.VIEW_ALL):
            raise AuthorizationError("Cannot read another principal's assignments")
        counts = dict(
            db.execute(
                select(AssignmentEntry.state, func.count(AssignmentEntry.id))
                .where(AssignmentEntry.principal_id == principal_id)
                .group_by(AssignmentEntry.state)
            ).all()
        )
        assigned = counts.get(LedgerState.ACTIVE, 0)
        completed = counts.get(LedgerState.COMPLETED, 0)
        return LedgerStats(assigned=assigned, completed=completed, total=assigned + completed)
