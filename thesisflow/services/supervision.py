"""Supervisor requests: a student asks a supervisor of their faculty to take them on.

Accepting a request links the student to the supervisor and, when the
student already has a thesis, binds the thesis supervisor slot through the
assignment ledger in the same transaction. A student without a thesis gets
the supervisor bound on first submission.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from thesisflow.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from thesisflow.models import (
    Capability,
    RequestStatus,
    Role,
    RoleSlot,
    SupervisorRequest,
    Thesis,
    User,
)
from thesisflow.services.identity import Principal
from thesisflow.services.ledger import AssignmentLedger
from thesisflow.services.transitions import unit_of_work, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SupervisionStats:
    pending_requests: int
    current_students: int


def _fresh_user(db: Session, user_id: int) -> Optional[User]:
    return db.get(User, user_id, populate_existing=True)


class SupervisorRequestService:
    def __init__(self, ledger: AssignmentLedger):
        self.ledger = ledger

    def _request(self, db: Session, request_id: int) -> SupervisorRequest:
        request = db.get(SupervisorRequest, request_id, populate_existing=True)
        if request is None:
            raise NotFoundError("Supervisor request", request_id)
        return request

    def _close(
        self,
        db: Session,
        request: SupervisorRequest,
        status: RequestStatus,
        decline_reason: Optional[str] = None,
    ) -> None:
        """Move a pending request to ``status``; losing the race is a conflict."""
        stmt = (
            update(SupervisorRequest)
            .where(
                SupervisorRequest.id == request.id,
                SupervisorRequest.status == RequestStatus.PENDING,
            )
            .values(status=status, decline_reason=decline_reason, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if db.execute(stmt).rowcount != 1:
            raise ConflictError("Request was answered concurrently", request_id=request.id)

    def _pending_guard(self, request: SupervisorRequest) -> None:
        if request.status is not RequestStatus.PENDING:
            raise ValidationError(
                f"Request has already been {request.status.value}",
                guard="request_closed",
                status=request.status.value,
            )

    # === student side ===

    def request_supervisor(
        self,
        db: Session,
        principal: Principal,
        supervisor_id: int,
        message: Optional[str] = None,
    ) -> SupervisorRequest:
        principal.require(Capability.REQUEST_SUPERVISOR)
        student = _fresh_user(db, principal.id)
        supervisor = db.get(User, supervisor_id)
        if supervisor is None or supervisor.role is not Role.SUPERVISOR:
            raise NotFoundError("Supervisor", supervisor_id)
        if not supervisor.is_approved:
            raise ValidationError(
                f"Supervisor {supervisor_id} is not approved yet",
                missing_fields=["supervisor_id"],
                guard="principal_not_approved",
            )
        if not student.faculty:
            raise ValidationError(
                "Set your faculty before requesting a supervisor",
                missing_fields=["profile.faculty"],
                guard="profile_incomplete",
            )
        if supervisor.faculty != student.faculty:
            raise ValidationError(
                "You can only request a supervisor from your own faculty",
                missing_fields=["supervisor_id"],
                guard="faculty_mismatch",
                student_faculty=student.faculty,
                supervisor_faculty=supervisor.faculty,
            )
        if student.supervisor_id is not None:
            raise ValidationError(
                "You already have a supervisor",
                guard="supervisor_already_assigned",
                current_supervisor_id=student.supervisor_id,
            )
        duplicate = db.scalars(
            select(SupervisorRequest).where(
                SupervisorRequest.student_id == student.id,
                SupervisorRequest.supervisor_id == supervisor_id,
                SupervisorRequest.status == RequestStatus.PENDING,
            )
        ).first()
        if duplicate is not None:
            raise ValidationError(
                "You already have a pending request to this supervisor",
                guard="duplicate_request",
                request_id=duplicate.id,
            )

        request = SupervisorRequest(
            student_id=student.id,
            supervisor_id=supervisor_id,
            faculty=student.faculty,
            status=RequestStatus.PENDING,
            student_message=message.strip() if message and message.strip() else None,
        )
        with unit_of_work(db):
            db.add(request)
        db.refresh(request)
        logger.info("Student %s requested supervisor %s", student.id, supervisor_id)
        return request

    def cancel(self, db: Session, principal: Principal, request_id: int) -> SupervisorRequest:
        principal.require(Capability.REQUEST_SUPERVISOR)
        request = self._request(db, request_id)
        if request.student_id != principal.id:
            raise AuthorizationError("Not your request", request_id=request_id)
        self._pending_guard(request)
        with unit_of_work(db):
            self._close(db, request, RequestStatus.CANCELLED)
        db.refresh(request)
        logger.info("Student %s cancelled supervisor request %s", principal.id, request_id)
        return request

    def available_supervisors(
        self, db: Session, principal: Principal
    ) -> Tuple[str, List[Tuple[User, Optional[SupervisorRequest]]]]:
        """Approved supervisors of the student's faculty with the student's latest request to each."""
        principal.require(Capability.REQUEST_SUPERVISOR)
        student = db.get(User, principal.id)
        if not student.faculty:
            raise ValidationError(
                "Set your faculty before browsing supervisors",
                missing_fields=["profile.faculty"],
                guard="profile_incomplete",
            )
        supervisors = db.scalars(
            select(User)
            .where(
                User.role == Role.SUPERVISOR,
                User.is_approved.is_(True),
                User.faculty == student.faculty,
            )
            .order_by(User.name, User.id)
        ).all()
        latest = {}
        for request in db.scalars(
            select(SupervisorRequest)
            .where(SupervisorRequest.student_id == student.id)
            .order_by(SupervisorRequest.created_at, SupervisorRequest.id)
        ):
            latest[request.supervisor_id] = request
        return student.faculty, [(supervisor, latest.get(supervisor.id)) for supervisor in supervisors]

    # === supervisor side ===

    def respond(
        self,
        db: Session,
        principal: Principal,
        request_id: int,
        accept: bool,
        decline_reason: Optional[str] = None,
    ) -> SupervisorRequest:
        principal.require(Capability.ACCEPT_STUDENTS)
        request = self._request(db, request_id)
        if request.supervisor_id != principal.id:
            raise AuthorizationError("Request is addressed to another supervisor", request_id=request_id)
        self._pending_guard(request)

        if not accept:
            if not decline_reason or not decline_reason.strip():
                raise ValidationError(
                    "Declining requires a reason",
                    missing_fields=["decline_reason"],
                    guard="comments_required",
                )
            with unit_of_work(db):
                self._close(db, request, RequestStatus.DECLINED, decline_reason.strip())
            db.refresh(request)
            logger.info("Supervisor %s declined request %s", principal.id, request_id)
            return request

        student = _fresh_user(db, request.student_id)
        if student.supervisor_id is not None:
            with unit_of_work(db):
                self._close(db, request, RequestStatus.CANCELLED)
            logger.warning(
                "Request %s cancelled: student %s already supervised by %s",
                request_id,
                student.id,
                student.supervisor_id,
            )
            raise ValidationError(
                "Student already has a supervisor",
                guard="supervisor_already_assigned",
                current_supervisor_id=student.supervisor_id,
            )

        thesis = db.scalars(
            select(Thesis).where(Thesis.student_id == student.id).execution_options(populate_existing=True)
        ).first()
        with unit_of_work(db):
            self._close(db, request, RequestStatus.ACCEPTED)
            claimed = db.execute(
                update(User)
                .where(User.id == student.id, User.supervisor_id.is_(None))
                .values(supervisor_id=principal.id)
                .execution_options(synchronize_session=False)
            ).rowcount
            if claimed != 1:
                raise ConflictError("Student was taken by another supervisor", student_id=student.id)
            if thesis is not None:
                self.ledger.bind(db, thesis, RoleSlot.SUPERVISOR, principal.id)
            db.execute(
                update(SupervisorRequest)
                .where(
                    SupervisorRequest.student_id == student.id,
                    SupervisorRequest.id != request.id,
                    SupervisorRequest.status == RequestStatus.PENDING,
                )
                .values(status=RequestStatus.CANCELLED, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
        db.refresh(request)
        logger.info("Supervisor %s accepted student %s", principal.id, student.id)
        return request

    # === reads ===

    def list_requests(self, db: Session, principal: Principal) -> List[SupervisorRequest]:
        """Students see all their requests; supervisors see what awaits their answer."""
        if principal.can(Capability.REQUEST_SUPERVISOR):
            query = select(SupervisorRequest).where(SupervisorRequest.student_id == principal.id)
        elif principal.can(Capability.ACCEPT_STUDENTS):
            query = select(SupervisorRequest).where(
                SupervisorRequest.supervisor_id == principal.id,
                SupervisorRequest.status == RequestStatus.PENDING,
            )
        else:
            raise AuthorizationError("Only students and supervisors have supervisor requests")
        return list(
            db.scalars(query.order_by(SupervisorRequest.created_at.desc(), SupervisorRequest.id.desc()))
        )

    def stats(self, db: Session, principal: Principal) -> SupervisionStats:
        principal.require(Capability.ACCEPT_STUDENTS)
        pending = db.scalar(
            select(func.count(SupervisorRequest.id)).where(
                SupervisorRequest.supervisor_id == principal.id,
                SupervisorRequest.status == RequestStatus.PENDING,
            )
        )
        students = db.scalar(select(func.count(User.id)).where(User.supervisor_id == principal.id))
        return SupervisionStats(pending_requests=pending or 0, current_students=students or 0)
