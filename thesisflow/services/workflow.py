"""Thesis review workflow.

``ThesisWorkflowService`` is the single entry point the API layer talks to.
Every method takes the request session and the acting ``Principal``
explicitly, validates its guards against a fresh read of the thesis, and then
commits one compare-and-swap update. Slow collaborators (file store writes,
document rendering, the similarity oracle) run before the write.

State transitions::

    submitted -> with_consultant -> with_supervisor -> assigned -> under_review
        -> graded_pending_signature -> evaluated

    any reviewing stage -> revisions_requested -> (stage it came from)
    graded_pending_signature / evaluated -> assigned   (re-review)
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import or_, select, update
from sqlalchemy.orm import Session

from thesisflow.config import get_settings
from thesisflow.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from thesisflow.models import (
    AssignmentEntry,
    Capability,
    FinalGrade,
    Role,
    RoleSlot,
    StageReview,
    Thesis,
    ThesisStatus,
    User,
)
from thesisflow.schemas.assessment import Rubric, RubricView
from thesisflow.services.identity import IdentityProvider, Principal
from thesisflow.services.ledger import AssignmentLedger, LedgerStats, thesis_for_student
from thesisflow.services.plagiarism_gate import PlagiarismGate
from thesisflow.services.renderer import DocumentRenderer
from thesisflow.services.supervision import SupervisorRequestService
from thesisflow.services.team_reviews import TeamReviewService
from thesisflow.services.transitions import (
    compare_and_swap,
    load_thesis,
    reload,
    unit_of_work,
    utcnow,
)
from thesisflow.utils.storage import FileStore

logger = logging.getLogger(__name__)

REVIEWING = (ThesisStatus.ASSIGNED, ThesisStatus.UNDER_REVIEW)
REVISABLE = (
    ThesisStatus.WITH_CONSULTANT,
    ThesisStatus.WITH_SUPERVISOR,
    ThesisStatus.ASSIGNED,
    ThesisStatus.UNDER_REVIEW,
)
RE_REVIEWABLE = (ThesisStatus.GRADED_PENDING_SIGNATURE, ThesisStatus.EVALUATED)


def _parse_grade(grade: Optional[str]) -> Optional[FinalGrade]:
    if grade is None:
        return None
    try:
        return FinalGrade(grade)
    except ValueError:
        raise ValidationError(
            f"'{grade}' is not on the grading scale",
            missing_fields=["final_grade"],
            guard="grade_scale",
            allowed=[g.value for g in FinalGrade],
        ) from None


def _stored_rubric(thesis: Thesis) -> Rubric:
    if thesis.assessment_json:
        return Rubric.model_validate(thesis.assessment_json)
    return Rubric()


def _require_file(data: Optional[bytes]) -> bytes:
    if not data:
        raise ValidationError("A non-empty file is required", missing_fields=["file"], guard="file_missing")
    return data


def _status_guard(thesis: Thesis, allowed, action: str) -> None:
    if thesis.status not in allowed:
        logger.warning(
            "Rejected %s on thesis %s in status %s", action, thesis.id, thesis.status.value
        )
        raise ValidationError(
            f"Cannot {action} while thesis is {thesis.status.value}",
            guard="status",
            status=thesis.status.value,
            allowed=[s.value for s in allowed],
        )


class ThesisWorkflowService:
    """State machine over the ``theses`` table."""

    def __init__(
        self,
        store: FileStore,
        identity: IdentityProvider,
        renderer: DocumentRenderer,
        gate: PlagiarismGate,
        ledger: Optional[AssignmentLedger] = None,
        max_attempts: Optional[int] = None,
    ):
        self.store = store
        self.identity = identity
        self.renderer = renderer
        self.gate = gate
        self.ledger = ledger or AssignmentLedger(store)
        self.team = TeamReviewService(store, renderer, self.ledger)
        self.supervision = SupervisorRequestService(self.ledger)
        self.max_attempts = max_attempts or get_settings().plagiarism_max_attempts

    # === helpers ===

    def _snapshot(self, thesis: Thesis, event: str, principal: Principal, **extra: Any) -> List[Dict[str, Any]]:
        entry = {
            "iteration": thesis.current_iteration,
            "event": event,
            "status": thesis.status.value,
            "actor_id": principal.id,
            "actor_role": principal.role.value,
            "assessment": thesis.assessment_json,
            "final_grade": thesis.final_grade.value if thesis.final_grade else None,
            "recorded_at": utcnow().isoformat(),
        }
        entry.update(extra)
        return list(thesis.review_iterations_json or []) + [entry]

    def _require_reviewer(self, principal: Principal, thesis: Thesis, allow_admin: bool = False) -> None:
        if allow_admin and principal.can(Capability.OVERRIDE):
            return
        principal.require(Capability.REVIEW)
        if thesis.assigned_reviewer_id != principal.id:
            raise AuthorizationError("Not the assigned reviewer of this thesis", thesis_id=thesis.id)

    def _require_owner(self, principal: Principal, thesis: Thesis) -> None:
        principal.require(Capability.SUBMIT_THESIS)
        if thesis.student_id != principal.id:
            raise AuthorizationError("Not the author of this thesis", thesis_id=thesis.id)

    def _stage_slot(self, status: ThesisStatus) -> Optional[RoleSlot]:
        if status is ThesisStatus.WITH_CONSULTANT:
            return RoleSlot.CONSULTANT
        if status is ThesisStatus.WITH_SUPERVISOR:
            return RoleSlot.SUPERVISOR
        if status in REVIEWING:
            return RoleSlot.REVIEWER
        return None

    def _stage_owner(self, thesis: Thesis) -> Optional[int]:
        slot = self._stage_slot(thesis.status)
        return getattr(thesis, slot.column) if slot else None

    def _stage_capability(self, thesis: Thesis) -> Capability:
        return Capability.REVIEW if thesis.status in REVIEWING else Capability.TEAM_REVIEW

    # === reads ===

    def get_thesis(self, db: Session, principal: Principal, thesis_id: int) -> Thesis:
        thesis = load_thesis(db, thesis_id)
        participants = (
            thesis.student_id,
            thesis.assigned_reviewer_id,
            thesis.assigned_consultant_id,
            thesis.assigned_supervisor_id,
        )
        if principal.id not in participants and not principal.can(Capability.VIEW_ALL):
            raise AuthorizationError("Not allowed to view this thesis", thesis_id=thesis_id)
        return thesis

    def get_my_thesis(self, db: Session, principal: Principal) -> Thesis:
        principal.require(Capability.SUBMIT_THESIS)
        return thesis_for_student(db, principal.id)

    def list_theses(self, db: Session, principal: Principal, status: Optional[ThesisStatus] = None) -> List[Thesis]:
        principal.require(Capability.VIEW_ALL)
        query = select(Thesis).order_by(Thesis.submission_date.desc(), Thesis.id)
        if status is not None:
            query = query.where(Thesis.status == status)
        return list(db.scalars(query))

    def list_unassigned(self, db: Session, principal: Principal) -> List[Thesis]:
        """Theses still waiting for a reviewer."""
        if not (principal.can(Capability.ASSIGN) or principal.can(Capability.VIEW_ALL)):
            raise AuthorizationError("Not allowed to list unassigned theses")
        query = (
            select(Thesis)
            .where(
                Thesis.assigned_reviewer_id.is_(None),
                Thesis.status != ThesisStatus.EVALUATED,
            )
            .order_by(Thesis.submission_date, Thesis.id)
        )
        return list(db.scalars(query))

    def get_assigned(self, db: Session, principal: Principal, principal_id: int) -> List[AssignmentEntry]:
        return self.ledger.get_assigned(db, principal, principal_id)

    def get_completed(self, db: Session, principal: Principal, principal_id: int) -> List[AssignmentEntry]:
        return self.ledger.get_completed(db, principal, principal_id)

    def ledger_stats(self, db: Session, principal: Principal, principal_id: int) -> LedgerStats:
        return self.ledger.stats(db, principal, principal_id)

    # === student actions ===

    def submit_thesis(
        self,
        db: Session,
        principal: Principal,
        title: str,
        data: Optional[bytes],
        suffix: str = ".pdf",
    ) -> Thesis:
        """First upload creates the thesis; later uploads replace the file while still submitted."""

        principal.require(Capability.SUBMIT_THESIS)
        missing = []
        if not title or not title.strip():
            missing.append("title")
        if not data:
            missing.append("file")
        if missing:
            raise ValidationError("Thesis submission is incomplete", missing_fields=missing, guard="submission")
        report = self.identity.profile_complete(db, principal.id)
        if not report.ok:
            raise ValidationError(
                "Complete your profile before submitting",
                missing_fields=[f"profile.{name}" for name in report.missing_fields],
                guard="profile_incomplete",
            )

        existing = db.scalars(
            select(Thesis).where(Thesis.student_id == principal.id).execution_options(populate_existing=True)
        ).first()
        if existing is not None:
            _status_guard(existing, (ThesisStatus.SUBMITTED,), "re-upload the thesis")

        file_ref = self.store.store(data, category="theses", suffix=suffix)

        if existing is None:
            thesis = Thesis(
                student_id=principal.id,
                title=title.strip(),
                file_ref=file_ref,
                status=ThesisStatus.SUBMITTED,
                plagiarism_max_attempts=self.max_attempts,
                review_iterations_json=[],
            )
            student = db.get(User, principal.id)
            try:
                with unit_of_work(db):
                    db.add(thesis)
                    if student.supervisor_id is not None:
                        db.flush()
                        self.ledger.bind(db, thesis, RoleSlot.SUPERVISOR, student.supervisor_id)
            except ConflictError:
                raise ConflictError("A thesis for this student already exists") from None
            logger.info("Thesis %s submitted by student %s", thesis.id, principal.id)
            return reload(db, thesis)

        with unit_of_work(db):
            compare_and_swap(
                db,
                existing,
                allowed=(ThesisStatus.SUBMITTED,),
                values={
                    "title": title.strip(),
                    "file_ref": file_ref,
                    "submission_date": utcnow(),
                    # the score described the previous file
                    "plagiarism_is_checked": False,
                    "plagiarism_similarity_score": None,
                    "plagiarism_report_ref": None,
                    "plagiarism_is_approved": False,
                    "plagiarism_checked_at": None,
                },
            )
        logger.info("Thesis %s re-uploaded by student %s", existing.id, principal.id)
        return reload(db, existing)

    def resubmit(
        self,
        db: Session,
        principal: Principal,
        thesis_id: int,
        data: Optional[bytes],
        suffix: str = ".pdf",
        expected_version: Optional[int] = None,
    ) -> Thesis:
        thesis = load_thesis(db, thesis_id)
        self._require_owner(principal, thesis)
        _status_guard(thesis, (ThesisStatus.REVISIONS_REQUESTED,), "resubmit")
        _require_file(data)
        restored = thesis.status_before_revision or ThesisStatus.SUBMITTED
        slot = self._stage_slot(restored)
        owner = getattr(thesis, slot.column) if slot else None

        file_ref = self.store.store(data, category="theses", suffix=suffix)
        with unit_of_work(db):
            compare_and_swap(
                db,
                thesis,
                allowed=(ThesisStatus.REVISIONS_REQUESTED,),
                expected_version=expected_version,
                values={
                    "file_ref": file_ref,
                    "submission_date": utcnow(),
                    "status": restored,
                    "status_before_revision": None,
                    "revision_comment": None,
                    "current_iteration": Thesis.current_iteration + 1,
                    "total_review_count": Thesis.total_review_count + 1,
                    # attempts stay; the verdict belonged to the old file
                    "plagiarism_is_checked": False,
                    "plagiarism_similarity_score": None,
                    "plagiarism_report_ref": None,
                    "plagiarism_is_approved": False,
                    "plagiarism_checked_at": None,
                },
            )
            if owner is not None:
                # approval may have completed the owner's row
                self.ledger.activate(db, owner, thesis.id, slot)
        logger.info("Thesis %s resubmitted, back to %s", thesis_id, restored.value)
        return reload(db, thesis)

    def submit_topic(self, db: Session, principal: Principal, topic: str) -> User:
        principal.require(Capability.SUBMIT_THESIS)
        if not topic or not topic.strip():
            raise ValidationError("Topic is required", missing_fields=["topic"], guard="topic_missing")
        stmt = (
            update(User)
            .where(
                User.id == principal.id,
                or_(User.is_topic_approved.is_(None), User.is_topic_approved.is_(False)),
            )
            .values(thesis_topic=topic.strip(), is_topic_approved=None, topic_rejection_comments=None)
            .execution_options(synchronize_session=False)
        )
        with unit_of_work(db):
            if db.execute(stmt).rowcount != 1:
                raise ValidationError(
                    "Topic is already approved", guard="topic_already_approved"
                )
        user = db.get(User, principal.id)
        db.refresh(user)
        logger.info("Student %s proposed a topic", principal.id)
        return user

    def review_topic(
        self,
        db: Session,
        principal: Principal,
        student_id: int,
        approved: bool,
        comments: Optional[str] = None,
    ) -> User:
        student = db.get(User, student_id)
        if student is None or student.role is not Role.STUDENT:
            raise NotFoundError("Student", student_id)

        if not principal.can(Capability.DECIDE_ANY_TOPIC):
            principal.require(Capability.DECIDE_TOPIC)
            thesis = db.scalars(select(Thesis).where(Thesis.student_id == student_id)).first()
            if thesis is None or thesis.assigned_supervisor_id != principal.id:
                raise AuthorizationError("Only the student's supervisor can decide the topic")

        if not student.thesis_topic:
            raise ValidationError("Student has not proposed a topic", missing_fields=["thesis_topic"], guard="topic_missing")
        if not approved and not (comments and comments.strip()):
            raise ValidationError(
                "Rejection requires comments", missing_fields=["comments"], guard="comments_required"
            )

        stmt = (
            update(User)
            .where(
                User.id == student_id,
                or_(User.is_topic_approved.is_(None), User.is_topic_approved.is_(False)),
            )
            .values(
                is_topic_approved=approved,
                topic_rejection_comments=None if approved else comments.strip(),
            )
            .execution_options(synchronize_session=False)
        )
        with unit_of_work(db):
            if db.execute(stmt).rowcount != 1:
                raise ValidationError("Topic is already approved", guard="topic_already_approved")
        db.refresh(student)
        logger.info(
            "Topic of student %s %s by %s", student_id, "approved" if approved else "rejected", principal.id
        )
        return student

    # === reviewer rubric ===

    def open_rubric(self, db: Session, principal: Principal, thesis_id: int) -> RubricView:
        thesis = load_thesis(db, thesis_id)
        self._require_reviewer(principal, thesis)
        _status_guard(thesis, REVIEWING, "open the rubric")
        return RubricView.build(_stored_rubric(thesis), thesis.final_grade)

    def save_draft(
        self,
        db: Session,
        principal: Principal,
        thesis_id: int,
        rubric: Rubric,
        final_grade: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> Thesis:
        thesis = load_thesis(db, thesis_id)
        self._require_reviewer(principal, thesis)
        _status_guard(thesis, REVIEWING, "save the rubric")

        grade = _parse_grade(final_grade)
        if grade is not None and not rubric.can_select_grade():
            raise ValidationError(
                "Grade is locked until the rubric is complete",
                missing_fields=rubric.missing_fields() + ["final_grade"],
                guard="grade_locked",
            )
        if grade is None and rubric.can_select_grade():
            grade = thesis.final_grade

        with unit_of_work(db):
            compare_and_swap(
                db,
                thesis,
                allowed=REVIEWING,
                expected_version=expected_version,
                values={
                    "assessment_json": rubric.model_dump(mode="json"),
                    "final_grade": grade,
                    "status": ThesisStatus.UNDER_REVIEW,
                },
            )
        logger.info("Rubric draft saved on thesis %s by reviewer %s", thesis_id, principal.id)
        return reload(db, thesis)

    def submit_review(
        self,
        db: Session,
        principal: Principal,
        thesis_id: int,
        final_grade: Optional[str] = None,
        rubric: Optional[Rubric] = None,
        expected_version: Optional[int] = None,
    ) -> Thesis:
        thesis = load_thesis(db, thesis_id)
        self._require_reviewer(principal, thesis)
        _status_guard(thesis, REVIEWING, "submit the review")

        rubric = rubric or _stored_rubric(thesis)
        grade = _parse_grade(final_grade) if final_grade is not None else thesis.final_grade
        if not rubric.can_select_grade():
            missing = rubric.missing_fields()
            if final_grade is not None:
                missing.append("final_grade")
            logger.warning("Review of thesis %s is incomplete: %s", thesis_id, missing)
            raise ValidationError(
                "Rubric is incomplete",
                missing_fields=missing,
                guard="grade_locked" if final_grade is not None else "rubric_incomplete",
            )
        if grade is None or not rubric.can_finalize(grade.value):
            raise ValidationError("Choose a final grade", missing_fields=["final_grade"], guard="grade_required")

        report = self.identity.profile_complete(db, principal.id)
        if not report.ok:
            raise ValidationError(
                "Complete your reviewer profile before submitting",
                missing_fields=[f"profile.{name}" for name in report.missing_fields],
                guard="profile_incomplete",
            )

        student = db.get(User, thesis.student_id)
        document_ref = self.renderer.render(
            rubric,
            {
                "thesis_id": thesis.id,
                "iteration": thesis.current_iteration,
                "title": thesis.title,
                "student_name": student.name if student else "",
                "reviewer_name": principal.name,
                "grade": grade.value,
            },
        )

        with unit_of_work(db):
            compare_and_swap(
                db,
                thesis,
                allowed=REVIEWING,
                expected_version=expected_version,
                where=[Thesis.assigned_reviewer_id == principal.id],
                values={
                    "assessment_json": rubric.model_dump(mode="json"),
                    "final_grade": grade,
                    "status": ThesisStatus.GRADED_PENDING_SIGNATURE,
                    "review_document_ref": document_ref,
                    "signed_review_ref": None,
                    "signed_at": None,
                },
            )
            self.ledger.mark_completed(db, principal.id, thesis.id, RoleSlot.REVIEWER)
        logger.info("Review submitted on thesis %s with grade %s", thesis_id, grade.value)
        return reload(db, thesis)

    # === team stage ===

    def request_revisions(
        self,
        db: Session,
        principal: Principal,
        thesis_id: int,
        comment: str,
        expected_version: Optional[int] = None,
    ) -> Thesis:
        thesis = load_thesis(db, thesis_id)
        _status_guard(thesis, REVISABLE, "request revisions")
        principal.require(self._stage_capability(thesis))
        if self._stage_owner(thesis) != principal.id:
            raise AuthorizationError("Only the current stage owner can request revisions", thesis_id=thesis_id)
        if not comment or not comment.strip():
            raise ValidationError("A comment is required", missing_fields=["comment"], guard="comment_missing")

        source = thesis.status
        history = self._snapshot(thesis, "revisions_requested", principal, comment=comment.strip())
        with unit_of_work(db):
            compare_and_swap(
                db,
                thesis,
                allowed=(source,),
                expected_version=expected_version,
                values={
                    "status": ThesisStatus.REVISIONS_REQUESTED,
                    "status_before_revision": source,
                    "revision_comment": comment.strip(),
                    "supervisor_approved": False,
                    "assessment_json": None,
                    "final_grade": None,
                    "review_iterations_json": history,
                },
            )
        logger.info("Revisions requested on thesis %s at stage %s", thesis_id, source.value)
        return reload(db, thesis)

    def approve_stage(
        self,
        db: Session,
        principal: Principal,
        thesis_id: int,
        comments: Optional[str] = None,
        rubric: Optional[Rubric] = None,
        expected_version: Optional[int] = None,
    ) -> Thesis:
        return self.team.approve(
            db, principal, thesis_id, comments=comments, rubric=rubric, expected_version=expected_version
        )

    def upload_signed_stage_review(
        self,
        db: Session,
        principal: Principal,
        thesis_id: int,
        slot: RoleSlot,
        iteration: int,
        data: Optional[bytes],
        suffix: str = ".pdf",
    ) -> StageReview:
        return self.team.upload_signed(db, principal, thesis_id, slot, iteration, data, suffix=suffix)

    def stage_document(self, db: Session, principal: Principal, thesis_id: int, slot: RoleSlot) -> bytes:
        return self.team.document(db, principal, thesis_id, slot)

    def signed_stage_review(self, db: Session, principal: Principal, thesis_id: int, slot: RoleSlot) -> bytes:
        thesis = self.get_thesis(db, principal, thesis_id)
        return self.team.signed(db, thesis, slot)

    # === signing ===

    def re_review(
        self,
        db: Session,
        principal: Principal,
        thesis_id: int,
        expected_version: Optional[int] = None,
    ) -> Thesis:
        thesis = load_thesis(db, thesis_id)
        self._require_reviewer(principal, thesis, allow_admin=True)
        _status_guard(thesis, RE_REVIEWABLE, "re-review")

        history = self._snapshot(
            thesis,
            "re_review",
            principal,
            review_document_ref=thesis.review_document_ref,
            signed_review_ref=thesis.signed_review_ref,
            signed_at=thesis.signed_at.isoformat() if thesis.signed_at else None,
        )
        with unit_of_work(db):
            compare_and_swap(
                db,
                thesis,
                allowed=RE_REVIEWABLE,
                expected_version=expected_version,
                values={
                    "status": ThesisStatus.ASSIGNED,
                    "assessment_json": None,
                    "final_grade": None,
                    "review_document_ref": None,
                    "signed_review_ref": None,
                    "signed_at": None,
                    "current_iteration": Thesis.current_iteration + 1,
                    "total_review_count": Thesis.total_review_count + 1,
                    "review_iterations_json": history,
                },
            )
            if thesis.assigned_reviewer_id is not None:
                self.ledger.activate(db, thesis.assigned_reviewer_id, thesis.id, RoleSlot.REVIEWER)
        logger.info("Re-review opened on thesis %s by %s", thesis_id, principal.id)
        return reload(db, thesis)

    def upload_signed_review(
        self,
        db: Session,
        principal: Principal,
        thesis_id: int,
        iteration: int,
        data: Optional[bytes],
        suffix: str = ".pdf",
        document_ref: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> Thesis:
        thesis = load_thesis(db, thesis_id)
        self._require_reviewer(principal, thesis, allow_admin=True)
        _status_guard(thesis, (ThesisStatus.GRADED_PENDING_SIGNATURE,), "upload a signed review")

        if iteration != thesis.current_iteration:
            raise ValidationError(
                f"Signed document belongs to iteration {iteration}, current is {thesis.current_iteration}",
                missing_fields=["iteration"],
                guard="iteration_mismatch",
            )
        if not thesis.review_document_ref or not self.store.exists(thesis.review_document_ref):
            raise ValidationError(
                "No unsigned review document exists", missing_fields=["review_document"], guard="unsigned_missing"
            )
        if document_ref is not None and document_ref != thesis.review_document_ref:
            raise ValidationError(
                "Signed upload references a different review document",
                missing_fields=["document_ref"],
                guard="document_mismatch",
            )
        _require_file(data)

        signed_ref = self.store.store(data, category="signed_reviews", suffix=suffix)
        with unit_of_work(db):
            compare_and_swap(
                db,
                thesis,
                allowed=(ThesisStatus.GRADED_PENDING_SIGNATURE,),
                expected_version=expected_version,
                where=[Thesis.current_iteration == iteration],
                values={
                    "status": ThesisStatus.EVALUATED,
                    "signed_review_ref": signed_ref,
                    "signed_at": utcnow(),
                },
            )
        logger.info("Thesis %s evaluated with signed review %s", thesis_id, signed_ref)
        return reload(db, thesis)

    def review_document(self, db: Session, principal: Principal, thesis_id: int) -> bytes:
        """Unsigned review sheet, for the reviewer to sign."""

        thesis = load_thesis(db, thesis_id)
        self._require_reviewer(principal, thesis, allow_admin=True)
        if not thesis.review_document_ref:
            raise NotFoundError("Review document", thesis_id)
        return self.store.fetch(thesis.review_document_ref)

    def signed_review(self, db: Session, principal: Principal, thesis_id: int) -> bytes:
        thesis = self.get_thesis(db, principal, thesis_id)
        if thesis.status is not ThesisStatus.EVALUATED or not thesis.signed_review_ref:
            raise NotFoundError("Signed review", thesis_id)
        return self.store.fetch(thesis.signed_review_ref)

    # === plagiarism ===

    def check_plagiarism(self, db: Session, principal: Principal, thesis_id: int) -> Thesis:
        return self.gate.check_document(db, principal, thesis_id)

    def override_plagiarism(
        self, db: Session, principal: Principal, thesis_id: int, approve: bool = False, extra_attempts: int = 0
    ) -> Thesis:
        return self.gate.override(db, principal, thesis_id, approve=approve, extra_attempts=extra_attempts)

    def plagiarism_report(self, db: Session, principal: Principal, thesis_id: int) -> bytes:
        return self.gate.report(db, principal, thesis_id)

    # === administration ===

    def assign(
        self,
        db: Session,
        principal: Principal,
        student_id: int,
        slot: RoleSlot,
        principal_id: int,
        expected_version: Optional[int] = None,
    ) -> Thesis:
        return self.ledger.assign(db, principal, student_id, slot, principal_id, expected_version)

    def reassign(
        self,
        db: Session,
        principal: Principal,
        student_id: int,
        slot: RoleSlot,
        principal_id: int,
        expected_version: Optional[int] = None,
    ) -> Thesis:
        return self.ledger.reassign(db, principal, student_id, slot, principal_id, expected_version)

    def approve_principal(self, db: Session, principal: Principal, principal_id: int) -> User:
        principal.require(Capability.APPROVE_PRINCIPALS)
        user = db.get(User, principal_id)
        if user is None:
            raise NotFoundError("Principal", principal_id)
        if not user.is_approved:
            with unit_of_work(db):
                user.is_approved = True
            db.refresh(user)
            logger.info("Principal %s approved by %s", principal_id, principal.id)
        return user

