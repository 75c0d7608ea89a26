"""Consultant and supervisor sign-off.

Approving a team stage renders an unsigned review sheet for the approving
member and records it as a ``StageReview`` for the current iteration. The
member signs it outside the system and uploads the signed copy. The
supervisor cannot approve until the consultant's latest sheet is signed, and
a reviewer cannot be assigned until the supervisor's is.
"""

import logging
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from thesisflow.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from thesisflow.models import Capability, RoleSlot, StageReview, Thesis, ThesisStatus, User
from thesisflow.schemas.assessment import Rubric
from thesisflow.services.identity import Principal
from thesisflow.services.ledger import AssignmentLedger
from thesisflow.services.renderer import DocumentRenderer
from thesisflow.services.transitions import (
    compare_and_swap,
    latest_stage_review,
    load_thesis,
    reload,
    unit_of_work,
    utcnow,
)
from thesisflow.utils.storage import FileStore

logger = logging.getLogger(__name__)

TEAM_STAGES = {
    ThesisStatus.WITH_CONSULTANT: RoleSlot.CONSULTANT,
    ThesisStatus.WITH_SUPERVISOR: RoleSlot.SUPERVISOR,
}


def _team_slot(slot: RoleSlot) -> RoleSlot:
    if slot is RoleSlot.REVIEWER:
        raise ValidationError(
            "Reviewer documents are signed through the review endpoints",
            missing_fields=["role_slot"],
            guard="slot",
        )
    return slot


class TeamReviewService:
    def __init__(self, store: FileStore, renderer: DocumentRenderer, ledger: AssignmentLedger):
        self.store = store
        self.renderer = renderer
        self.ledger = ledger

    def approve(
        self,
        db: Session,
        principal: Principal,
        thesis_id: int,
        comments: Optional[str] = None,
        rubric: Optional[Rubric] = None,
        expected_version: Optional[int] = None,
    ) -> Thesis:
        """Consultant hands over to the supervisor; supervisor signs off the team stage."""

        thesis = load_thesis(db, thesis_id)
        slot = TEAM_STAGES.get(thesis.status)
        if slot is None:
            raise ValidationError(
                f"Cannot approve the stage while thesis is {thesis.status.value}",
                guard="status",
                status=thesis.status.value,
                allowed=[s.value for s in TEAM_STAGES],
            )
        principal.require(Capability.TEAM_REVIEW)
        if getattr(thesis, slot.column) != principal.id:
            raise AuthorizationError("Only the current stage owner can approve", thesis_id=thesis_id)
        if rubric is not None and not rubric.can_select_grade():
            raise ValidationError(
                "Rubric is incomplete",
                missing_fields=rubric.missing_fields(),
                guard="rubric_incomplete",
            )

        comments = comments.strip() if comments and comments.strip() else None
        notes = []
        if slot is RoleSlot.CONSULTANT:
            if thesis.assigned_supervisor_id is None:
                raise ValidationError(
                    "Assign a supervisor before approving",
                    missing_fields=["assigned_supervisor_id"],
                    guard="supervisor_unbound",
                )
            values = {"status": ThesisStatus.WITH_SUPERVISOR}
        else:
            if thesis.supervisor_approved:
                raise ValidationError("Stage is already approved", guard="already_approved")
            if not thesis.plagiarism_is_approved:
                raise ValidationError(
                    "Plagiarism check has not been passed",
                    missing_fields=["plagiarism.is_approved"],
                    guard="plagiarism_not_approved",
                )
            consultant = latest_stage_review(db, thesis.id, RoleSlot.CONSULTANT)
            if consultant is not None:
                if consultant.signed_ref is None:
                    raise ValidationError(
                        "Consultant has not uploaded the signed review",
                        missing_fields=["consultant_signed_review"],
                        guard="consultant_unsigned",
                    )
                notes.append(
                    f"Consultant review of iteration {consultant.iteration} signed on "
                    f"{consultant.signed_at:%Y-%m-%d}"
                )
            values = {"supervisor_approved": True}

        student = db.get(User, thesis.student_id)
        document_ref = self.renderer.render(
            rubric,
            {
                "thesis_id": thesis.id,
                "iteration": thesis.current_iteration,
                "title": thesis.title,
                "student_name": student.name if student else "",
                "reviewer_name": principal.name,
                "role_label": slot.value.capitalize(),
                "comments": comments,
                "notes": notes,
                "category": "team_reviews",
            },
        )
        assessment = rubric.model_dump(mode="json") if rubric is not None else None

        with unit_of_work(db):
            compare_and_swap(
                db,
                thesis,
                allowed=(thesis.status,),
                expected_version=expected_version,
                where=[getattr(Thesis, slot.column) == principal.id],
                values=values,
            )
            review = db.scalars(
                select(StageReview).where(
                    StageReview.thesis_id == thesis.id,
                    StageReview.iteration == thesis.current_iteration,
                    StageReview.role_slot == slot,
                )
            ).first()
            if review is None:
                db.add(
                    StageReview(
                        thesis_id=thesis.id,
                        iteration=thesis.current_iteration,
                        role_slot=slot,
                        principal_id=principal.id,
                        comments=comments,
                        assessment_json=assessment,
                        document_ref=document_ref,
                    )
                )
            else:
                # same iteration approved again after a reassignment
                review.principal_id = principal.id
                review.comments = comments
                review.assessment_json = assessment
                review.document_ref = document_ref
                review.signed_ref = None
                review.signed_at = None
                review.created_at = utcnow()
            self.ledger.mark_completed(db, principal.id, thesis.id, slot)
        logger.info("Stage %s approved on thesis %s by %s", slot.value, thesis_id, principal.id)
        return reload(db, thesis)

    def _latest(self, db: Session, thesis_id: int, slot: RoleSlot) -> StageReview:
        review = latest_stage_review(db, thesis_id, _team_slot(slot))
        if review is None:
            raise NotFoundError(f"{slot.value.capitalize()} review", thesis_id)
        return review

    def _require_signer(self, principal: Principal, review: StageReview) -> None:
        if principal.can(Capability.OVERRIDE):
            return
        principal.require(Capability.TEAM_REVIEW)
        if review.principal_id != principal.id:
            raise AuthorizationError("Not the author of this review", thesis_id=review.thesis_id)

    def upload_signed(
        self,
        db: Session,
        principal: Principal,
        thesis_id: int,
        slot: RoleSlot,
        iteration: int,
        data: Optional[bytes],
        suffix: str = ".pdf",
    ) -> StageReview:
        load_thesis(db, thesis_id)
        review = self._latest(db, thesis_id, slot)
        self._require_signer(principal, review)
        if iteration != review.iteration:
            raise ValidationError(
                f"Signed document belongs to iteration {iteration}, latest {slot.value} review is "
                f"for iteration {review.iteration}",
                missing_fields=["iteration"],
                guard="iteration_mismatch",
            )
        if not self.store.exists(review.document_ref):
            raise ValidationError(
                "No unsigned review document exists", missing_fields=["review_document"], guard="unsigned_missing"
            )
        if review.signed_ref is not None:
            raise ValidationError("Review is already signed", guard="already_signed")
        if not data:
            raise ValidationError("A non-empty file is required", missing_fields=["file"], guard="file_missing")

        signed_ref = self.store.store(data, category="signed_team_reviews", suffix=suffix)
        stmt = (
            update(StageReview)
            .where(StageReview.id == review.id, StageReview.signed_ref.is_(None))
            .values(signed_ref=signed_ref, signed_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        with unit_of_work(db):
            if db.execute(stmt).rowcount != 1:
                raise ConflictError("Review was signed concurrently", thesis_id=thesis_id)
        db.refresh(review)
        logger.info("Signed %s review uploaded for thesis %s", slot.value, thesis_id)
        return review

    def document(self, db: Session, principal: Principal, thesis_id: int, slot: RoleSlot) -> bytes:
        """Latest unsigned sheet, for its author to sign."""
        review = self._latest(db, thesis_id, slot)
        self._require_signer(principal, review)
        return self.store.fetch(review.document_ref)

    def signed(self, db: Session, thesis: Thesis, slot: RoleSlot) -> bytes:
        review = self._latest(db, thesis.id, slot)
        if review.signed_ref is None:
            raise NotFoundError(f"Signed {slot.value} review", thesis.id)
        return self.store.fetch(review.signed_ref)
