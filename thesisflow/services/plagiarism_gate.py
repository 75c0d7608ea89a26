"""Plagiarism gate: bounded similarity checks and the admin override."""

import logging
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from thesisflow.config import get_settings
from thesisflow.errors import (
    AuthorizationError,
    ConflictError,
    ExhaustionError,
    NotFoundError,
    ValidationError,
)
from thesisflow.models import Capability, Thesis, ThesisStatus
from thesisflow.services.identity import Principal
from thesisflow.services.plagiarism import SimilarityOracle
from thesisflow.services.transitions import (
    compare_and_swap,
    load_thesis,
    reload,
    unit_of_work,
    utcnow,
)
from thesisflow.utils.storage import FileStore

logger = logging.getLogger(__name__)

OPEN_STATES = tuple(s for s in ThesisStatus if s is not ThesisStatus.EVALUATED)


class PlagiarismGate:
    """Runs the similarity oracle at most ``max_attempts`` times per thesis.

    The oracle call happens before any write. Only a scored result is
    recorded, so an unreachable oracle never consumes an attempt.
    """

    def __init__(
        self,
        oracle: SimilarityOracle,
        store: FileStore,
        threshold: Optional[float] = None,
    ):
        self.oracle = oracle
        self.store = store
        self.threshold = get_settings().plagiarism_threshold if threshold is None else threshold

    def _authorize(self, principal: Principal, thesis: Thesis) -> None:
        principal.require(Capability.CHECK_PLAGIARISM)
        if principal.id not in (thesis.student_id, thesis.assigned_supervisor_id):
            raise AuthorizationError(
                "Only the author or the assigned supervisor can run the check",
                thesis_id=thesis.id,
            )

    def check_document(self, db: Session, principal: Principal, thesis_id: int) -> Thesis:
        thesis = load_thesis(db, thesis_id)
        self._authorize(principal, thesis)

        if thesis.status is ThesisStatus.EVALUATED:
            raise ValidationError(
                "Evaluated theses cannot be re-checked", guard="status", status=thesis.status.value
            )
        seen_attempts = thesis.plagiarism_attempts
        max_attempts = thesis.plagiarism_max_attempts
        if seen_attempts >= max_attempts:
            logger.warning(
                "Plagiarism attempts exhausted for thesis %s (%s/%s)",
                thesis.id,
                seen_attempts,
                max_attempts,
            )
            raise ExhaustionError(
                "No plagiarism check attempts left", attempts=seen_attempts, max_attempts=max_attempts
            )
        seen_file = thesis.file_ref
        if not seen_file or not self.store.exists(seen_file):
            raise ValidationError(
                "Thesis has no uploaded file", missing_fields=["file"], guard="file_missing"
            )

        result = self.oracle.score(seen_file)
        approved = result.score <= self.threshold

        stmt = (
            update(Thesis)
            .where(
                Thesis.id == thesis.id,
                Thesis.plagiarism_attempts == seen_attempts,
                Thesis.plagiarism_attempts < Thesis.plagiarism_max_attempts,
                Thesis.file_ref == seen_file,
            )
            .values(
                plagiarism_attempts=Thesis.plagiarism_attempts + 1,
                plagiarism_is_checked=True,
                plagiarism_similarity_score=result.score,
                plagiarism_report_ref=result.report_ref,
                plagiarism_is_approved=approved,
                plagiarism_checked_at=utcnow(),
                version=Thesis.version + 1,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        with unit_of_work(db):
            if db.execute(stmt).rowcount != 1:
                logger.warning("Plagiarism result for thesis %s lost a race", thesis.id)
                raise ConflictError(
                    "Thesis file or attempt counter changed during the check", thesis_id=thesis.id
                )
        logger.info(
            "Plagiarism check %s/%s on thesis %s: score=%.2f approved=%s",
            seen_attempts + 1,
            max_attempts,
            thesis_id,
            result.score,
            approved,
        )
        return reload(db, thesis)

    def override(
        self,
        db: Session,
        principal: Principal,
        thesis_id: int,
        approve: bool = False,
        extra_attempts: int = 0,
    ) -> Thesis:
        """Grant extra attempts and/or approve the record manually."""

        principal.require(Capability.OVERRIDE)
        if not approve and extra_attempts <= 0:
            raise ValidationError(
                "Nothing to override",
                missing_fields=["approve", "extra_attempts"],
                guard="empty_override",
            )
        thesis = load_thesis(db, thesis_id)
        values = {}
        if extra_attempts > 0:
            values["plagiarism_max_attempts"] = Thesis.plagiarism_max_attempts + extra_attempts
        if approve:
            values.update(plagiarism_is_approved=True, plagiarism_is_checked=True)

        with unit_of_work(db):
            compare_and_swap(db, thesis, allowed=OPEN_STATES, values=values)
        logger.info(
            "Plagiarism override on thesis %s by %s: approve=%s extra_attempts=%s",
            thesis_id,
            principal.id,
            approve,
            extra_attempts,
        )
        return reload(db, thesis)

    def report(self, db: Session, principal: Principal, thesis_id: int) -> bytes:
        thesis = load_thesis(db, thesis_id)
        readers = (
            thesis.student_id,
            thesis.assigned_supervisor_id,
            thesis.assigned_consultant_id,
            thesis.assigned_reviewer_id,
        )
        if principal.id not in readers and not principal.can(Capability.VIEW_ALL):
            raise AuthorizationError("Not allowed to read this plagiarism report")
        if not thesis.plagiarism_report_ref:
            raise NotFoundError("Plagiarism report", thesis_id)
        return self.store.fetch(thesis.plagiarism_report_ref)
