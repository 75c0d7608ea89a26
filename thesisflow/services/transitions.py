"""Compare-and-swap writes on the thesis row.

Every state change is one ``UPDATE theses ... WHERE id AND version [AND
status/slot predicates]``. A rowcount other than 1 means another writer got
there first and the caller sees ``ConflictError``.
"""

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterable, Iterator, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from thesisflow.errors import ConflictError, NotFoundError, TransientInfraError, WorkflowError
from thesisflow.models import RoleSlot, StageReview, Thesis, ThesisStatus

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@contextmanager
def unit_of_work(db: Session) -> Iterator[None]:
    """Commit on success; roll back and translate storage errors otherwise."""

    try:
        yield
        db.commit()
    except WorkflowError:
        db.rollback()
        raise
    except IntegrityError as exc:
        db.rollback()
        logger.warning("Integrity conflict: %s", exc.orig)
        raise ConflictError("Concurrent write violated a uniqueness constraint") from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Database error: %s", exc)
        raise TransientInfraError("Database is unavailable", service="database") from exc


def load_thesis(db: Session, thesis_id: int) -> Thesis:
    try:
        thesis = db.get(Thesis, thesis_id, populate_existing=True)
    except SQLAlchemyError as exc:
        logger.error("Database error loading thesis %s: %s", thesis_id, exc)
        raise TransientInfraError("Database is unavailable", service="database") from exc
    if thesis is None:
        raise NotFoundError("Thesis", thesis_id)
    return thesis


def compare_and_swap(
    db: Session,
    thesis: Thesis,
    *,
    allowed: Iterable[ThesisStatus],
    values: dict,
    where: Iterable[Any] = (),
    expected_version: Optional[int] = None,
) -> None:
    """Apply ``values`` to the thesis if it is still at the version we read.

    ``expected_version`` lets a client pin the version it last saw; without
    it the version loaded in this request is used.
    """

    seen = thesis.version if expected_version is None else expected_version
    stmt = (
        update(Thesis)
        .where(
            Thesis.id == thesis.id,
            Thesis.version == seen,
            Thesis.status.in_(list(allowed)),
            *where,
        )
        .values(**values, version=Thesis.version + 1, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    if result.rowcount != 1:
        logger.warning(
            "Stale write on thesis %s (expected version %s, status %s)",
            thesis.id,
            seen,
            thesis.status.value,
        )
        raise ConflictError(thesis_id=thesis.id, expected_version=seen)


def reload(db: Session, thesis: Thesis) -> Thesis:
    """Re-read the row after a bulk update bypassed the identity map."""

    db.refresh(thesis)
    return thesis


def latest_stage_review(db: Session, thesis_id: int, slot: RoleSlot) -> Optional[StageReview]:
    """Most recent team sign-off for ``slot``, any iteration."""

    return db.scalars(
        select(StageReview)
        .where(StageReview.thesis_id == thesis_id, StageReview.role_slot == slot)
        .order_by(StageReview.iteration.desc(), StageReview.id.desc())
        .execution_options(populate_existing=True)
    ).first()
