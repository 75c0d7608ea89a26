"""Assignment ledger API."""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from thesisflow.api.v2.auth import get_current_principal, with_conflict_retry
from thesisflow.db import get_db
from thesisflow.dependencies import get_workflow_service
from thesisflow.models import AssignmentEntry
from thesisflow.schemas.thesis import (
    AssignRequest,
    LedgerItem,
    LedgerResponse,
    LedgerStatsResponse,
    ThesisSnapshot,
)
from thesisflow.services.identity import Principal
from thesisflow.services.workflow import ThesisWorkflowService

router = APIRouter()


def _ledger_response(principal_id: int, entries: List[AssignmentEntry]) -> LedgerResponse:
    items = [
        LedgerItem(
            thesis_id=entry.thesis_id,
            role_slot=entry.role_slot,
            state=entry.state,
            assigned_at=entry.assigned_at,
            completed_at=entry.completed_at,
            thesis=ThesisSnapshot.from_thesis(entry.thesis),
        )
        for entry in entries
    ]
    return LedgerResponse(principal_id=principal_id, items=items, total=len(items))


@router.post("", response_model=ThesisSnapshot)
async def assign(
    data: AssignRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    service: ThesisWorkflowService = Depends(get_workflow_service),
):
    """Bind an unbound role slot. A bound slot is a conflict; use reassign."""
    thesis = with_conflict_retry(
        db,
        lambda: service.assign(
            db, principal, data.student_id, data.role_slot, data.principal_id, data.expected_version
        ),
    )
    return ThesisSnapshot.from_thesis(thesis)


@router.post("/reassign", response_model=ThesisSnapshot)
async def reassign(
    data: AssignRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    service: ThesisWorkflowService = Depends(get_workflow_service),
):
    thesis = with_conflict_retry(
        db,
        lambda: service.reassign(
            db, principal, data.student_id, data.role_slot, data.principal_id, data.expected_version
        ),
    )
    return ThesisSnapshot.from_thesis(thesis)


@router.get("/{principal_id}/assigned", response_model=LedgerResponse)
async def get_assigned(
    principal_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    service: ThesisWorkflowService = Depends(get_workflow_service),
):
    return _ledger_response(principal_id, service.get_assigned(db, principal, principal_id))


@router.get("/{principal_id}/completed", response_model=LedgerResponse)
async def get_completed(
    principal_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    service: ThesisWorkflowService = Depends(get_workflow_service),
):
    return _ledger_response(principal_id, service.get_completed(db, principal, principal_id))


@router.get("/{principal_id}/stats", response_model=LedgerStatsResponse)
async def get_stats(
    principal_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    service: ThesisWorkflowService = Depends(get_workflow_service),
):
    stats = service.ledger_stats(db, principal, principal_id)
    return LedgerStatsResponse(
        principal_id=principal_id,
        assigned_count=stats.assigned,
        reviewed_count=stats.completed,
        total_count=stats.total,
    )
