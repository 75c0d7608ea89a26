"""Administrative views and overrides."""

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from thesisflow.api.v2.auth import get_current_principal, with_conflict_retry
from thesisflow.db import get_db
from thesisflow.dependencies import get_workflow_service
from thesisflow.models import ThesisStatus
from thesisflow.schemas.thesis import (
    PlagiarismOverrideRequest,
    PrincipalResponse,
    ThesisListResponse,
    ThesisSnapshot,
)
from thesisflow.services.identity import Principal
from thesisflow.services.workflow import ThesisWorkflowService

router = APIRouter()


@router.get("/theses", response_model=ThesisListResponse)
async def list_theses(
    status: Optional[ThesisStatus] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    service: ThesisWorkflowService = Depends(get_workflow_service),
):
    theses = [ThesisSnapshot.from_thesis(t) for t in service.list_theses(db, principal, status)]
    return ThesisListResponse(theses=theses, total=len(theses))


@router.get("/theses/unassigned", response_model=ThesisListResponse)
async def list_unassigned(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    service: ThesisWorkflowService = Depends(get_workflow_service),
):
    theses = [ThesisSnapshot.from_thesis(t) for t in service.list_unassigned(db, principal)]
    return ThesisListResponse(theses=theses, total=len(theses))


@router.post("/principals/{principal_id}/approve", response_model=PrincipalResponse)
async def approve_principal(
    principal_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    service: ThesisWorkflowService = Depends(get_workflow_service),
):
    return service.approve_principal(db, principal, principal_id)


@router.post("/theses/{thesis_id}/plagiarism-override", response_model=ThesisSnapshot)
async def override_plagiarism(
    thesis_id: int,
    data: PlagiarismOverrideRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    service: ThesisWorkflowService = Depends(get_workflow_service),
):
    thesis = with_conflict_retry(
        db,
        lambda: service.override_plagiarism(
            db, principal, thesis_id, approve=data.approve, extra_attempts=data.extra_attempts
        ),
    )
    return ThesisSnapshot.from_thesis(thesis)
