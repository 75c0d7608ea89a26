"""Reviewer and team-stage API: rubric, decisions and the signing handshake."""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import Response
from sqlalchemy.orm import Session

from thesisflow.api.v2.auth import get_current_principal, with_conflict_retry
from thesisflow.db import get_db
from thesisflow.dependencies import get_workflow_service
from thesisflow.models import RoleSlot
from thesisflow.schemas.assessment import RubricView
from thesisflow.schemas.thesis import (
    ApproveStageRequest,
    CommentRequest,
    SaveRubricRequest,
    StageReviewView,
    SubmitReviewRequest,
    ThesisSnapshot,
    VersionedRequest,
)
from thesisflow.services.identity import Principal
from thesisflow.services.workflow import ThesisWorkflowService
from thesisflow.utils.storage import read_upload, upload_suffix

router = APIRouter()


def _pdf(data: bytes, filename: str) -> Response:
    return Response(
        content=data,
        media_type="application/pdf",
        headers={"Content-Disposition": f'inline; filename="{filename}"'},
    )


@router.get("/{thesis_id}/rubric", response_model=RubricView)
async def open_rubric(
    thesis_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    service: ThesisWorkflowService = Depends(get_workflow_service),
):
    return service.open_rubric(db, principal, thesis_id)


@router.put("/{thesis_id}/rubric", response_model=ThesisSnapshot)
async def save_rubric(
    thesis_id: int,
    data: SaveRubricRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    service: ThesisWorkflowService = Depends(get_workflow_service),
):
    """Save a draft. A grade is accepted only once the rubric is complete."""
    thesis = with_conflict_retry(
        db,
        lambda: service.save_draft(
            db, principal, thesis_id, data.rubric, data.final_grade, data.expected_version
        ),
    )
    return ThesisSnapshot.from_thesis(thesis)


@router.post("/{thesis_id}/submit", response_model=ThesisSnapshot)
async def submit_review(
    thesis_id: int,
    data: SubmitReviewRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    service: ThesisWorkflowService = Depends(get_workflow_service),
):
    thesis = with_conflict_retry(
        db,
        lambda: service.submit_review(
            db, principal, thesis_id, data.final_grade, data.rubric, data.expected_version
        ),
    )
    return ThesisSnapshot.from_thesis(thesis)


@router.post("/{thesis_id}/revisions", response_model=ThesisSnapshot)
async def request_revisions(
    thesis_id: int,
    data: CommentRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    service: ThesisWorkflowService = Depends(get_workflow_service),
):
    thesis = with_conflict_retry(
        db,
        lambda: service.request_revisions(
            db, principal, thesis_id, data.comment, data.expected_version
        ),
    )
    return ThesisSnapshot.from_thesis(thesis)


@router.post("/{thesis_id}/approve", response_model=ThesisSnapshot)
async def approve_stage(
    thesis_id: int,
    data: Optional[ApproveStageRequest] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    service: ThesisWorkflowService = Depends(get_workflow_service),
):
    """Renders the team member's unsigned sheet; the signed copy is uploaded separately."""
    data = data or ApproveStageRequest()
    thesis = with_conflict_retry(
        db,
        lambda: service.approve_stage(
            db,
            principal,
            thesis_id,
            comments=data.comments,
            rubric=data.rubric,
            expected_version=data.expected_version,
        ),
    )
    return ThesisSnapshot.from_thesis(thesis)


@router.post("/{thesis_id}/re-review", response_model=ThesisSnapshot)
async def re_review(
    thesis_id: int,
    data: Optional[VersionedRequest] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    service: ThesisWorkflowService = Depends(get_workflow_service),
):
    expected_version = data.expected_version if data else None
    thesis = with_conflict_retry(
        db, lambda: service.re_review(db, principal, thesis_id, expected_version)
    )
    return ThesisSnapshot.from_thesis(thesis)


@router.get("/{thesis_id}/document")
async def get_review_document(
    thesis_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    service: ThesisWorkflowService = Depends(get_workflow_service),
):
    """Unsigned review sheet to be signed outside the system."""
    data = service.review_document(db, principal, thesis_id)
    return _pdf(data, f"review_{thesis_id}.pdf")


@router.post("/{thesis_id}/signed", response_model=ThesisSnapshot)
async def upload_signed_review(
    thesis_id: int,
    iteration: int = Form(...),
    file: UploadFile = File(...),
    document_ref: Optional[str] = Form(None),
    expected_version: Optional[int] = Form(None),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    service: ThesisWorkflowService = Depends(get_workflow_service),
):
    data = await read_upload(file)
    thesis = service.upload_signed_review(
        db,
        principal,
        thesis_id,
        iteration,
        data,
        suffix=upload_suffix(file),
        document_ref=document_ref,
        expected_version=expected_version,
    )
    return ThesisSnapshot.from_thesis(thesis)


@router.get("/{thesis_id}/team/{slot}/document")
async def get_stage_document(
    thesis_id: int,
    slot: RoleSlot,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    service: ThesisWorkflowService = Depends(get_workflow_service),
):
    """Latest unsigned consultant or supervisor sheet."""
    data = service.stage_document(db, principal, thesis_id, slot)
    return _pdf(data, f"{slot.value}_review_{thesis_id}.pdf")


@router.post("/{thesis_id}/team/{slot}/signed", response_model=StageReviewView)
async def upload_signed_stage_review(
    thesis_id: int,
    slot: RoleSlot,
    iteration: int = Form(...),
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    service: ThesisWorkflowService = Depends(get_workflow_service),
):
    data = await read_upload(file)
    review = service.upload_signed_stage_review(
        db, principal, thesis_id, slot, iteration, data, suffix=upload_suffix(file)
    )
    return StageReviewView.from_review(review)


@router.get("/{thesis_id}/team/{slot}/signed")
async def get_signed_stage_review(
    thesis_id: int,
    slot: RoleSlot,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    service: ThesisWorkflowService = Depends(get_workflow_service),
):
    data = service.signed_stage_review(db, principal, thesis_id, slot)
    return Response(content=data, media_type="application/octet-stream")
