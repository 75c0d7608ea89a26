"""Student-facing thesis API: upload, resubmit, plagiarism, signed review."""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from fastapi.responses import Response
from sqlalchemy.orm import Session

from thesisflow.api.v2.auth import get_current_principal, with_conflict_retry
from thesisflow.db import get_db
from thesisflow.dependencies import get_workflow_service
from thesisflow.schemas.thesis import ThesisSnapshot
from thesisflow.services.identity import Principal
from thesisflow.services.workflow import ThesisWorkflowService
from thesisflow.utils.storage import read_upload, upload_suffix

router = APIRouter()


@router.post("", response_model=ThesisSnapshot, status_code=status.HTTP_201_CREATED)
async def submit_thesis(
    title: str = Form(...),
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    service: ThesisWorkflowService = Depends(get_workflow_service),
):
    """Upload the thesis; repeat uploads replace the file while still submitted."""
    data = await read_upload(file)
    thesis = service.submit_thesis(db, principal, title, data, suffix=upload_suffix(file))
    return ThesisSnapshot.from_thesis(thesis)


@router.get("/me", response_model=ThesisSnapshot)
async def get_my_thesis(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    service: ThesisWorkflowService = Depends(get_workflow_service),
):
    return ThesisSnapshot.from_thesis(service.get_my_thesis(db, principal))


@router.get("/{thesis_id}", response_model=ThesisSnapshot)
async def get_thesis(
    thesis_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    service: ThesisWorkflowService = Depends(get_workflow_service),
):
    return ThesisSnapshot.from_thesis(service.get_thesis(db, principal, thesis_id))


@router.post("/{thesis_id}/resubmit", response_model=ThesisSnapshot)
async def resubmit_thesis(
    thesis_id: int,
    file: UploadFile = File(...),
    expected_version: Optional[int] = Form(None),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    service: ThesisWorkflowService = Depends(get_workflow_service),
):
    data = await read_upload(file)
    suffix = upload_suffix(file)
    thesis = with_conflict_retry(
        db,
        lambda: service.resubmit(
            db, principal, thesis_id, data, suffix=suffix, expected_version=expected_version
        ),
    )
    return ThesisSnapshot.from_thesis(thesis)


@router.post("/{thesis_id}/plagiarism-check", response_model=ThesisSnapshot)
def check_plagiarism(
    thesis_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    service: ThesisWorkflowService = Depends(get_workflow_service),
):
    """Consumes one attempt per scored result; not retried on conflict.

    Plain ``def``: the oracle call blocks, so it runs in the threadpool.
    """
    return ThesisSnapshot.from_thesis(service.check_plagiarism(db, principal, thesis_id))


@router.get("/{thesis_id}/plagiarism-report")
async def get_plagiarism_report(
    thesis_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    service: ThesisWorkflowService = Depends(get_workflow_service),
):
    data = service.plagiarism_report(db, principal, thesis_id)
    return Response(content=data, media_type="text/plain; charset=utf-8")


@router.get("/{thesis_id}/signed-review")
async def get_signed_review(
    thesis_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    service: ThesisWorkflowService = Depends(get_workflow_service),
):
    data = service.signed_review(db, principal, thesis_id)
    return Response(content=data, media_type="application/octet-stream")
