"""Thesis topic proposals and supervisor decisions."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from thesisflow.api.v2.auth import get_current_principal
from thesisflow.db import get_db
from thesisflow.dependencies import get_workflow_service
from thesisflow.schemas.thesis import PrincipalResponse, TopicDecisionRequest, TopicRequest
from thesisflow.services.identity import Principal
from thesisflow.services.workflow import ThesisWorkflowService

router = APIRouter()


@router.post("", response_model=PrincipalResponse)
async def submit_topic(
    data: TopicRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    service: ThesisWorkflowService = Depends(get_workflow_service),
):
    return service.submit_topic(db, principal, data.topic)


@router.post("/{student_id}/decision", response_model=PrincipalResponse)
async def decide_topic(
    student_id: int,
    data: TopicDecisionRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    service: ThesisWorkflowService = Depends(get_workflow_service),
):
    return service.review_topic(db, principal, student_id, data.approved, data.comments)
