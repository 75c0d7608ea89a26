"""Supervisor request API: students ask, supervisors answer."""

from collections import Counter

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from thesisflow.api.v2.auth import get_current_principal
from thesisflow.db import get_db
from thesisflow.dependencies import get_workflow_service
from thesisflow.models import RequestStatus
from thesisflow.schemas.thesis import (
    AvailableSupervisor,
    AvailableSupervisorsResponse,
    RespondRequest,
    SupervisionStatsResponse,
    SupervisorRequestCreate,
    SupervisorRequestList,
    SupervisorRequestResponse,
)
from thesisflow.services.identity import Principal
from thesisflow.services.workflow import ThesisWorkflowService

router = APIRouter()


@router.post("", response_model=SupervisorRequestResponse, status_code=status.HTTP_201_CREATED)
async def request_supervisor(
    data: SupervisorRequestCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    service: ThesisWorkflowService = Depends(get_workflow_service),
):
    return service.supervision.request_supervisor(db, principal, data.supervisor_id, data.message)


@router.get("/mine", response_model=SupervisorRequestList)
async def list_my_requests(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    service: ThesisWorkflowService = Depends(get_workflow_service),
):
    requests = service.supervision.list_requests(db, principal)
    by_status = Counter(request.status for request in requests)
    counts = {request_status.value: by_status.get(request_status, 0) for request_status in RequestStatus}
    return SupervisorRequestList(
        requests=[SupervisorRequestResponse.model_validate(r) for r in requests],
        total=len(requests),
        counts=counts,
    )


@router.get("/available-supervisors", response_model=AvailableSupervisorsResponse)
async def available_supervisors(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    service: ThesisWorkflowService = Depends(get_workflow_service),
):
    faculty, rows = service.supervision.available_supervisors(db, principal)
    supervisors = [
        AvailableSupervisor(
            id=supervisor.id,
            name=supervisor.name,
            institution=supervisor.institution,
            positions=list(supervisor.positions or []),
            faculty=supervisor.faculty,
            has_existing_request=request is not None,
            existing_request_status=request.status if request else None,
        )
        for supervisor, request in rows
    ]
    return AvailableSupervisorsResponse(faculty=faculty, supervisors=supervisors)


@router.get("/stats", response_model=SupervisionStatsResponse)
async def supervision_stats(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    service: ThesisWorkflowService = Depends(get_workflow_service),
):
    stats = service.supervision.stats(db, principal)
    return SupervisionStatsResponse(
        pending_requests=stats.pending_requests, current_students=stats.current_students
    )


@router.patch("/{request_id}/respond", response_model=SupervisorRequestResponse)
async def respond(
    request_id: int,
    data: RespondRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    service: ThesisWorkflowService = Depends(get_workflow_service),
):
    """Accepting binds the supervisor to the student and any existing thesis."""
    return service.supervision.respond(
        db, principal, request_id, accept=data.action == "accept", decline_reason=data.decline_reason
    )


@router.delete("/{request_id}", response_model=SupervisorRequestResponse)
async def cancel_request(
    request_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    service: ThesisWorkflowService = Depends(get_workflow_service),
):
    return service.supervision.cancel(db, principal, request_id)
