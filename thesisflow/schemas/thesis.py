"""Response and request bodies for thesis, ledger and principal endpoints."""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from thesisflow.models import (
    FinalGrade,
    LedgerState,
    RequestStatus,
    Role,
    RoleSlot,
    StageReview,
    Thesis,
    ThesisStatus,
)
from thesisflow.schemas.assessment import Rubric


# === Thesis snapshots ===

class PlagiarismView(BaseModel):
    is_checked: bool
    similarity_score: Optional[float]
    attempts: int
    max_attempts: int
    remaining_attempts: int
    is_approved: bool
    has_report: bool
    checked_at: Optional[datetime]


class StageReviewView(BaseModel):
    iteration: int
    role_slot: RoleSlot
    principal_id: int
    comments: Optional[str]
    assessment: Optional[Rubric]
    has_document: bool
    is_signed: bool
    signed_at: Optional[datetime]
    created_at: datetime

    @classmethod
    def from_review(cls, review: StageReview) -> "StageReviewView":
        return cls(
            iteration=review.iteration,
            role_slot=review.role_slot,
            principal_id=review.principal_id,
            comments=review.comments,
            assessment=Rubric.model_validate(review.assessment_json) if review.assessment_json else None,
            has_document=bool(review.document_ref),
            is_signed=review.signed_ref is not None,
            signed_at=review.signed_at,
            created_at=review.created_at,
        )


class ThesisSnapshot(BaseModel):
    id: int
    student_id: int
    title: str
    file_ref: Optional[str]
    submission_date: datetime
    status: ThesisStatus
    version: int
    assigned_reviewer_id: Optional[int]
    assigned_consultant_id: Optional[int]
    assigned_supervisor_id: Optional[int]
    supervisor_approved: bool
    assessment: Optional[Rubric]
    final_grade: Optional[FinalGrade]
    plagiarism: PlagiarismView
    current_iteration: int
    total_review_count: int
    review_iterations: List[Dict[str, Any]]
    status_before_revision: Optional[ThesisStatus]
    revision_comment: Optional[str]
    has_review_document: bool
    has_signed_review: bool
    signed_at: Optional[datetime]
    stage_reviews: List[StageReviewView] = Field(default_factory=list)

    @classmethod
    def from_thesis(cls, thesis: Thesis) -> "ThesisSnapshot":
        plagiarism = PlagiarismView(
            is_checked=thesis.plagiarism_is_checked,
            similarity_score=thesis.plagiarism_similarity_score,
            attempts=thesis.plagiarism_attempts,
            max_attempts=thesis.plagiarism_max_attempts,
            remaining_attempts=max(thesis.plagiarism_max_attempts - thesis.plagiarism_attempts, 0),
            is_approved=thesis.plagiarism_is_approved,
            has_report=thesis.plagiarism_report_ref is not None,
            checked_at=thesis.plagiarism_checked_at,
        )
        assessment = (
            Rubric.model_validate(thesis.assessment_json) if thesis.assessment_json else None
        )
        return cls(
            id=thesis.id,
            student_id=thesis.student_id,
            title=thesis.title,
            file_ref=thesis.file_ref,
            submission_date=thesis.submission_date,
            status=thesis.status,
            version=thesis.version,
            assigned_reviewer_id=thesis.assigned_reviewer_id,
            assigned_consultant_id=thesis.assigned_consultant_id,
            assigned_supervisor_id=thesis.assigned_supervisor_id,
            supervisor_approved=thesis.supervisor_approved,
            assessment=assessment,
            final_grade=thesis.final_grade,
            plagiarism=plagiarism,
            current_iteration=thesis.current_iteration,
            total_review_count=thesis.total_review_count,
            review_iterations=list(thesis.review_iterations_json or []),
            status_before_revision=thesis.status_before_revision,
            revision_comment=thesis.revision_comment,
            has_review_document=thesis.review_document_ref is not None,
            has_signed_review=thesis.signed_review_ref is not None,
            signed_at=thesis.signed_at,
            stage_reviews=[StageReviewView.from_review(r) for r in thesis.stage_reviews],
        )


class ThesisListResponse(BaseModel):
    theses: List[ThesisSnapshot]
    total: int


# === Requests ===

class SaveRubricRequest(BaseModel):
    rubric: Rubric
    final_grade: Optional[str] = None
    expected_version: Optional[int] = None


class SubmitReviewRequest(BaseModel):
    final_grade: Optional[str] = None
    rubric: Optional[Rubric] = None
    expected_version: Optional[int] = None


class CommentRequest(BaseModel):
    comment: str = Field(..., description="Required explanation for the student")
    expected_version: Optional[int] = None


class VersionedRequest(BaseModel):
    expected_version: Optional[int] = None


class ApproveStageRequest(BaseModel):
    """Optional sign-off content; the rubric must be complete when given."""

    comments: Optional[str] = None
    rubric: Optional[Rubric] = None
    expected_version: Optional[int] = None


class AssignRequest(BaseModel):
    student_id: int
    role_slot: RoleSlot
    principal_id: int
    expected_version: Optional[int] = None


class PlagiarismOverrideRequest(BaseModel):
    approve: bool = False
    extra_attempts: int = Field(default=0, ge=0)


class TopicRequest(BaseModel):
    topic: str


class TopicDecisionRequest(BaseModel):
    approved: bool
    comments: Optional[str] = None


# === Principals & ledger ===

class PrincipalResponse(BaseModel):
    id: int
    username: str
    name: str
    role: Role
    is_approved: bool
    institution: Optional[str]
    faculty: Optional[str]
    supervisor_id: Optional[int]
    thesis_topic: Optional[str]
    is_topic_approved: Optional[bool]
    topic_rejection_comments: Optional[str]

    class Config:
        from_attributes = True


class LedgerItem(BaseModel):
    thesis_id: int
    role_slot: RoleSlot
    state: LedgerState
    assigned_at: datetime
    completed_at: Optional[datetime]
    thesis: ThesisSnapshot


class LedgerResponse(BaseModel):
    principal_id: int
    items: List[LedgerItem]
    total: int


class LedgerStatsResponse(BaseModel):
    principal_id: int
    assigned_count: int
    reviewed_count: int
    total_count: int


# === Supervisor requests ===

class SupervisorRequestCreate(BaseModel):
    supervisor_id: int
    message: Optional[str] = Field(default=None, max_length=2000)


class RespondRequest(BaseModel):
    action: Literal["accept", "decline"]
    decline_reason: Optional[str] = None


class SupervisorRequestResponse(BaseModel):
    id: int
    student_id: int
    supervisor_id: int
    faculty: str
    status: RequestStatus
    student_message: Optional[str]
    decline_reason: Optional[str]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class SupervisorRequestList(BaseModel):
    requests: List[SupervisorRequestResponse]
    total: int
    counts: Dict[str, int]


class AvailableSupervisor(BaseModel):
    id: int
    name: str
    institution: Optional[str]
    positions: List[str]
    faculty: Optional[str]
    has_existing_request: bool
    existing_request_status: Optional[RequestStatus]


class AvailableSupervisorsResponse(BaseModel):
    faculty: str
    supervisors: List[AvailableSupervisor]


class SupervisionStatsResponse(BaseModel):
    pending_requests: int
    current_students: int
