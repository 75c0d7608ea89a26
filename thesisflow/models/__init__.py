"""ORM models and enums."""

from thesisflow.models.enums import (
    ROLE_CAPABILITIES,
    Capability,
    CriterionLevel,
    DegreeLevel,
    FinalGrade,
    LedgerState,
    RequestStatus,
    Role,
    RoleSlot,
    ThesisStatus,
)
from thesisflow.models.ledger import AssignmentEntry
from thesisflow.models.stage_review import StageReview
from thesisflow.models.supervisor_request import SupervisorRequest
from thesisflow.models.thesis import Thesis
from thesisflow.models.user import User

__all__ = [
    "ROLE_CAPABILITIES",
    "AssignmentEntry",
    "Capability",
    "CriterionLevel",
    "DegreeLevel",
    "FinalGrade",
    "LedgerState",
    "RequestStatus",
    "Role",
    "RoleSlot",
    "StageReview",
    "SupervisorRequest",
    "Thesis",
    "ThesisStatus",
    "User",
]
