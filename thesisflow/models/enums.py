"""Workflow enums: roles, capabilities, thesis states and grading scales."""

import enum
from typing import Dict, FrozenSet


class Role(str, enum.Enum):
    """Principal roles. Closed set; every role maps to a capability set."""

    STUDENT = "student"
    CONSULTANT = "consultant"
    SUPERVISOR = "supervisor"
    REVIEWER = "reviewer"
    HEAD_OF_DEPARTMENT = "head_of_department"
    DEAN = "dean"
    ADMIN = "admin"


class Capability(str, enum.Enum):
    """Actions the engine authorizes against."""

    SUBMIT_THESIS = "submit_thesis"
    CHECK_PLAGIARISM = "check_plagiarism"
    REQUEST_SUPERVISOR = "request_supervisor"
    ACCEPT_STUDENTS = "accept_students"
    REVIEW = "review"              # reviewer rubric, signing, re-review
    TEAM_REVIEW = "team_review"    # consultant / supervisor stage
    DECIDE_TOPIC = "decide_topic"
    DECIDE_ANY_TOPIC = "decide_any_topic"
    ASSIGN = "assign"
    OVERRIDE = "override"          # re-review any thesis, plagiarism override, signing fallback
    APPROVE_PRINCIPALS = "approve_principals"
    VIEW_ALL = "view_all"


ROLE_CAPABILITIES: Dict[Role, FrozenSet[Capability]] = {
    Role.STUDENT: frozenset(
        {Capability.SUBMIT_THESIS, Capability.CHECK_PLAGIARISM, Capability.REQUEST_SUPERVISOR}
    ),
    Role.CONSULTANT: frozenset({Capability.TEAM_REVIEW}),
    Role.SUPERVISOR: frozenset(
        {
            Capability.TEAM_REVIEW,
            Capability.CHECK_PLAGIARISM,
            Capability.DECIDE_TOPIC,
            Capability.ACCEPT_STUDENTS,
        }
    ),
    Role.REVIEWER: frozenset({Capability.REVIEW}),
    Role.HEAD_OF_DEPARTMENT: frozenset(
        {Capability.ASSIGN, Capability.DECIDE_ANY_TOPIC, Capability.VIEW_ALL}
    ),
    Role.DEAN: frozenset({Capability.VIEW_ALL}),
    Role.ADMIN: frozenset(
        {
            Capability.ASSIGN,
            Capability.OVERRIDE,
            Capability.APPROVE_PRINCIPALS,
            Capability.VIEW_ALL,
        }
    ),
}


class ThesisStatus(str, enum.Enum):
    """Thesis state machine states."""

    SUBMITTED = "submitted"
    WITH_CONSULTANT = "with_consultant"
    WITH_SUPERVISOR = "with_supervisor"
    ASSIGNED = "assigned"
    UNDER_REVIEW = "under_review"
    REVISIONS_REQUESTED = "revisions_requested"
    GRADED_PENDING_SIGNATURE = "graded_pending_signature"
    EVALUATED = "evaluated"


class RoleSlot(str, enum.Enum):
    """Reviewing slots on a thesis and the role each one requires."""

    REVIEWER = "reviewer"
    CONSULTANT = "consultant"
    SUPERVISOR = "supervisor"

    @property
    def required_role(self) -> Role:
        return Role(self.value)

    @property
    def column(self) -> str:
        return f"assigned_{self.value}_id"


class LedgerState(str, enum.Enum):
    """State of a thesis in a principal's personal list."""

    ACTIVE = "active"
    COMPLETED = "completed"


class CriterionLevel(str, enum.Enum):
    """Five ordinal levels for a Section I criterion."""

    HIGH = "high"
    ABOVE_AVERAGE = "above_average"
    AVERAGE = "average"
    BELOW_AVERAGE = "below_average"
    LOW = "low"


class FinalGrade(str, enum.Enum):
    """Fixed five-point final grade scale."""

    EXCELLENT_5A = "Excellent (5A)"
    EXCELLENT_5B = "Excellent (5B)"
    GOOD = "Good (4)"
    SATISFACTORY = "Satisfactory (3)"
    UNSATISFACTORY = "Unsatisfactory (2)"


class DegreeLevel(str, enum.Enum):
    BACHELORS = "bachelors"
    MASTERS = "masters"


class RequestStatus(str, enum.Enum):
    """Lifecycle of a student's request for a supervisor."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    CANCELLED = "cancelled"
