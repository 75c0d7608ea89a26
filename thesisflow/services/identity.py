"""Identity provider: bearer tokens, principals and profile completeness.

Tokens keep the lightweight HMAC format (``base64(payload).hexsig``) so no
JWT library is needed. Credential issuance and password storage live outside
this service; ``create_token`` exists for seeding and tests.
"""

import base64
import hashlib
import hmac
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, FrozenSet, List, Optional, Protocol, Tuple

from sqlalchemy.orm import Session

from thesisflow.config import get_settings
from thesisflow.errors import AuthorizationError, NotFoundError
from thesisflow.models import ROLE_CAPABILITIES, Capability, Role, User

logger = logging.getLogger(__name__)

PROFILE_REQUIREMENTS: Dict[Role, Tuple[str, ...]] = {
    Role.STUDENT: (
        "name",
        "faculty",
        "group_name",
        "subject_area",
        "educational_program",
        "degree_level",
    ),
    Role.REVIEWER: ("name", "institution", "positions"),
    Role.CONSULTANT: ("name", "institution", "positions"),
    Role.SUPERVISOR: ("name", "institution", "positions"),
    Role.HEAD_OF_DEPARTMENT: ("name", "institution"),
    Role.DEAN: ("name", "institution"),
    Role.ADMIN: ("name", "institution"),
}


@dataclass(frozen=True)
class Principal:
    """Authenticated caller, passed explicitly into every engine call."""

    id: int
    role: Role
    name: str
    is_approved: bool = True
    capabilities: FrozenSet[Capability] = field(default_factory=frozenset)

    @classmethod
    def from_user(cls, user: User) -> "Principal":
        return cls(
            id=user.id,
            role=user.role,
            name=user.name,
            is_approved=user.is_approved,
            capabilities=ROLE_CAPABILITIES[user.role],
        )

    def can(self, capability: Capability) -> bool:
        return capability in self.capabilities

    def require(self, capability: Capability) -> None:
        if not self.can(capability):
            raise AuthorizationError(
                f"Role '{self.role.value}' lacks capability '{capability.value}'",
                capability=capability.value,
            )


@dataclass(frozen=True)
class ProfileReport:
    ok: bool
    missing_fields: List[str]


def _field_missing(value: object) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple)):
        return not any(str(v).strip() for v in value)
    return False


def profile_report(user: User) -> ProfileReport:
    missing = [
        name
        for name in PROFILE_REQUIREMENTS[user.role]
        if _field_missing(getattr(user, name))
    ]
    return ProfileReport(ok=not missing, missing_fields=missing)


class IdentityProvider(Protocol):
    def authenticate(self, db: Session, token: str) -> Principal: ...

    def profile_complete(self, db: Session, principal_id: int) -> ProfileReport: ...


def create_token(user_id: int, role: str, secret_key: Optional[str] = None) -> str:
    """Issue a signed bearer token."""
    settings = get_settings()
    key = secret_key or settings.secret_key
    expire = datetime.now(timezone.utc) + timedelta(hours=settings.token_expire_hours)
    payload = {"sub": user_id, "role": role, "exp": expire.isoformat()}
    payload_b64 = base64.urlsafe_b64encode(json.dumps(payload).encode()).decode()
    signature = hmac.new(key.encode(), payload_b64.encode(), hashlib.sha256).hexdigest()
    return f"{payload_b64}.{signature}"


def decode_token(token: str, secret_key: Optional[str] = None) -> Optional[dict]:
    """Return the payload, or None for a malformed, forged or expired token."""
    key = secret_key or get_settings().secret_key
    parts = token.split(".")
    if len(parts) != 2:
        return None
    payload_b64, signature = parts
    expected_sig = hmac.new(key.encode(), payload_b64.encode(), hashlib.sha256).hexdigest()
    if not hmac.compare_digest(signature, expected_sig):
        return None
    try:
        payload = json.loads(base64.urlsafe_b64decode(payload_b64).decode())
        exp = datetime.fromisoformat(payload["exp"])
    except (ValueError, KeyError, TypeError):
        return None
    if datetime.now(timezone.utc) > exp:
        return None
    return payload


class TokenIdentityProvider:
    """Verifies HMAC bearer tokens and loads principals from ``users``."""

    def __init__(self, secret_key: Optional[str] = None):
        self.secret_key = secret_key

    def authenticate(self, db: Session, token: str) -> Principal:
        payload = decode_token(token, self.secret_key)
        if not payload or payload.get("sub") is None:
            logger.warning("Rejected bearer token")
            raise AuthorizationError("Invalid or expired token")
        user = db.get(User, payload["sub"])
        if user is None:
            raise AuthorizationError("Unknown principal")
        return Principal.from_user(user)

    def profile_complete(self, db: Session, principal_id: int) -> ProfileReport:
        user = db.get(User, principal_id)
        if user is None:
            raise NotFoundError("Principal", principal_id)
        return profile_report(user)
