"""Bearer-token authentication and the current principal's profile."""

import logging
from typing import Callable, List, Optional, TypeVar

from fastapi import APIRouter, Depends, Header, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from thesisflow.db import get_db
from thesisflow.dependencies import get_identity_provider
from thesisflow.errors import AuthorizationError, ConflictError
from thesisflow.models import User
from thesisflow.schemas.thesis import PrincipalResponse
from thesisflow.services.identity import IdentityProvider, Principal

logger = logging.getLogger(__name__)

router = APIRouter()

T = TypeVar("T")


class ProfileResponse(BaseModel):
    principal: PrincipalResponse
    capabilities: List[str]
    profile_complete: bool
    missing_fields: List[str]


def get_current_principal(
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db),
    identity: IdentityProvider = Depends(get_identity_provider),
) -> Principal:
    """Resolve the bearer token to a principal."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if not authorization or not authorization.startswith("Bearer "):
        raise credentials_exception
    try:
        return identity.authenticate(db, authorization[7:])
    except AuthorizationError:
        raise credentials_exception from None


def with_conflict_retry(db: Session, action: Callable[[], T]) -> T:
    """Run ``action``; on a stale write, re-read once and try again."""
    try:
        return action()
    except ConflictError:
        logger.warning("Retrying after concurrent modification")
        db.expire_all()
        return action()


@router.get("/me", response_model=ProfileResponse)
def read_me(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    identity: IdentityProvider = Depends(get_identity_provider),
):
    user = db.get(User, principal.id)
    report = identity.profile_complete(db, principal.id)
    return ProfileResponse(
        principal=PrincipalResponse.model_validate(user),
        capabilities=sorted(c.value for c in principal.capabilities),
        profile_complete=report.ok,
        missing_fields=report.missing_fields,
    )
