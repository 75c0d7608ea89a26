import pytest

from thesisflow.errors import AuthorizationError
from thesisflow.models import Capability, Role
from thesisflow.services.identity import (
    Principal,
    TokenIdentityProvider,
    create_token,
    decode_token,
    profile_report,
)


def test_token_round_trip(make_user, session):
    user = make_user(Role.REVIEWER)
    token = create_token(user.id, user.role.value)
    assert decode_token(token)["sub"] == user.id

    principal = TokenIdentityProvider().authenticate(session, token)
    assert principal.id == user.id
    assert principal.role is Role.REVIEWER
    assert principal.can(Capability.REVIEW)
    assert not principal.can(Capability.ASSIGN)


def test_forged_token_is_rejected(make_user, session):
    user = make_user(Role.ADMIN)
    token = create_token(user.id, user.role.value, secret_key="other-key")
    assert decode_token(token) is None
    with pytest.raises(AuthorizationError):
        TokenIdentityProvider().authenticate(session, token)


def test_garbage_token():
    assert decode_token("not-a-token") is None
    assert decode_token("a.b.c") is None


def test_capabilities_follow_role(make_user):
    head = Principal.from_user(make_user(Role.HEAD_OF_DEPARTMENT))
    assert head.can(Capability.ASSIGN)
    assert head.can(Capability.DECIDE_ANY_TOPIC)
    with pytest.raises(AuthorizationError):
        head.require(Capability.OVERRIDE)


def test_profile_report_per_role(make_user):
    student = make_user(Role.STUDENT, complete=False)
    report = profile_report(student)
    assert not report.ok
    assert "faculty" in report.missing_fields
    assert "degree_level" in report.missing_fields

    reviewer = make_user(Role.REVIEWER, complete=False)
    assert profile_report(reviewer).missing_fields == ["institution", "positions"]

    dean = make_user(Role.DEAN)
    assert profile_report(dean).ok
