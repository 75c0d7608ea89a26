import pytest

from thesisflow.errors import AuthorizationError, NotFoundError, ValidationError
from thesisflow.models import AssignmentEntry, LedgerState, RequestStatus, Role, RoleSlot, ThesisStatus
from thesisflow.services.identity import Principal


@pytest.fixture
def mentors(make_user):
    return [make_user(Role.SUPERVISOR, faculty="Computer Science") for _ in range(2)]


def ask(service, session, as_, supervisor, message="Please supervise me"):
    return service.supervision.request_supervisor(session, as_["student"], supervisor.id, message)


def answer(service, session, supervisor, request, accept=True, reason=None):
    return service.supervision.respond(
        session, Principal.from_user(supervisor), request.id, accept=accept, decline_reason=reason
    )


def test_accept_links_student_and_cancels_other_requests(service, session, as_, cast, mentors):
    first = ask(service, session, as_, mentors[0])
    second = ask(service, session, as_, mentors[1])
    assert first.status is RequestStatus.PENDING
    assert first.faculty == "Computer Science"

    accepted = answer(service, session, mentors[0], first)
    assert accepted.status is RequestStatus.ACCEPTED
    assert cast["student"].supervisor_id == mentors[0].id

    session.refresh(second)
    assert second.status is RequestStatus.CANCELLED

    stats = service.supervision.stats(session, Principal.from_user(mentors[0]))
    assert (stats.pending_requests, stats.current_students) == (0, 1)


def test_accept_binds_existing_thesis(service, session, as_, cast, mentors):
    thesis = service.submit_thesis(session, as_["student"], "Graph Sketches", b"pdf")
    answer(service, session, mentors[0], ask(service, session, as_, mentors[0]))

    session.refresh(thesis)
    assert thesis.status is ThesisStatus.WITH_SUPERVISOR
    assert thesis.assigned_supervisor_id == mentors[0].id
    assert thesis.current_iteration == 1
    entry = session.query(AssignmentEntry).filter_by(thesis_id=thesis.id).one()
    assert (entry.principal_id, entry.role_slot, entry.state) == (
        mentors[0].id,
        RoleSlot.SUPERVISOR,
        LedgerState.ACTIVE,
    )


def test_first_submission_binds_accepted_supervisor(service, session, as_, mentors):
    answer(service, session, mentors[0], ask(service, session, as_, mentors[0]))
    thesis = service.submit_thesis(session, as_["student"], "Graph Sketches", b"pdf")
    assert thesis.status is ThesisStatus.WITH_SUPERVISOR
    assert thesis.assigned_supervisor_id == mentors[0].id
    assert thesis.total_review_count == 1

    active = service.get_assigned(session, Principal.from_user(mentors[0]), mentors[0].id)
    assert [e.thesis_id for e in active] == [thesis.id]


def test_request_guards(service, session, as_, cast, make_user, mentors):
    physicist = make_user(Role.SUPERVISOR, faculty="Physics")
    with pytest.raises(ValidationError) as exc:
        ask(service, session, as_, physicist)
    assert exc.value.details["guard"] == "faculty_mismatch"

    with pytest.raises(NotFoundError):
        ask(service, session, as_, cast["reviewer"])

    ask(service, session, as_, mentors[0])
    with pytest.raises(ValidationError) as exc:
        ask(service, session, as_, mentors[0])
    assert exc.value.details["guard"] == "duplicate_request"

    with pytest.raises(AuthorizationError):
        service.supervision.request_supervisor(session, as_["reviewer"], mentors[0].id)


def test_student_with_supervisor_cannot_ask_again(service, session, as_, mentors):
    answer(service, session, mentors[0], ask(service, session, as_, mentors[0]))
    with pytest.raises(ValidationError) as exc:
        ask(service, session, as_, mentors[1])
    assert exc.value.details["guard"] == "supervisor_already_assigned"


def test_decline_needs_reason(service, session, as_, mentors):
    request = ask(service, session, as_, mentors[0])
    with pytest.raises(ValidationError) as exc:
        answer(service, session, mentors[0], request, accept=False, reason="  ")
    assert exc.value.missing_fields == ["decline_reason"]

    declined = answer(service, session, mentors[0], request, accept=False, reason="Group is full")
    assert declined.status is RequestStatus.DECLINED
    assert declined.decline_reason == "Group is full"

    with pytest.raises(ValidationError) as exc:
        answer(service, session, mentors[0], request)
    assert exc.value.details["guard"] == "request_closed"


def test_only_addressee_answers_and_only_author_cancels(service, session, as_, mentors):
    request = ask(service, session, as_, mentors[0])
    with pytest.raises(AuthorizationError):
        answer(service, session, mentors[1], request)
    with pytest.raises(AuthorizationError):
        service.supervision.cancel(session, Principal.from_user(mentors[0]), request.id)

    cancelled = service.supervision.cancel(session, as_["student"], request.id)
    assert cancelled.status is RequestStatus.CANCELLED
    with pytest.raises(ValidationError):
        service.supervision.cancel(session, as_["student"], request.id)


def test_accept_after_admin_assignment_cancels_request(service, session, as_, cast, mentors):
    request = ask(service, session, as_, mentors[0])
    service.submit_thesis(session, as_["student"], "Graph Sketches", b"pdf")
    service.assign(session, as_["head"], cast["student"].id, RoleSlot.SUPERVISOR, mentors[1].id)

    with pytest.raises(ValidationError) as exc:
        answer(service, session, mentors[0], request)
    assert exc.value.details["current_supervisor_id"] == mentors[1].id
    session.refresh(request)
    assert request.status is RequestStatus.CANCELLED


def test_listings_and_available_supervisors(service, session, as_, mentors):
    request = ask(service, session, as_, mentors[0])

    faculty, rows = service.supervision.available_supervisors(session, as_["student"])
    assert faculty == "Computer Science"
    statuses = {supervisor.id: (r.status if r else None) for supervisor, r in rows}
    assert statuses == {mentors[0].id: RequestStatus.PENDING, mentors[1].id: None}

    mine = service.supervision.list_requests(session, as_["student"])
    assert [r.id for r in mine] == [request.id]
    inbox = service.supervision.list_requests(session, Principal.from_user(mentors[1]))
    assert inbox == []
    with pytest.raises(AuthorizationError):
        service.supervision.list_requests(session, as_["reviewer"])
