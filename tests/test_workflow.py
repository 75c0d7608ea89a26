import pytest
from conftest import full_rubric

from thesisflow.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from thesisflow.models import (
    AssignmentEntry,
    CriterionLevel,
    FinalGrade,
    LedgerState,
    Role,
    RoleSlot,
    StageReview,
    ThesisStatus,
)
from thesisflow.schemas.assessment import CRITERIA_KEYS, Rubric
from thesisflow.services.identity import Principal


def submit(service, session, as_, title="Distributed Ledgers"):
    return service.submit_thesis(session, as_["student"], title, b"%PDF-1.4 thesis")


def assigned_thesis(service, session, as_, cast):
    submit(service, session, as_)
    return service.assign(session, as_["head"], cast["student"].id, RoleSlot.REVIEWER, cast["reviewer"].id)


def graded_thesis(service, session, as_, cast):
    thesis = assigned_thesis(service, session, as_, cast)
    return service.submit_review(
        session, as_["reviewer"], thesis.id, "Good (4)", rubric=full_rubric()
    )


# === submission ===

def test_submit_creates_thesis(service, session, as_):
    thesis = submit(service, session, as_)
    assert thesis.status is ThesisStatus.SUBMITTED
    assert thesis.version == 1
    assert thesis.plagiarism_max_attempts == 3
    assert thesis.current_iteration == 0
    assert service.store.fetch(thesis.file_ref) == b"%PDF-1.4 thesis"


def test_submit_requires_file_and_title(service, session, as_):
    with pytest.raises(ValidationError) as exc:
        service.submit_thesis(session, as_["student"], " ", b"")
    assert exc.value.missing_fields == ["title", "file"]


def test_submit_requires_complete_profile(service, session, make_user):
    student = Principal.from_user(make_user(Role.STUDENT, complete=False))
    with pytest.raises(ValidationError) as exc:
        service.submit_thesis(session, student, "Title", b"data")
    assert exc.value.details["guard"] == "profile_incomplete"
    assert "profile.faculty" in exc.value.missing_fields


def test_reupload_replaces_file_only_while_submitted(service, session, as_, cast):
    first = submit(service, session, as_)
    old_ref = first.file_ref
    second = service.submit_thesis(session, as_["student"], "New title", b"v2")
    assert second.id == first.id
    assert second.file_ref != old_ref
    assert second.title == "New title"
    assert second.version == 2

    service.assign(session, as_["head"], cast["student"].id, RoleSlot.REVIEWER, cast["reviewer"].id)
    with pytest.raises(ValidationError) as exc:
        service.submit_thesis(session, as_["student"], "Again", b"v3")
    assert exc.value.details["guard"] == "status"


def test_reviewer_cannot_submit_thesis(service, session, as_):
    with pytest.raises(AuthorizationError):
        service.submit_thesis(session, as_["reviewer"], "Title", b"data")


# === rubric & grading ===

def test_seven_of_eight_criteria_keeps_grade_locked(service, session, as_, cast):
    thesis = assigned_thesis(service, session, as_, cast)
    section_one = {key: CriterionLevel.AVERAGE.value for key in CRITERIA_KEYS}
    del section_one["research_findings_integration"]
    rubric = full_rubric(section_one=section_one)

    with pytest.raises(ValidationError) as exc:
        service.save_draft(session, as_["reviewer"], thesis.id, rubric, final_grade="Good (4)")
    assert exc.value.details["guard"] == "grade_locked"
    assert exc.value.missing_fields == ["section_one.research_findings_integration", "final_grade"]

    with pytest.raises(ValidationError):
        service.submit_review(session, as_["reviewer"], thesis.id, "Good (4)", rubric=rubric)

    thesis = service.get_thesis(session, as_["reviewer"], thesis.id)
    assert thesis.final_grade is None
    assert thesis.status is ThesisStatus.ASSIGNED


def test_draft_without_grade_moves_to_under_review(service, session, as_, cast):
    thesis = assigned_thesis(service, session, as_, cast)
    rubric = full_rubric(section_one={"topic_correspondence": "high"})
    thesis = service.save_draft(session, as_["reviewer"], thesis.id, rubric)
    assert thesis.status is ThesisStatus.UNDER_REVIEW
    assert thesis.final_grade is None

    view = service.open_rubric(session, as_["reviewer"], thesis.id)
    assert not view.can_select_grade
    assert "section_one.research_value" in view.missing_fields


def test_off_scale_grade_is_rejected(service, session, as_, cast):
    thesis = assigned_thesis(service, session, as_, cast)
    with pytest.raises(ValidationError) as exc:
        service.save_draft(session, as_["reviewer"], thesis.id, full_rubric(), final_grade="A+")
    assert exc.value.details["guard"] == "grade_scale"


def test_submit_review_then_sign(service, session, as_, cast):
    thesis = graded_thesis(service, session, as_, cast)
    assert thesis.status is ThesisStatus.GRADED_PENDING_SIGNATURE
    assert thesis.final_grade is FinalGrade.GOOD
    assert thesis.review_document_ref is not None
    sheet = service.review_document(session, as_["reviewer"], thesis.id)
    assert sheet.startswith(b"%PDF")
    assert b"Final grade: Good" in sheet
    assert thesis.review_document_ref.endswith(".pdf")

    completed = service.get_completed(session, as_["reviewer"], cast["reviewer"].id)
    assert [e.thesis_id for e in completed] == [thesis.id]

    thesis = service.upload_signed_review(
        session,
        as_["reviewer"],
        thesis.id,
        iteration=1,
        data=b"signed bytes",
        document_ref=thesis.review_document_ref,
    )
    assert thesis.status is ThesisStatus.EVALUATED
    assert thesis.signed_review_ref is not None
    assert thesis.signed_at is not None
    assert service.signed_review(session, as_["student"], thesis.id) == b"signed bytes"


def test_submit_review_uses_saved_draft(service, session, as_, cast):
    thesis = assigned_thesis(service, session, as_, cast)
    service.save_draft(session, as_["reviewer"], thesis.id, full_rubric(), final_grade="Excellent (5A)")
    thesis = service.submit_review(session, as_["reviewer"], thesis.id)
    assert thesis.final_grade is FinalGrade.EXCELLENT_5A


def test_submit_review_requires_grade(service, session, as_, cast):
    thesis = assigned_thesis(service, session, as_, cast)
    with pytest.raises(ValidationError) as exc:
        service.submit_review(session, as_["reviewer"], thesis.id, rubric=full_rubric())
    assert exc.value.details["guard"] == "grade_required"


def test_reviewer_profile_must_be_complete(service, session, as_, cast, make_user):
    reviewer = make_user(Role.REVIEWER, complete=False)
    submit(service, session, as_)
    thesis = service.assign(session, as_["head"], cast["student"].id, RoleSlot.REVIEWER, reviewer.id)
    with pytest.raises(ValidationError) as exc:
        service.submit_review(
            session, Principal.from_user(reviewer), thesis.id, "Good (4)", rubric=full_rubric()
        )
    assert exc.value.details["guard"] == "profile_incomplete"
    assert service.get_thesis(session, as_["admin"], thesis.id).final_grade is None


def test_only_assigned_reviewer_grades(service, session, as_, cast, make_user):
    thesis = assigned_thesis(service, session, as_, cast)
    other = Principal.from_user(make_user(Role.REVIEWER))
    with pytest.raises(AuthorizationError):
        service.save_draft(session, other, thesis.id, full_rubric())
    with pytest.raises(AuthorizationError):
        service.save_draft(session, as_["student"], thesis.id, full_rubric())


# === signing ===

def test_signed_upload_checks_iteration(service, session, as_, cast):
    thesis = graded_thesis(service, session, as_, cast)
    with pytest.raises(ValidationError) as exc:
        service.upload_signed_review(session, as_["reviewer"], thesis.id, iteration=2, data=b"x")
    assert exc.value.details["guard"] == "iteration_mismatch"
    assert service.get_thesis(session, as_["admin"], thesis.id).status is ThesisStatus.GRADED_PENDING_SIGNATURE


def test_signed_upload_checks_document_and_bytes(service, session, as_, cast):
    thesis = graded_thesis(service, session, as_, cast)
    with pytest.raises(ValidationError) as exc:
        service.upload_signed_review(
            session, as_["reviewer"], thesis.id, iteration=1, data=b"x", document_ref="reviews/other.txt"
        )
    assert exc.value.details["guard"] == "document_mismatch"
    with pytest.raises(ValidationError) as exc:
        service.upload_signed_review(session, as_["reviewer"], thesis.id, iteration=1, data=b"")
    assert exc.value.missing_fields == ["file"]


def test_signed_upload_before_grading(service, session, as_, cast):
    thesis = assigned_thesis(service, session, as_, cast)
    with pytest.raises(ValidationError):
        service.upload_signed_review(session, as_["reviewer"], thesis.id, iteration=1, data=b"x")


def test_admin_can_upload_signed_review(service, session, as_, cast):
    thesis = graded_thesis(service, session, as_, cast)
    thesis = service.upload_signed_review(session, as_["admin"], thesis.id, iteration=1, data=b"signed")
    assert thesis.status is ThesisStatus.EVALUATED


def test_signed_review_hidden_until_evaluated(service, session, as_, cast):
    thesis = graded_thesis(service, session, as_, cast)
    with pytest.raises(NotFoundError):
        service.signed_review(session, as_["student"], thesis.id)


# === re-review ===

def test_re_review_appends_exactly_one_snapshot(service, session, as_, cast):
    thesis = graded_thesis(service, session, as_, cast)
    thesis = service.upload_signed_review(session, as_["reviewer"], thesis.id, iteration=1, data=b"s")

    thesis = service.re_review(session, as_["reviewer"], thesis.id)
    assert thesis.status is ThesisStatus.ASSIGNED
    assert thesis.assessment_json is None
    assert thesis.final_grade is None
    assert thesis.review_document_ref is None
    assert thesis.signed_review_ref is None
    assert thesis.current_iteration == 2
    assert len(thesis.review_iterations_json) == 1
    snapshot = thesis.review_iterations_json[0]
    assert snapshot["event"] == "re_review"
    assert snapshot["iteration"] == 1
    assert snapshot["final_grade"] == "Good (4)"
    assert snapshot["signed_review_ref"] is not None

    with pytest.raises(ValidationError):
        service.re_review(session, as_["reviewer"], thesis.id)
    thesis = service.get_thesis(session, as_["admin"], thesis.id)
    assert len(thesis.review_iterations_json) == 1

    active = service.get_assigned(session, as_["reviewer"], cast["reviewer"].id)
    assert [e.thesis_id for e in active] == [thesis.id]


def test_stale_expected_version_conflicts(service, session, as_, cast):
    thesis = assigned_thesis(service, session, as_, cast)
    seen = thesis.version
    service.save_draft(session, as_["reviewer"], thesis.id, full_rubric(), expected_version=seen)
    with pytest.raises(ConflictError):
        service.save_draft(session, as_["reviewer"], thesis.id, full_rubric(), expected_version=seen)


def test_evaluated_rejects_everything_but_re_review(service, session, as_, cast, make_user):
    thesis = graded_thesis(service, session, as_, cast)
    thesis = service.upload_signed_review(session, as_["reviewer"], thesis.id, iteration=1, data=b"s")
    with pytest.raises(ValidationError):
        service.request_revisions(session, as_["reviewer"], thesis.id, "Fix it")
    with pytest.raises(ValidationError):
        service.save_draft(session, as_["reviewer"], thesis.id, full_rubric())
    replacement = make_user(Role.REVIEWER)
    with pytest.raises(ValidationError) as exc:
        service.reassign(session, as_["head"], cast["student"].id, RoleSlot.REVIEWER, replacement.id)
    assert exc.value.details["guard"] == "status"


# === revision loop ===

def test_revisions_and_resubmit_restore_stage(service, session, as_, cast, oracle):
    thesis = submit(service, session, as_)
    thesis = service.assign(session, as_["head"], cast["student"].id, RoleSlot.CONSULTANT, cast["consultant"].id)
    assert thesis.status is ThesisStatus.WITH_CONSULTANT
    assert thesis.current_iteration == 1
    assert thesis.total_review_count == 1

    with pytest.raises(ValidationError):
        service.request_revisions(session, as_["consultant"], thesis.id, "   ")

    thesis = service.request_revisions(session, as_["consultant"], thesis.id, "Expand chapter 2")
    assert thesis.status is ThesisStatus.REVISIONS_REQUESTED
    assert thesis.status_before_revision is ThesisStatus.WITH_CONSULTANT
    assert thesis.revision_comment == "Expand chapter 2"
    assert thesis.review_iterations_json[-1]["comment"] == "Expand chapter 2"

    with pytest.raises(ValidationError):
        service.resubmit(session, as_["student"], thesis.id, b"")
    thesis = service.resubmit(session, as_["student"], thesis.id, b"revised")
    assert thesis.status is ThesisStatus.WITH_CONSULTANT
    assert thesis.status_before_revision is None
    assert thesis.current_iteration == 2
    assert thesis.total_review_count == 2
    assert service.store.fetch(thesis.file_ref) == b"revised"


def test_reviewer_revisions_discard_draft(service, session, as_, cast):
    thesis = assigned_thesis(service, session, as_, cast)
    service.save_draft(session, as_["reviewer"], thesis.id, full_rubric(), final_grade="Good (4)")
    thesis = service.request_revisions(session, as_["reviewer"], thesis.id, "Rework conclusions")
    assert thesis.assessment_json is None
    assert thesis.final_grade is None
    assert thesis.review_iterations_json[-1]["final_grade"] == "Good (4)"

    thesis = service.resubmit(session, as_["student"], thesis.id, b"v2")
    assert thesis.status is ThesisStatus.UNDER_REVIEW


def test_only_stage_owner_requests_revisions(service, session, as_, cast):
    thesis = assigned_thesis(service, session, as_, cast)
    with pytest.raises(AuthorizationError):
        service.request_revisions(session, as_["consultant"], thesis.id, "No")
    with pytest.raises(AuthorizationError):
        service.resubmit(session, as_["reviewer"], thesis.id, b"x")


# === team stage ===

def test_team_stage_to_reviewer(service, session, as_, cast, oracle):
    student_id = cast["student"].id
    thesis = submit(service, session, as_)
    service.assign(session, as_["head"], student_id, RoleSlot.CONSULTANT, cast["consultant"].id)
    thesis = service.assign(session, as_["head"], student_id, RoleSlot.SUPERVISOR, cast["supervisor"].id)
    assert thesis.status is ThesisStatus.WITH_CONSULTANT

    thesis = service.approve_stage(session, as_["consultant"], thesis.id)
    assert thesis.status is ThesisStatus.WITH_SUPERVISOR

    with pytest.raises(ValidationError) as exc:
        service.approve_stage(session, as_["supervisor"], thesis.id)
    assert exc.value.details["guard"] == "plagiarism_not_approved"

    with pytest.raises(ValidationError):
        service.assign(session, as_["head"], student_id, RoleSlot.REVIEWER, cast["reviewer"].id)

    oracle.queue(4.0)
    service.check_plagiarism(session, as_["student"], thesis.id)
    with pytest.raises(ValidationError) as exc:
        service.approve_stage(session, as_["supervisor"], thesis.id)
    assert exc.value.details["guard"] == "consultant_unsigned"

    service.upload_signed_stage_review(
        session, as_["consultant"], thesis.id, RoleSlot.CONSULTANT, 1, b"consultant signed"
    )
    thesis = service.approve_stage(session, as_["supervisor"], thesis.id)
    assert thesis.supervisor_approved is True
    assert thesis.status is ThesisStatus.WITH_SUPERVISOR

    with pytest.raises(ValidationError) as exc:
        service.assign(session, as_["head"], student_id, RoleSlot.REVIEWER, cast["reviewer"].id)
    assert exc.value.details["guard"] == "supervisor_unsigned"

    service.upload_signed_stage_review(
        session, as_["supervisor"], thesis.id, RoleSlot.SUPERVISOR, 1, b"supervisor signed"
    )
    thesis = service.assign(session, as_["head"], student_id, RoleSlot.REVIEWER, cast["reviewer"].id)
    assert thesis.status is ThesisStatus.ASSIGNED
    done = service.get_completed(session, as_["supervisor"], cast["supervisor"].id)
    assert [e.role_slot for e in done] == [RoleSlot.SUPERVISOR]


def supervised_thesis(service, session, as_, cast, oracle):
    thesis = submit(service, session, as_)
    service.assign(session, as_["head"], cast["student"].id, RoleSlot.SUPERVISOR, cast["supervisor"].id)
    oracle.queue(4.0)
    return service.check_plagiarism(session, as_["student"], thesis.id)


def test_resubmit_puts_thesis_back_on_owner_list(service, session, as_, cast, oracle):
    supervisor_id = cast["supervisor"].id
    thesis = supervised_thesis(service, session, as_, cast, oracle)
    service.approve_stage(session, as_["supervisor"], thesis.id)
    assert service.get_assigned(session, as_["supervisor"], supervisor_id) == []

    service.request_revisions(session, as_["supervisor"], thesis.id, "Tighten the abstract")
    thesis = service.resubmit(session, as_["student"], thesis.id, b"v2")
    assert thesis.status is ThesisStatus.WITH_SUPERVISOR
    assert thesis.supervisor_approved is False

    active = service.get_assigned(session, as_["supervisor"], supervisor_id)
    assert [(e.thesis_id, e.role_slot) for e in active] == [(thesis.id, RoleSlot.SUPERVISOR)]
    assert service.get_completed(session, as_["supervisor"], supervisor_id) == []


def test_resubmit_keeps_active_row_untouched(service, session, as_, cast):
    thesis = assigned_thesis(service, session, as_, cast)
    before = service.get_assigned(session, as_["reviewer"], cast["reviewer"].id)[0].assigned_at
    service.request_revisions(session, as_["reviewer"], thesis.id, "Fix figures")
    service.resubmit(session, as_["student"], thesis.id, b"v2")
    rows = session.query(AssignmentEntry).filter(AssignmentEntry.thesis_id == thesis.id).all()
    assert [(r.state, r.assigned_at) for r in rows] == [(LedgerState.ACTIVE, before)]


def test_team_approval_renders_signable_sheet(service, session, as_, cast, oracle):
    thesis = supervised_thesis(service, session, as_, cast, oracle)
    thesis = service.approve_stage(
        session, as_["supervisor"], thesis.id, comments="  Solid method  ", rubric=full_rubric()
    )
    [review] = thesis.stage_reviews
    assert review.role_slot is RoleSlot.SUPERVISOR
    assert review.iteration == 1
    assert review.comments == "Solid method"
    assert review.assessment_json["section_one"]["research_value"] == "high"
    assert review.signed_ref is None

    sheet = service.stage_document(session, as_["supervisor"], thesis.id, RoleSlot.SUPERVISOR)
    assert sheet.startswith(b"%PDF")
    assert b"SUPERVISOR REVIEW" in sheet
    assert b"Solid method" in sheet
    with pytest.raises(NotFoundError):
        service.signed_stage_review(session, as_["student"], thesis.id, RoleSlot.SUPERVISOR)


def test_team_approval_rejects_partial_rubric(service, session, as_, cast, oracle):
    thesis = supervised_thesis(service, session, as_, cast, oracle)
    with pytest.raises(ValidationError) as exc:
        service.approve_stage(session, as_["supervisor"], thesis.id, rubric=Rubric())
    assert exc.value.details["guard"] == "rubric_incomplete"
    assert session.query(StageReview).count() == 0


def test_signed_stage_upload_guards(service, session, as_, cast, oracle):
    thesis = supervised_thesis(service, session, as_, cast, oracle)
    service.approve_stage(session, as_["supervisor"], thesis.id)
    upload = service.upload_signed_stage_review

    with pytest.raises(ValidationError) as exc:
        upload(session, as_["supervisor"], thesis.id, RoleSlot.SUPERVISOR, 2, b"signed")
    assert exc.value.details["guard"] == "iteration_mismatch"
    with pytest.raises(ValidationError) as exc:
        upload(session, as_["supervisor"], thesis.id, RoleSlot.SUPERVISOR, 1, b"")
    assert exc.value.details["guard"] == "file_missing"
    with pytest.raises(AuthorizationError):
        upload(session, as_["consultant"], thesis.id, RoleSlot.SUPERVISOR, 1, b"signed")
    with pytest.raises(NotFoundError):
        upload(session, as_["consultant"], thesis.id, RoleSlot.CONSULTANT, 1, b"signed")

    review = upload(session, as_["admin"], thesis.id, RoleSlot.SUPERVISOR, 1, b"signed")
    assert review.signed_at is not None
    with pytest.raises(ValidationError) as exc:
        upload(session, as_["supervisor"], thesis.id, RoleSlot.SUPERVISOR, 1, b"again")
    assert exc.value.details["guard"] == "already_signed"
    assert service.signed_stage_review(session, as_["student"], thesis.id, RoleSlot.SUPERVISOR) == b"signed"


def test_reapproval_after_reassignment_replaces_sheet(service, session, as_, cast, oracle, make_user):
    thesis = supervised_thesis(service, session, as_, cast, oracle)
    service.approve_stage(session, as_["supervisor"], thesis.id)
    service.upload_signed_stage_review(session, as_["supervisor"], thesis.id, RoleSlot.SUPERVISOR, 1, b"s1")

    other = make_user(Role.SUPERVISOR)
    service.reassign(session, as_["head"], cast["student"].id, RoleSlot.SUPERVISOR, other.id)
    thesis = service.approve_stage(session, Principal.from_user(other), thesis.id)
    [review] = thesis.stage_reviews
    assert review.principal_id == other.id
    assert review.signed_ref is None
    assert cast["student"].supervisor_id == other.id


def test_consultant_approval_needs_supervisor(service, session, as_, cast):
    thesis = submit(service, session, as_)
    service.assign(session, as_["head"], cast["student"].id, RoleSlot.CONSULTANT, cast["consultant"].id)
    with pytest.raises(ValidationError) as exc:
        service.approve_stage(session, as_["consultant"], thesis.id)
    assert exc.value.missing_fields == ["assigned_supervisor_id"]


# === topics ===

def test_topic_approval(service, session, as_, cast):
    with pytest.raises(ValidationError):
        service.submit_topic(session, as_["student"], "")
    student = service.submit_topic(session, as_["student"], "Consensus in sensor networks")
    assert student.is_topic_approved is None

    with pytest.raises(ValidationError) as exc:
        service.review_topic(session, as_["head"], student.id, approved=False)
    assert exc.value.missing_fields == ["comments"]

    student = service.review_topic(session, as_["head"], student.id, approved=False, comments="Too broad")
    assert student.is_topic_approved is False
    assert student.topic_rejection_comments == "Too broad"

    service.submit_topic(session, as_["student"], "Consensus in small sensor networks")
    student = service.review_topic(session, as_["head"], student.id, approved=True)
    assert student.is_topic_approved is True

    with pytest.raises(ValidationError):
        service.submit_topic(session, as_["student"], "Something else")


def test_supervisor_decides_only_own_students(service, session, as_, cast):
    service.submit_topic(session, as_["student"], "Topic")
    with pytest.raises(AuthorizationError):
        service.review_topic(session, as_["supervisor"], cast["student"].id, approved=True)

    submit(service, session, as_)
    service.assign(session, as_["head"], cast["student"].id, RoleSlot.SUPERVISOR, cast["supervisor"].id)
    student = service.review_topic(session, as_["supervisor"], cast["student"].id, approved=True)
    assert student.is_topic_approved is True


# === administration ===

def test_approve_principal_and_listings(service, session, as_, cast, make_user):
    pending = make_user(Role.REVIEWER, approved=False)
    user = service.approve_principal(session, as_["admin"], pending.id)
    assert user.is_approved is True
    with pytest.raises(AuthorizationError):
        service.approve_principal(session, as_["head"], pending.id)

    thesis = submit(service, session, as_)
    assert [t.id for t in service.list_unassigned(session, as_["head"])] == [thesis.id]
    assert service.list_theses(session, as_["admin"], ThesisStatus.ASSIGNED) == []
    with pytest.raises(AuthorizationError):
        service.list_theses(session, as_["student"])


def test_ledger_entries_are_private(service, session, as_, cast):
    with pytest.raises(AuthorizationError):
        service.get_assigned(session, as_["student"], cast["reviewer"].id)
    assert service.get_assigned(session, as_["admin"], cast["reviewer"].id) == []


def test_ledger_rows_track_state(service, session, as_, cast):
    thesis = graded_thesis(service, session, as_, cast)
    rows = session.query(AssignmentEntry).filter(AssignmentEntry.thesis_id == thesis.id).all()
    assert len(rows) == 1
    assert rows[0].state is LedgerState.COMPLETED
    assert rows[0].completed_at is not None


def test_ledger_stats_count_rows_by_state(service, session, as_, cast):
    graded_thesis(service, session, as_, cast)
    stats = service.ledger_stats(session, as_["reviewer"], cast["reviewer"].id)
    assert (stats.assigned, stats.completed, stats.total) == (0, 1, 1)

    service.re_review(session, as_["admin"], session.query(AssignmentEntry).one().thesis_id)
    stats = service.ledger_stats(session, as_["admin"], cast["reviewer"].id)
    assert (stats.assigned, stats.completed, stats.total) == (1, 0, 1)

    with pytest.raises(AuthorizationError):
        service.ledger_stats(session, as_["student"], cast["reviewer"].id)
