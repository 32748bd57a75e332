import re

import pytest

from cadastre.errors import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    InvalidStateTransition,
    PreconditionNotMet,
    ValidationError,
)
from cadastre.service import service


def _steps(job: dict) -> dict[str, dict]:
    return {s["step_name"]: s for s in job["workflow_steps"]}


def test_submit_creates_job_with_seven_steps(submitted_job):
    assert submitted_job["status"] == "SUBMITTED"
    assert re.fullmatch(r"JOB-\d{4}-001", submitted_job["job_number"])
    assert [s["step_name"] for s in submitted_job["workflow_steps"]] == [
        "Submitted",
        "NIS Review",
        "Admin Review",
        "Pillar Number Assignment",
        "Blue Copy Upload",
        "R of O Document Upload",
        "Completed",
    ]
    steps = _steps(submitted_job)
    assert steps["Submitted"]["status"] == "COMPLETED"
    assert steps["Submitted"]["completed_at"] is not None
    assert all(s["status"] == "PENDING" for name, s in steps.items() if name != "Submitted")
    assert submitted_job["pillar_numbers"] == []


def test_job_numbers_are_sequential(verified_surveyor, surveyor_actor, make_job_payload):
    first = service.submit_job(surveyor_actor, make_job_payload())
    second = service.submit_job(surveyor_actor, make_job_payload())
    assert first["job_number"].endswith("-001")
    assert second["job_number"].endswith("-002")


def test_full_approval_issues_sequential_pillar_numbers(job_in_admin_review, admin_actor):
    steps = _steps(job_in_admin_review)
    assert job_in_admin_review["status"] == "ADMIN_REVIEW"
    assert steps["NIS Review"]["status"] == "COMPLETED"
    assert steps["Admin Review"]["status"] == "IN_PROGRESS"

    approved = service.admin_approve(
        admin_actor,
        job_in_admin_review["job_id"],
        plan_number="PLAN/2026/001",
        coordinate_count=2,
    )

    assert approved["status"] == "COMPLETED"
    assert approved["plan_number"] == "PLAN/2026/001"
    assert approved["date_approved"] is not None
    assert [p["pillar_number"] for p in approved["pillar_numbers"]] == ["SC/CN 1", "SC/CN 2"]
    assert approved["pillar_numbers"][0]["coordinates"] == {"easting": "288456.789", "northing": "532123.456"}
    assert service.allocator.last_issued("SC/CN") == 2

    steps = _steps(approved)
    assert steps["Admin Review"]["status"] == "COMPLETED"
    assert steps["Pillar Number Assignment"]["status"] == "COMPLETED"
    assert "SC/CN 1, SC/CN 2" in steps["Pillar Number Assignment"]["notes"]
    assert steps["Blue Copy Upload"]["status"] == "IN_PROGRESS"
    assert steps["R of O Document Upload"]["status"] == "PENDING"


def test_second_admin_approval_is_rejected_without_new_numbers(job_in_admin_review, admin_actor):
    job_id = job_in_admin_review["job_id"]
    service.admin_approve(admin_actor, job_id, plan_number="PLAN-1", coordinate_count=2)

    with pytest.raises(InvalidStateTransition) as exc:
        service.admin_approve(admin_actor, job_id, plan_number="PLAN-1", coordinate_count=2)

    assert exc.value.http_status == 409
    assert exc.value.details["current_status"] == "COMPLETED"
    assert service.allocator.last_issued("SC/CN") == 2
    assert len(service.get_job(job_id)["pillar_numbers"]) == 2


def test_admin_cannot_approve_before_nis(submitted_job, admin_actor):
    with pytest.raises(InvalidStateTransition):
        service.admin_approve(admin_actor, submitted_job["job_id"], plan_number="P-1", coordinate_count=2)
    assert service.allocator.last_issued("SC/CN") == 0


def test_nis_rejection_is_terminal(submitted_job, nis_actor):
    job_id = submitted_job["job_id"]
    rejected = service.nis_reject(nis_actor, job_id, "Boundary sketch missing")

    assert rejected["status"] == "NIS_REJECTED"
    assert rejected["rejection_reason"] == "Boundary sketch missing"
    assert _steps(rejected)["NIS Review"]["status"] == "REJECTED"
    with pytest.raises(InvalidStateTransition):
        service.nis_approve(nis_actor, job_id)


def test_admin_rejection(job_in_admin_review, admin_actor):
    rejected = service.admin_reject(admin_actor, job_in_admin_review["job_id"], "Plan number already in use")
    assert rejected["status"] == "ADMIN_REJECTED"
    assert _steps(rejected)["Admin Review"]["status"] == "REJECTED"
    assert rejected["pillar_numbers"] == []


def test_rejection_requires_reason(submitted_job, nis_actor):
    with pytest.raises(ValidationError) as exc:
        service.nis_reject(nis_actor, submitted_job["job_id"], "   ")
    assert exc.value.code == "REJECTION_REASON_REQUIRED"
    assert service.get_job(submitted_job["job_id"])["status"] == "SUBMITTED"


def test_wrong_role_is_forbidden_before_state_is_read(submitted_job, surveyor_actor, admin_actor):
    with pytest.raises(AuthorizationError):
        service.nis_approve(surveyor_actor, submitted_job["job_id"])
    with pytest.raises(AuthorizationError):
        service.nis_approve(admin_actor, "job_does_not_exist")
    with pytest.raises(AuthenticationError):
        service.nis_approve(None, submitted_job["job_id"])
    assert service.get_job(submitted_job["job_id"])["status"] == "SUBMITTED"


def test_unverified_surveyor_cannot_submit(surveyor_actor, make_registration, make_job_payload):
    with pytest.raises(PreconditionNotMet) as exc:
        service.submit_job(surveyor_actor, make_job_payload())
    assert exc.value.code == "SURVEYOR_PROFILE_NOT_FOUND"

    service.register_surveyor(surveyor_actor, make_registration())
    with pytest.raises(PreconditionNotMet) as exc:
        service.submit_job(surveyor_actor, make_job_payload())
    assert exc.value.code == "SURVEYOR_NOT_VERIFIED"
    assert service.store.jobs == {}


def test_required_pillar_count_must_match_coordinates(verified_surveyor, surveyor_actor, make_job_payload):
    with pytest.raises(ValidationError) as exc:
        service.submit_job(surveyor_actor, make_job_payload(pillar_numbers_required=3))
    assert exc.value.code == "PILLAR_COUNT_MISMATCH"
    assert service.store.jobs == {}


def test_submission_is_capped_at_one_allocation_batch(verified_surveyor, surveyor_actor, make_job_payload):
    limit = service.settings.max_allocation_batch
    too_many = [{"easting": str(300000 + 10 * i), "northing": "700000"} for i in range(limit + 1)]
    with pytest.raises(ValidationError) as exc:
        service.submit_job(surveyor_actor, make_job_payload(coordinates=too_many))
    assert exc.value.code == "PILLAR_COUNT_TOO_LARGE"

    with pytest.raises(ValidationError) as exc:
        service.submit_job(surveyor_actor, make_job_payload(coordinates=[], pillar_numbers_required=limit + 1))
    assert exc.value.code == "PILLAR_COUNT_TOO_LARGE"
    assert service.store.jobs == {}
    assert service.store.job_sequences == {}

    at_limit = service.submit_job(surveyor_actor, make_job_payload(coordinates=too_many[:limit]))
    assert at_limit["pillar_numbers_required"] == limit


def test_job_numbers_are_independent_of_pillar_series(
    verified_surveyor, surveyor_actor, admin_actor, make_job_payload
):
    first = service.submit_job(surveyor_actor, make_job_payload())
    job_series = first["job_number"].rsplit("-", 1)[0]

    allocated = service.allocate_pillar_numbers(admin_actor, job_series, 3)
    assert allocated["pillar_numbers"] == [f"{job_series} 1", f"{job_series} 2", f"{job_series} 3"]

    second = service.submit_job(surveyor_actor, make_job_payload())
    assert second["job_number"] == f"{job_series}-002"
    assert service.store.job_sequences_repository.get(series_prefix=job_series)["last_issued_number"] == 2
    assert service.allocator.last_issued(job_series) == 3


def test_admin_count_must_match_recorded_coordinates(job_in_admin_review, admin_actor):
    with pytest.raises(ValidationError) as exc:
        service.admin_approve(admin_actor, job_in_admin_review["job_id"], plan_number="P-1", coordinate_count=3)
    assert exc.value.code == "PILLAR_COUNT_MISMATCH"
    assert service.allocator.last_issued("SC/CN") == 0
    assert service.get_job(job_in_admin_review["job_id"])["status"] == "ADMIN_REVIEW"


def test_admin_approval_requires_plan_number(job_in_admin_review, admin_actor):
    with pytest.raises(ValidationError) as exc:
        service.admin_approve(admin_actor, job_in_admin_review["job_id"], plan_number=" ", coordinate_count=2)
    assert exc.value.code == "PLAN_NUMBER_REQUIRED"


def test_admin_coordinates_override_requested_ones(job_in_admin_review, admin_actor):
    coords = [
        {"easting": "300000", "northing": "540000"},
        {"easting": "300100", "northing": "540000"},
        {"easting": "300100", "northing": "540100"},
    ]
    approved = service.admin_approve(
        admin_actor,
        job_in_admin_review["job_id"],
        plan_number="P-2",
        coordinate_count=3,
        coordinates=coords,
        series_prefix="SC/LA",
    )
    assert [p["pillar_number"] for p in approved["pillar_numbers"]] == ["SC/LA 1", "SC/LA 2", "SC/LA 3"]
    assert approved["pillar_numbers"][2]["coordinates"] == {"easting": "300100", "northing": "540100"}
    assert service.allocator.last_issued("SC/CN") == 0


def test_collision_with_existing_pillar_rolls_back_allocation(job_in_admin_review, admin_actor):
    with service.store.transaction() as st:
        st.pillars_repository.create(
            pillar={
                "pillar_number": "SC/CN 1",
                "series_prefix": "SC/CN",
                "sequence": 1,
                "coordinates": {},
                "job_id": "job_legacy",
                "surveyor_id": "svy_legacy",
            }
        )

    with pytest.raises(ConflictError) as exc:
        service.admin_approve(admin_actor, job_in_admin_review["job_id"], plan_number="P-1", coordinate_count=2)

    assert exc.value.code == "PILLAR_NUMBER_EXISTS"
    assert exc.value.details == {"pillar_numbers": ["SC/CN 1"]}
    assert service.allocator.last_issued("SC/CN") == 0
    job = service.get_job(job_in_admin_review["job_id"])
    assert job["status"] == "ADMIN_REVIEW"
    assert job["pillar_numbers"] == []


def test_manual_pillar_numbers_must_be_reserved_first(job_in_admin_review, admin_actor):
    job_id = job_in_admin_review["job_id"]
    with pytest.raises(ConflictError) as exc:
        service.admin_approve(
            admin_actor, job_id, plan_number="P-1", coordinate_count=2, pillar_numbers=["SC/CN 1", "SC/CN 2"]
        )
    assert exc.value.code == "PILLAR_NUMBER_NOT_RESERVED"

    reserved = service.allocate_pillar_numbers(admin_actor, "SC/CN", 2)
    assert reserved["pillar_numbers"] == ["SC/CN 1", "SC/CN 2"]

    approved = service.admin_approve(
        admin_actor, job_id, plan_number="P-1", coordinate_count=2, pillar_numbers=["SC/CN 2", "SC/CN 1"]
    )
    assert [p["pillar_number"] for p in approved["pillar_numbers"]] == ["SC/CN 1", "SC/CN 2"]
    assert service.allocator.last_issued("SC/CN") == 2


def test_manual_pillar_numbers_must_belong_to_series(job_in_admin_review, admin_actor):
    service.allocate_pillar_numbers(admin_actor, "SC/CN", 2)
    with pytest.raises(ValidationError) as exc:
        service.admin_approve(
            admin_actor,
            job_in_admin_review["job_id"],
            plan_number="P-1",
            coordinate_count=2,
            pillar_numbers=["SC/CN 1", "SC/LA 2"],
        )
    assert exc.value.code == "PILLAR_NUMBER_INVALID"
