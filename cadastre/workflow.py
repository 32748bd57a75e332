"""Approval workflow for surveyors and survey jobs.

Every transition is declared once in a table together with the single role
allowed to invoke it. The service layer looks the role up from the table
before touching any record; this module only validates state and mutates
the in-transaction record dicts handed to it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from cadastre.errors import InvalidStateTransition, PreconditionNotMet


class Role(str, Enum):
    SURVEYOR = "SURVEYOR"
    NIS_OFFICER = "NIS_OFFICER"
    ADMIN = "ADMIN"


class SurveyorStatus(str, Enum):
    PENDING_NIS_REVIEW = "PENDING_NIS_REVIEW"
    NIS_APPROVED = "NIS_APPROVED"
    VERIFIED = "VERIFIED"
    NIS_REJECTED = "NIS_REJECTED"
    ADMIN_REJECTED = "ADMIN_REJECTED"


class JobStatus(str, Enum):
    SUBMITTED = "SUBMITTED"
    NIS_REVIEW = "NIS_REVIEW"
    ADMIN_REVIEW = "ADMIN_REVIEW"
    COMPLETED = "COMPLETED"
    NIS_REJECTED = "NIS_REJECTED"
    ADMIN_REJECTED = "ADMIN_REJECTED"


class StepName(str, Enum):
    SUBMITTED = "Submitted"
    NIS_REVIEW = "NIS Review"
    ADMIN_REVIEW = "Admin Review"
    PILLAR_NUMBER_ASSIGNMENT = "Pillar Number Assignment"
    BLUE_COPY_UPLOAD = "Blue Copy Upload"
    RO_DOCUMENT_UPLOAD = "R of O Document Upload"
    COMPLETED = "Completed"


class StepStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"


class DocumentType(str, Enum):
    SUPPORTING = "SUPPORTING"
    BLUE_COPY = "BLUE_COPY"
    RO_DOCUMENT = "RO_DOCUMENT"


STEP_CATALOG: tuple[StepName, ...] = tuple(StepName)


@dataclass(frozen=True)
class Transition:
    action: str
    required_role: Role
    sources: frozenset[str]
    target: str


def _transition(action: str, role: Role, sources: set[Enum], target: Enum) -> Transition:
    return Transition(
        action=action,
        required_role=role,
        sources=frozenset(s.value for s in sources),
        target=target.value,
    )


SURVEYOR_TRANSITIONS: dict[str, Transition] = {
    t.action: t
    for t in (
        _transition(
            "nis_approve",
            Role.NIS_OFFICER,
            {SurveyorStatus.PENDING_NIS_REVIEW},
            SurveyorStatus.NIS_APPROVED,
        ),
        _transition(
            "nis_reject",
            Role.NIS_OFFICER,
            {SurveyorStatus.PENDING_NIS_REVIEW},
            SurveyorStatus.NIS_REJECTED,
        ),
        _transition(
            "admin_approve",
            Role.ADMIN,
            {SurveyorStatus.NIS_APPROVED},
            SurveyorStatus.VERIFIED,
        ),
        _transition(
            "admin_reject",
            Role.ADMIN,
            {SurveyorStatus.NIS_APPROVED},
            SurveyorStatus.ADMIN_REJECTED,
        ),
    )
}

JOB_TRANSITIONS: dict[str, Transition] = {
    t.action: t
    for t in (
        _transition(
            "nis_approve",
            Role.NIS_OFFICER,
            {JobStatus.SUBMITTED, JobStatus.NIS_REVIEW},
            JobStatus.ADMIN_REVIEW,
        ),
        _transition(
            "nis_reject",
            Role.NIS_OFFICER,
            {JobStatus.SUBMITTED, JobStatus.NIS_REVIEW},
            JobStatus.NIS_REJECTED,
        ),
        _transition(
            "admin_approve",
            Role.ADMIN,
            {JobStatus.ADMIN_REVIEW},
            JobStatus.COMPLETED,
        ),
        _transition(
            "admin_reject",
            Role.ADMIN,
            {JobStatus.ADMIN_REVIEW},
            JobStatus.ADMIN_REJECTED,
        ),
    )
}

# Actions that do not move SurveyJob.status but still have a single owner role.
ACTION_ROLES: dict[str, Role] = {
    "register_surveyor": Role.SURVEYOR,
    "submit_job": Role.SURVEYOR,
    "blue_copy_upload": Role.SURVEYOR,
    "ro_document_upload": Role.ADMIN,
    "allocate_pillar_numbers": Role.ADMIN,
    "preview_pillar_number": Role.ADMIN,
    "check_pillar_availability": Role.ADMIN,
}


def required_role(table: dict[str, Transition] | None, action: str) -> Role:
    if table is not None and action in table:
        return table[action].required_role
    return ACTION_ROLES[action]


def require_transition(
    table: dict[str, Transition],
    action: str,
    current_status: str,
    *,
    entity: str = "job",
) -> Transition:
    transition = table[action]
    if current_status not in transition.sources:
        raise InvalidStateTransition(action=action, current_status=current_status, entity=entity)
    return transition


def initial_steps(job_id: str, now: str) -> list[dict[str, Any]]:
    return [
        {
            "step_id": f"{job_id}:{order}",
            "job_id": job_id,
            "step_name": name.value,
            "step_order": order,
            "status": StepStatus.PENDING.value,
            "completed_at": None,
            "notes": None,
            "updated_at": now,
        }
        for order, name in enumerate(STEP_CATALOG, start=1)
    ]


def mark_step(
    steps: list[dict[str, Any]],
    name: StepName,
    status: StepStatus,
    *,
    now: str,
    notes: str | None = None,
) -> dict[str, Any]:
    for step in steps:
        if step["step_name"] != name.value:
            continue
        step["status"] = status.value
        step["updated_at"] = now
        if status in (StepStatus.COMPLETED, StepStatus.REJECTED):
            step["completed_at"] = now
        if notes is not None:
            step["notes"] = notes
        return step
    raise KeyError(f"workflow step missing: {name.value}")


def check_blue_copy_gate(job: dict[str, Any], *, issued_pillars: int) -> None:
    if issued_pillars <= 0:
        raise PreconditionNotMet(
            "Blue Copy upload is only available after pillar numbers are issued",
            code="BLUE_COPY_PILLARS_NOT_ISSUED",
        )
    if job.get("blue_copy_uploaded"):
        raise PreconditionNotMet(
            "Blue Copy has already been uploaded",
            code="BLUE_COPY_ALREADY_UPLOADED",
        )


def check_ro_document_gate(job: dict[str, Any]) -> None:
    if not job.get("blue_copy_uploaded"):
        raise PreconditionNotMet(
            "R of O document upload is only available after Blue Copy is uploaded",
            code="RO_DOCUMENT_BLUE_COPY_REQUIRED",
        )
    if job.get("ro_document_uploaded"):
        raise PreconditionNotMet(
            "R of O document has already been uploaded",
            code="RO_DOCUMENT_ALREADY_UPLOADED",
        )
