from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Mapping
from typing import Any

from cadastre.allocator import (
    SequenceAllocator,
    format_pillar_number,
    normalize_series_prefix,
    parse_pillar_number,
)
from cadastre.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    PreconditionNotMet,
    ValidationError,
)
from cadastre.geo import nearby, parse_point, to_geographic
from cadastre.security import Actor, require_role
from cadastre.settings import Settings
from cadastre.store import InMemoryStore
from cadastre.store_backends import create_store_from_env
from cadastre.workflow import (
    JOB_TRANSITIONS,
    SURVEYOR_TRANSITIONS,
    DocumentType,
    JobStatus,
    StepName,
    StepStatus,
    SurveyorStatus,
    Transition,
    check_blue_copy_gate,
    check_ro_document_gate,
    initial_steps,
    mark_step,
    require_transition,
    required_role,
)

logger = logging.getLogger(__name__)

JobEffect = Callable[[InMemoryStore, dict[str, Any], list[dict[str, Any]], str], None]


def _clean(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _require_reason(reason: str | None) -> str:
    text = _clean(reason)
    if text is None:
        raise ValidationError("rejection reason is required", code="REJECTION_REASON_REQUIRED")
    return text


def _coordinate_list(raw: Any) -> list[dict[str, str]] | None:
    if raw is None:
        return None
    if not isinstance(raw, list):
        raise ValidationError("coordinates must be a list", code="COORDINATES_INVALID")
    out: list[dict[str, str]] = []
    for item in raw:
        if not isinstance(item, Mapping) or "easting" not in item or "northing" not in item:
            raise ValidationError("each coordinate needs easting and northing", code="COORDINATES_INVALID")
        out.append({"easting": str(item["easting"]), "northing": str(item["northing"])})
    return out


def _document_ref(raw: Mapping[str, Any]) -> dict[str, Any]:
    url = _clean(raw.get("document_url"))
    file_name = _clean(raw.get("file_name"))
    if url is None or file_name is None:
        raise ValidationError("document_url and file_name are required", code="DOCUMENT_REF_INVALID")
    return {
        "file_path": url,
        "file_name": file_name,
        "file_size": raw.get("file_size"),
        "mime_type": _clean(raw.get("mime_type")),
    }


class SurveyService:
    """Operations invoked by surveyors, NIS officers and admins.

    Each mutating operation checks the actor's role against the action's
    declared role first, then runs its state checks and writes inside one
    store transaction.
    """

    def __init__(self, *, store: InMemoryStore, settings: Settings) -> None:
        self.store = store
        self.settings = settings
        self.allocator = SequenceAllocator(
            counters=lambda: self.store.pillar_systems_repository,
            clock=self._now,
            max_batch=settings.max_allocation_batch,
        )
        self.job_numbers = SequenceAllocator(
            counters=lambda: self.store.job_sequences_repository,
            clock=self._now,
        )

    def reset(self) -> None:
        self.store.reset()

    def _now(self) -> str:
        return self.store._utcnow_iso()

    @staticmethod
    def _authorize(
        actor: Actor | None,
        action: str,
        table: dict[str, Transition] | None = None,
    ) -> Actor:
        return require_role(actor, required_role(table, action), action=action)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _load_job(self, job_id: str) -> dict[str, Any]:
        job = self.store.jobs_repository.get(job_id=job_id)
        if job is None:
            raise NotFoundError("job not found", code="JOB_NOT_FOUND")
        return job

    def _load_surveyor(self, surveyor_id: str) -> dict[str, Any]:
        surveyor = self.store.surveyors_repository.get(surveyor_id=surveyor_id)
        if surveyor is None:
            raise NotFoundError("surveyor not found", code="SURVEYOR_NOT_FOUND")
        return surveyor

    def get_job(self, job_id: str) -> dict[str, Any]:
        with self.store.reading() as st:
            job = self._load_job(job_id)
            job["workflow_steps"] = st.workflow_steps_repository.list_for_job(job_id=job_id)
            job["pillar_numbers"] = st.pillars_repository.list_for_job(job_id=job_id)
            job["documents"] = st.documents_repository.list_for_job(job_id=job_id)
        return job

    def get_surveyor(self, surveyor_id: str) -> dict[str, Any]:
        with self.store.reading():
            return self._load_surveyor(surveyor_id)

    # ------------------------------------------------------------------
    # Surveyor verification
    # ------------------------------------------------------------------

    def register_surveyor(self, actor: Actor | None, payload: Mapping[str, Any]) -> dict[str, Any]:
        actor = self._authorize(actor, "register_surveyor")
        nis_number = (_clean(payload.get("nis_membership_number")) or "").upper()
        surcon_number = (_clean(payload.get("surcon_registration_number")) or "").upper()
        if not nis_number or not surcon_number:
            raise ValidationError(
                "NIS membership and SURCON registration numbers are required",
                code="SURVEYOR_REGISTRATION_INVALID",
            )
        with self.store.transaction() as st:
            if st.surveyors_repository.get_by_user(user_id=actor.actor_id) is not None:
                raise ConflictError("surveyor profile already exists", code="SURVEYOR_ALREADY_REGISTERED")
            clashes = st.surveyors_repository.find_registration_clash(
                nis_membership_number=nis_number,
                surcon_registration_number=surcon_number,
            )
            if clashes:
                logger.warning("registration rejected, duplicate %s", ", ".join(clashes))
                raise ConflictError(
                    f"registration number already registered: {', '.join(clashes)}",
                    code="SURVEYOR_REGISTRATION_CONFLICT",
                    details={"fields": clashes},
                )
            now = self._now()
            surveyor = st.surveyors_repository.create(
                surveyor={
                    "surveyor_id": f"svy_{uuid.uuid4().hex[:12]}",
                    "user_id": actor.actor_id,
                    "name": _clean(payload.get("name")),
                    "email": _clean(payload.get("email")),
                    "firm_name": _clean(payload.get("firm_name")),
                    "phone_number": _clean(payload.get("phone_number")),
                    "address": _clean(payload.get("address")),
                    "nis_membership_number": nis_number,
                    "surcon_registration_number": surcon_number,
                    "status": SurveyorStatus.PENDING_NIS_REVIEW.value,
                    "verified_at": None,
                    "rejection_reason": None,
                    "created_at": now,
                    "updated_at": now,
                }
            )
        logger.info("surveyor %s registered for user %s", surveyor["surveyor_id"], actor.actor_id)
        return surveyor

    def _transition_surveyor(
        self,
        actor: Actor | None,
        surveyor_id: str,
        action: str,
        *,
        reason: str | None = None,
    ) -> dict[str, Any]:
        self._authorize(actor, action, SURVEYOR_TRANSITIONS)
        rejecting = action.endswith("_reject")
        if rejecting:
            reason = _require_reason(reason)
        with self.store.transaction() as st:
            surveyor = self._load_surveyor(surveyor_id)
            transition = require_transition(SURVEYOR_TRANSITIONS, action, surveyor["status"], entity="surveyor")
            now = self._now()
            surveyor["status"] = transition.target
            surveyor["updated_at"] = now
            if rejecting:
                surveyor["rejection_reason"] = reason
            else:
                surveyor["verified_at"] = now
            st.surveyors_repository.update(surveyor=surveyor)
        logger.info("surveyor %s %s -> %s", surveyor_id, action, transition.target)
        return surveyor

    def nis_approve_surveyor(self, actor: Actor | None, surveyor_id: str) -> dict[str, Any]:
        return self._transition_surveyor(actor, surveyor_id, "nis_approve")

    def nis_reject_surveyor(self, actor: Actor | None, surveyor_id: str, reason: str | None) -> dict[str, Any]:
        return self._transition_surveyor(actor, surveyor_id, "nis_reject", reason=reason)

    def admin_approve_surveyor(self, actor: Actor | None, surveyor_id: str) -> dict[str, Any]:
        return self._transition_surveyor(actor, surveyor_id, "admin_approve")

    def admin_reject_surveyor(self, actor: Actor | None, surveyor_id: str, reason: str | None) -> dict[str, Any]:
        return self._transition_surveyor(actor, surveyor_id, "admin_reject", reason=reason)

    # ------------------------------------------------------------------
    # Survey jobs
    # ------------------------------------------------------------------

    def submit_job(self, actor: Actor | None, payload: Mapping[str, Any]) -> dict[str, Any]:
        actor = self._authorize(actor, "submit_job")
        coordinates = _coordinate_list(payload.get("requested_coordinates"))
        required = payload.get("pillar_numbers_required")
        if coordinates:
            if required is None:
                required = len(coordinates)
            if required != len(coordinates):
                raise ValidationError(
                    f"pillar_numbers_required ({required}) must equal the number of requested coordinates "
                    f"({len(coordinates)})",
                    code="PILLAR_COUNT_MISMATCH",
                )
        if required is not None:
            required = self.allocator.validate_count(required)
        documents = [_document_ref(x) for x in payload.get("documents") or []]
        with self.store.transaction() as st:
            surveyor = st.surveyors_repository.get_by_user(user_id=actor.actor_id)
            if surveyor is None:
                raise PreconditionNotMet("surveyor profile not found", code="SURVEYOR_PROFILE_NOT_FOUND")
            if surveyor["status"] != SurveyorStatus.VERIFIED.value:
                raise PreconditionNotMet(
                    f"surveyor must be VERIFIED to submit jobs (current status: {surveyor['status']})",
                    code="SURVEYOR_NOT_VERIFIED",
                )
            now = self._now()
            year = now[:4]
            sequence = self.job_numbers.reserve(f"JOB-{year}", 1)[0]
            job_number = f"JOB-{year}-{sequence:03d}"
            if st.jobs_repository.job_number_exists(job_number=job_number):
                raise ConflictError(f"job number already exists: {job_number}", code="JOB_NUMBER_EXISTS")
            job_id = f"job_{uuid.uuid4().hex[:12]}"
            job = {
                "job_id": job_id,
                "job_number": job_number,
                "user_id": actor.actor_id,
                "surveyor_id": surveyor["surveyor_id"],
                "client_name": _clean(payload.get("client_name")),
                "client_email": _clean(payload.get("client_email")),
                "client_phone": _clean(payload.get("client_phone")),
                "location": _clean(payload.get("location")),
                "description": _clean(payload.get("description")),
                "title_holder_name": _clean(payload.get("title_holder_name")),
                "requested_coordinates": coordinates,
                "pillar_numbers_required": required,
                "plan_number": None,
                "blue_copy_uploaded": False,
                "blue_copy_uploaded_at": None,
                "ro_document_uploaded": False,
                "ro_document_uploaded_at": None,
                "status": JobStatus.SUBMITTED.value,
                "rejection_reason": None,
                "submitted_at": now,
                "updated_at": now,
                "date_approved": None,
            }
            st.jobs_repository.create(job=job)
            steps = initial_steps(job_id, now)
            mark_step(steps, StepName.SUBMITTED, StepStatus.COMPLETED, now=now, notes="Job submitted by surveyor")
            st.workflow_steps_repository.create_for_job(job_id=job_id, steps=steps)
            for ref in documents:
                self._attach_document(st, job_id, ref, DocumentType.SUPPORTING, actor, now)
        logger.info("job %s (%s) submitted by surveyor %s", job_id, job["job_number"], surveyor["surveyor_id"])
        return self.get_job(job_id)

    @staticmethod
    def _attach_document(
        st: InMemoryStore,
        job_id: str,
        ref: dict[str, Any],
        document_type: DocumentType,
        actor: Actor,
        now: str,
    ) -> dict[str, Any]:
        return st.documents_repository.create(
            document={
                "document_id": f"doc_{uuid.uuid4().hex[:12]}",
                "job_id": job_id,
                "document_type": document_type.value,
                **ref,
                "uploaded_by": actor.actor_id,
                "uploaded_at": now,
            }
        )

    def _apply_job_transition(self, job_id: str, action: str, effect: JobEffect) -> dict[str, Any]:
        with self.store.transaction() as st:
            job = self._load_job(job_id)
            transition = require_transition(JOB_TRANSITIONS, action, job["status"])
            steps = st.workflow_steps_repository.list_for_job(job_id=job_id)
            now = self._now()
            effect(st, job, steps, now)
            job["status"] = transition.target
            job["updated_at"] = now
            st.jobs_repository.update(job=job)
            st.workflow_steps_repository.replace_for_job(job_id=job_id, steps=steps)
        logger.info("job %s %s -> %s", job_id, action, transition.target)
        return self.get_job(job_id)

    def nis_approve(self, actor: Actor | None, job_id: str, comments: str | None = None) -> dict[str, Any]:
        self._authorize(actor, "nis_approve", JOB_TRANSITIONS)

        def _effect(st: InMemoryStore, job: dict[str, Any], steps: list[dict[str, Any]], now: str) -> None:
            mark_step(
                steps,
                StepName.NIS_REVIEW,
                StepStatus.COMPLETED,
                now=now,
                notes=_clean(comments) or "Approved by NIS officer",
            )
            mark_step(steps, StepName.ADMIN_REVIEW, StepStatus.IN_PROGRESS, now=now)

        return self._apply_job_transition(job_id, "nis_approve", _effect)

    def nis_reject(self, actor: Actor | None, job_id: str, reason: str | None) -> dict[str, Any]:
        self._authorize(actor, "nis_reject", JOB_TRANSITIONS)
        reason = _require_reason(reason)

        def _effect(st: InMemoryStore, job: dict[str, Any], steps: list[dict[str, Any]], now: str) -> None:
            job["rejection_reason"] = reason
            mark_step(steps, StepName.NIS_REVIEW, StepStatus.REJECTED, now=now, notes=reason)

        return self._apply_job_transition(job_id, "nis_reject", _effect)

    def admin_reject(self, actor: Actor | None, job_id: str, reason: str | None) -> dict[str, Any]:
        self._authorize(actor, "admin_reject", JOB_TRANSITIONS)
        reason = _require_reason(reason)

        def _effect(st: InMemoryStore, job: dict[str, Any], steps: list[dict[str, Any]], now: str) -> None:
            job["rejection_reason"] = reason
            mark_step(steps, StepName.ADMIN_REVIEW, StepStatus.REJECTED, now=now, notes=reason)

        return self._apply_job_transition(job_id, "admin_reject", _effect)

    def admin_approve(
        self,
        actor: Actor | None,
        job_id: str,
        *,
        plan_number: str | None,
        coordinate_count: int,
        series_prefix: str | None = None,
        coordinates: list[Mapping[str, Any]] | None = None,
        pillar_numbers: list[str] | None = None,
        comments: str | None = None,
    ) -> dict[str, Any]:
        self._authorize(actor, "admin_approve", JOB_TRANSITIONS)
        plan = _clean(plan_number)
        if plan is None:
            raise ValidationError("plan number is required", code="PLAN_NUMBER_REQUIRED")
        prefix = normalize_series_prefix(series_prefix or self.settings.default_series_prefix)
        count = self.allocator.validate_count(coordinate_count)
        override = _coordinate_list(coordinates)
        manual = [x.strip() for x in pillar_numbers] if pillar_numbers is not None else None
        if manual is not None and len(manual) != count:
            raise ValidationError(
                f"{len(manual)} pillar numbers supplied for {count} coordinates",
                code="PILLAR_COUNT_MISMATCH",
            )

        def _effect(st: InMemoryStore, job: dict[str, Any], steps: list[dict[str, Any]], now: str) -> None:
            points = override if override is not None else job.get("requested_coordinates")
            if points and len(points) != count:
                raise ValidationError(
                    f"coordinate_count ({count}) must equal the number of coordinates ({len(points)})",
                    code="PILLAR_COUNT_MISMATCH",
                )
            if manual is not None:
                numbers = self._accept_manual_numbers(prefix, manual)
            else:
                numbers = self.allocator.allocate(prefix, count)
            taken = st.pillars_repository.existing(pillar_numbers=numbers)
            if taken:
                logger.warning("pillar number collision for job %s: %s", job["job_id"], ", ".join(taken))
                raise ConflictError(
                    f"Pillar number(s) already exist: {', '.join(taken)}",
                    code="PILLAR_NUMBER_EXISTS",
                    details={"pillar_numbers": taken},
                )
            for index, number in enumerate(numbers):
                parsed = parse_pillar_number(number)
                st.pillars_repository.create(
                    pillar={
                        "pillar_number": number,
                        "series_prefix": prefix,
                        "sequence": parsed[1] if parsed else None,
                        "coordinates": dict(points[index]) if points else {},
                        "issued_at": now,
                        "job_id": job["job_id"],
                        "surveyor_id": job["surveyor_id"],
                    }
                )
            job["plan_number"] = plan
            job["date_approved"] = now
            mark_step(
                steps,
                StepName.ADMIN_REVIEW,
                StepStatus.COMPLETED,
                now=now,
                notes=_clean(comments) or "Approved by Admin with pillar number issued",
            )
            mark_step(
                steps,
                StepName.PILLAR_NUMBER_ASSIGNMENT,
                StepStatus.COMPLETED,
                now=now,
                notes=f"{len(numbers)} pillar numbers assigned: {', '.join(numbers)}. Plan number: {plan}",
            )
            mark_step(
                steps,
                StepName.BLUE_COPY_UPLOAD,
                StepStatus.IN_PROGRESS,
                now=now,
                notes="Pillar numbers issued. Blue copy upload now available.",
            )

        return self._apply_job_transition(job_id, "admin_approve", _effect)

    def _accept_manual_numbers(self, prefix: str, numbers: list[str]) -> list[str]:
        if len(set(numbers)) != len(numbers):
            raise ValidationError("duplicate pillar numbers in request", code="PILLAR_NUMBER_INVALID")
        last_issued = self.allocator.last_issued(prefix)
        for number in numbers:
            parsed = parse_pillar_number(number)
            if parsed is None or parsed[0] != prefix:
                raise ValidationError(
                    f"pillar number {number!r} is not in series {prefix}",
                    code="PILLAR_NUMBER_INVALID",
                )
            if parsed[1] > last_issued:
                raise ConflictError(
                    f"pillar number {number} has not been reserved by the {prefix} allocator",
                    code="PILLAR_NUMBER_NOT_RESERVED",
                    details={"last_issued_number": last_issued},
                )
        return numbers

    # ------------------------------------------------------------------
    # Document gates
    # ------------------------------------------------------------------

    def upload_blue_copy(
        self,
        actor: Actor | None,
        job_id: str,
        document_ref: Mapping[str, Any],
    ) -> dict[str, Any]:
        actor = self._authorize(actor, "blue_copy_upload")
        ref = _document_ref(document_ref)
        with self.store.transaction() as st:
            job = self._load_job(job_id)
            if job.get("user_id") != actor.actor_id:
                raise AuthorizationError("job belongs to another surveyor", code="JOB_ACCESS_DENIED")
            issued = len(st.pillars_repository.list_for_job(job_id=job_id))
            check_blue_copy_gate(job, issued_pillars=issued)
            now = self._now()
            job["blue_copy_uploaded"] = True
            job["blue_copy_uploaded_at"] = now
            job["updated_at"] = now
            st.jobs_repository.update(job=job)
            self._attach_document(st, job_id, ref, DocumentType.BLUE_COPY, actor, now)
            steps = st.workflow_steps_repository.list_for_job(job_id=job_id)
            mark_step(
                steps,
                StepName.BLUE_COPY_UPLOAD,
                StepStatus.COMPLETED,
                now=now,
                notes=f"Blue Copy uploaded: {ref['file_name']}",
            )
            mark_step(
                steps,
                StepName.RO_DOCUMENT_UPLOAD,
                StepStatus.IN_PROGRESS,
                now=now,
                notes="Blue Copy uploaded. Admin can now upload R of O document.",
            )
            st.workflow_steps_repository.replace_for_job(job_id=job_id, steps=steps)
        logger.info("blue copy uploaded for job %s", job_id)
        return self.get_job(job_id)

    def upload_ro_document(
        self,
        actor: Actor | None,
        job_id: str,
        document_ref: Mapping[str, Any],
    ) -> dict[str, Any]:
        actor = self._authorize(actor, "ro_document_upload")
        ref = _document_ref(document_ref)
        with self.store.transaction() as st:
            job = self._load_job(job_id)
            check_ro_document_gate(job)
            now = self._now()
            job["ro_document_uploaded"] = True
            job["ro_document_uploaded_at"] = now
            job["updated_at"] = now
            st.jobs_repository.update(job=job)
            self._attach_document(st, job_id, ref, DocumentType.RO_DOCUMENT, actor, now)
            steps = st.workflow_steps_repository.list_for_job(job_id=job_id)
            mark_step(
                steps,
                StepName.RO_DOCUMENT_UPLOAD,
                StepStatus.COMPLETED,
                now=now,
                notes=f"R of O document uploaded: {ref['file_name']}",
            )
            mark_step(
                steps,
                StepName.COMPLETED,
                StepStatus.COMPLETED,
                now=now,
                notes="Job completed successfully - all requirements fulfilled.",
            )
            st.workflow_steps_repository.replace_for_job(job_id=job_id, steps=steps)
        logger.info("R of O document uploaded for job %s, job fully complete", job_id)
        return self.get_job(job_id)

    # ------------------------------------------------------------------
    # Pillar numbers
    # ------------------------------------------------------------------

    def allocate_pillar_numbers(
        self,
        actor: Actor | None,
        series_prefix: str | None,
        count: int,
    ) -> dict[str, Any]:
        self._authorize(actor, "allocate_pillar_numbers")
        prefix = normalize_series_prefix(series_prefix or self.settings.default_series_prefix)
        with self.store.transaction():
            numbers = self.allocator.allocate(prefix, count)
            last_issued = self.allocator.last_issued(prefix)
        return {"series_prefix": prefix, "pillar_numbers": numbers, "last_issued_number": last_issued}

    def next_pillar_number(self, actor: Actor | None, series_prefix: str | None) -> dict[str, Any]:
        self._authorize(actor, "preview_pillar_number")
        prefix = normalize_series_prefix(series_prefix or self.settings.default_series_prefix)
        with self.store.reading():
            sequence = self.allocator.last_issued(prefix) + 1
        return {
            "series_prefix": prefix,
            "pillar_number": format_pillar_number(prefix, sequence),
            "sequence": sequence,
        }

    def check_pillar_availability(self, actor: Actor | None, pillar_number: str) -> dict[str, Any]:
        self._authorize(actor, "check_pillar_availability")
        number = _clean(pillar_number)
        if number is None:
            raise ValidationError("pillar number is required", code="PILLAR_QUERY_REQUIRED")
        with self.store.reading() as st:
            exists = st.pillars_repository.get(pillar_number=number) is not None
        return {"pillar_number": number, "available": not exists, "exists": exists}

    def search_pillar(
        self,
        pillar_number: str,
        *,
        include_nearby: bool = False,
        radius_km: float | None = None,
        limit: int | None = None,
    ) -> dict[str, Any]:
        number = _clean(pillar_number)
        if number is None:
            raise ValidationError("pillar number is required", code="PILLAR_QUERY_REQUIRED")
        radius = self.settings.nearby_radius_km if radius_km is None else float(radius_km)
        top_k = self.settings.nearby_limit if limit is None else int(limit)
        if radius < 0 or top_k < 1:
            raise ValidationError("radius_km must be >= 0 and limit >= 1", code="PILLAR_SEARCH_INVALID")
        with self.store.reading() as st:
            pillar = st.pillars_repository.get(pillar_number=number)
            if pillar is None:
                raise NotFoundError(f"pillar number not found: {number}", code="PILLAR_NOT_FOUND")
            surveyor = st.surveyors_repository.get(surveyor_id=str(pillar["surveyor_id"])) or {}
            job = st.jobs_repository.get(job_id=str(pillar["job_id"])) or {}
            others = [p for p in st.pillars_repository.list_all() if p["pillar_number"] != number]

        source_crs = self.settings.source_crs
        point = parse_point(pillar.get("coordinates"))
        center = to_geographic(point, source_crs=source_crs) if point is not None else None
        result: dict[str, Any] = {
            "pillar_number": pillar["pillar_number"],
            "coordinates": pillar.get("coordinates") or {},
            "position": (
                {"latitude": center.latitude, "longitude": center.longitude} if center is not None else None
            ),
            "issued_at": pillar.get("issued_at"),
            "surveyor": {
                "surveyor_id": surveyor.get("surveyor_id"),
                "name": surveyor.get("name"),
                "firm_name": surveyor.get("firm_name"),
                "surcon_registration_number": surveyor.get("surcon_registration_number"),
            },
            "survey_job": {
                "job_id": job.get("job_id"),
                "job_number": job.get("job_number"),
                "location": job.get("location"),
                "client_name": job.get("client_name"),
                "plan_number": job.get("plan_number"),
                "status": job.get("status"),
            },
        }
        if include_nearby:
            ranked = []
            if center is not None:
                ranked = nearby(
                    center,
                    ((p, p.get("coordinates")) for p in others),
                    radius,
                    top_k,
                    source_crs=source_crs,
                )
            result["nearby_pillars"] = [
                {
                    "pillar_number": p["pillar_number"],
                    "coordinates": p.get("coordinates") or {},
                    "distance_km": round(dist, 3),
                    "job_id": p.get("job_id"),
                    "issued_at": p.get("issued_at"),
                }
                for p, dist in ranked
            ]
            result["radius_km"] = radius
        return result


def create_service_from_env(environ: Mapping[str, str] | None = None) -> SurveyService:
    settings = Settings.from_env(environ)
    return SurveyService(store=create_store_from_env(environ), settings=settings)


service = create_service_from_env()
