from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from cadastre.routes._deps import actor_from_request, trace_id_from_request
from cadastre.schemas import (
    AdminApproveJobRequest,
    ApproveRequest,
    DocumentRef,
    RejectRequest,
    SubmitJobRequest,
    success_envelope,
)
from cadastre.service import service

router = APIRouter(prefix="/api/v1", tags=["jobs"])


@router.post("/jobs")
def submit_job(payload: SubmitJobRequest, request: Request):
    data = service.submit_job(actor_from_request(request), payload.model_dump())
    return JSONResponse(
        status_code=201,
        content=success_envelope(data, trace_id_from_request(request), message="job submitted"),
    )


@router.get("/jobs/{job_id}")
def get_job(job_id: str, request: Request):
    return success_envelope(service.get_job(job_id), trace_id_from_request(request))


@router.post("/jobs/{job_id}/nis-approve")
def nis_approve_job(job_id: str, request: Request, payload: ApproveRequest | None = None):
    comments = payload.comments if payload is not None else None
    data = service.nis_approve(actor_from_request(request), job_id, comments)
    return success_envelope(data, trace_id_from_request(request))


@router.post("/jobs/{job_id}/nis-reject")
def nis_reject_job(job_id: str, payload: RejectRequest, request: Request):
    data = service.nis_reject(actor_from_request(request), job_id, payload.reason)
    return success_envelope(data, trace_id_from_request(request))


@router.post("/jobs/{job_id}/admin-approve")
def admin_approve_job(job_id: str, payload: AdminApproveJobRequest, request: Request):
    coordinates = [c.model_dump() for c in payload.coordinates] if payload.coordinates is not None else None
    data = service.admin_approve(
        actor_from_request(request),
        job_id,
        plan_number=payload.plan_number,
        coordinate_count=payload.coordinate_count,
        series_prefix=payload.series_prefix,
        coordinates=coordinates,
        pillar_numbers=payload.pillar_numbers,
        comments=payload.comments,
    )
    return success_envelope(data, trace_id_from_request(request), message="pillar numbers issued")


@router.post("/jobs/{job_id}/admin-reject")
def admin_reject_job(job_id: str, payload: RejectRequest, request: Request):
    data = service.admin_reject(actor_from_request(request), job_id, payload.reason)
    return success_envelope(data, trace_id_from_request(request))


@router.post("/jobs/{job_id}/blue-copy")
def upload_blue_copy(job_id: str, payload: DocumentRef, request: Request):
    data = service.upload_blue_copy(actor_from_request(request), job_id, payload.model_dump())
    return success_envelope(data, trace_id_from_request(request), message="blue copy uploaded")


@router.post("/jobs/{job_id}/ro-document")
def upload_ro_document(job_id: str, payload: DocumentRef, request: Request):
    data = service.upload_ro_document(actor_from_request(request), job_id, payload.model_dump())
    return success_envelope(data, trace_id_from_request(request), message="R of O document uploaded")
