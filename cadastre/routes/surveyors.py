from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from cadastre.routes._deps import actor_from_request, trace_id_from_request
from cadastre.schemas import RejectRequest, SurveyorRegistrationRequest, success_envelope
from cadastre.service import service

router = APIRouter(prefix="/api/v1", tags=["surveyors"])


@router.post("/surveyors/register")
def register_surveyor(payload: SurveyorRegistrationRequest, request: Request):
    data = service.register_surveyor(actor_from_request(request), payload.model_dump())
    return JSONResponse(
        status_code=201,
        content=success_envelope(data, trace_id_from_request(request), message="surveyor registered"),
    )


@router.get("/surveyors/{surveyor_id}")
def get_surveyor(surveyor_id: str, request: Request):
    return success_envelope(service.get_surveyor(surveyor_id), trace_id_from_request(request))


@router.post("/surveyors/{surveyor_id}/nis-approve")
def nis_approve_surveyor(surveyor_id: str, request: Request):
    data = service.nis_approve_surveyor(actor_from_request(request), surveyor_id)
    return success_envelope(data, trace_id_from_request(request))


@router.post("/surveyors/{surveyor_id}/nis-reject")
def nis_reject_surveyor(surveyor_id: str, payload: RejectRequest, request: Request):
    data = service.nis_reject_surveyor(actor_from_request(request), surveyor_id, payload.reason)
    return success_envelope(data, trace_id_from_request(request))


@router.post("/surveyors/{surveyor_id}/admin-approve")
def admin_approve_surveyor(surveyor_id: str, request: Request):
    data = service.admin_approve_surveyor(actor_from_request(request), surveyor_id)
    return success_envelope(data, trace_id_from_request(request))


@router.post("/surveyors/{surveyor_id}/admin-reject")
def admin_reject_surveyor(surveyor_id: str, payload: RejectRequest, request: Request):
    data = service.admin_reject_surveyor(actor_from_request(request), surveyor_id, payload.reason)
    return success_envelope(data, trace_id_from_request(request))
