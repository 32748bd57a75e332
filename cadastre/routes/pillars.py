from __future__ import annotations

from fastapi import APIRouter, Query, Request

from cadastre.routes._deps import actor_from_request, trace_id_from_request
from cadastre.schemas import AllocatePillarNumbersRequest, PillarAvailabilityRequest, success_envelope
from cadastre.service import service

router = APIRouter(prefix="/api/v1", tags=["pillars"])


@router.get("/pillars/search")
def search_pillar(
    request: Request,
    pillar_number: str = Query(min_length=1),
    include_nearby: bool = False,
    radius_km: float | None = Query(default=None, ge=0),
    limit: int | None = Query(default=None, ge=1),
):
    data = service.search_pillar(
        pillar_number,
        include_nearby=include_nearby,
        radius_km=radius_km,
        limit=limit,
    )
    return success_envelope(data, trace_id_from_request(request))


@router.post("/pillars/allocate")
def allocate_pillar_numbers(payload: AllocatePillarNumbersRequest, request: Request):
    data = service.allocate_pillar_numbers(actor_from_request(request), payload.series_prefix, payload.count)
    return success_envelope(data, trace_id_from_request(request))


@router.get("/pillars/next")
def next_pillar_number(request: Request, series_prefix: str | None = None):
    data = service.next_pillar_number(actor_from_request(request), series_prefix)
    return success_envelope(data, trace_id_from_request(request))


@router.post("/pillars/check-availability")
def check_pillar_availability(payload: PillarAvailabilityRequest, request: Request):
    data = service.check_pillar_availability(actor_from_request(request), payload.pillar_number)
    return success_envelope(data, trace_id_from_request(request))
