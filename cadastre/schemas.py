from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class Coordinate(BaseModel):
    easting: str
    northing: str


class DocumentRef(BaseModel):
    document_url: str = Field(min_length=1)
    file_name: str = Field(min_length=1)
    file_size: int | None = Field(default=None, ge=0)
    mime_type: str | None = None


class SurveyorRegistrationRequest(BaseModel):
    name: str = Field(min_length=2)
    email: str = Field(min_length=3)
    nis_membership_number: str = Field(min_length=1)
    surcon_registration_number: str = Field(min_length=1)
    firm_name: str = Field(min_length=2)
    phone_number: str = Field(min_length=10)
    address: str = Field(min_length=10)


class SubmitJobRequest(BaseModel):
    client_name: str = Field(min_length=2)
    client_email: str | None = None
    client_phone: str = Field(min_length=10)
    location: str = Field(min_length=5)
    description: str | None = None
    title_holder_name: str | None = None
    requested_coordinates: list[Coordinate] | None = None
    pillar_numbers_required: int | None = Field(default=None, ge=1)
    documents: list[DocumentRef] = Field(default_factory=list)


class ApproveRequest(BaseModel):
    comments: str | None = None


class RejectRequest(BaseModel):
    reason: str = Field(min_length=1)


class AdminApproveJobRequest(BaseModel):
    plan_number: str
    series_prefix: str | None = None
    coordinate_count: int
    coordinates: list[Coordinate] | None = None
    pillar_numbers: list[str] | None = None
    comments: str | None = None


class AllocatePillarNumbersRequest(BaseModel):
    series_prefix: str | None = None
    count: int


class PillarAvailabilityRequest(BaseModel):
    pillar_number: str = Field(min_length=1)


def success_envelope(data: Any, trace_id: str, message: str = "ok") -> dict[str, Any]:
    return {
        "success": True,
        "data": data,
        "message": message,
        "meta": {
            "trace_id": trace_id,
        },
    }


def error_envelope(
    *,
    code: str,
    message: str,
    error_class: str,
    retryable: bool,
    trace_id: str,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    error: dict[str, Any] = {
        "code": code,
        "message": message,
        "retryable": retryable,
        "class": error_class,
    }
    if details is not None:
        error["details"] = details
    return {
        "success": False,
        "error": error,
        "meta": {
            "trace_id": trace_id,
        },
    }
