import pathlib
import sys

import pytest
from fastapi.testclient import TestClient

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from cadastre.main import create_app
from cadastre.security import Actor
from cadastre.service import service
from cadastre.workflow import Role

IDENTITY_ENV = ("JWT_SHARED_SECRET", "JWT_ISSUER", "JWT_AUDIENCE", "JWT_ROLE_CLAIM", "JWT_REQUIRED_CLAIMS")


def registration_payload(**overrides) -> dict:
    payload = {
        "name": "Adaeze Okafor",
        "email": "adaeze@example.com",
        "nis_membership_number": "nis/1234",
        "surcon_registration_number": " surcon-5678 ",
        "firm_name": "Okafor Geomatics",
        "phone_number": "+2348030000000",
        "address": "12 Marina Road, Lagos Island",
    }
    payload.update(overrides)
    return payload


def job_payload(coordinates: list[dict] | None = None, **overrides) -> dict:
    if coordinates is None:
        coordinates = [
            {"easting": "288456.789", "northing": "532123.456"},
            {"easting": "288556.789", "northing": "532123.456"},
        ]
    payload = {
        "client_name": "Chinedu Eze",
        "client_email": "chinedu@example.com",
        "client_phone": "+2348031111111",
        "location": "Plot 14, Trans-Amadi Layout, Port Harcourt",
        "description": "Perimeter survey",
        "title_holder_name": "Chinedu Eze",
        "requested_coordinates": coordinates,
        "pillar_numbers_required": len(coordinates) if coordinates else None,
        "documents": [],
    }
    payload.update(overrides)
    return payload


class ActorClient:
    """TestClient wrapper that stamps identity headers for one actor."""

    def __init__(self, client: TestClient, *, actor_id: str | None = None, role: str | None = None):
        self._client = client
        self._headers: dict[str, str] = {}
        if actor_id is not None:
            self._headers["x-actor-id"] = actor_id
        if role is not None:
            self._headers["x-actor-role"] = role

    def acting_as(self, actor_id: str, role: str) -> "ActorClient":
        return ActorClient(self._client, actor_id=actor_id, role=role)

    def request(self, method: str, url: str, **kwargs):
        headers = {**self._headers, **dict(kwargs.pop("headers", {}) or {})}
        return self._client.request(method, url, headers=headers, **kwargs)

    def get(self, url: str, **kwargs):
        return self.request("GET", url, **kwargs)

    def post(self, url: str, **kwargs):
        return self.request("POST", url, **kwargs)


@pytest.fixture(autouse=True)
def reset_service(monkeypatch: pytest.MonkeyPatch):
    for name in IDENTITY_ENV:
        monkeypatch.delenv(name, raising=False)
    service.reset()
    yield


@pytest.fixture
def client() -> ActorClient:
    return ActorClient(TestClient(create_app()))


@pytest.fixture
def make_registration():
    return registration_payload


@pytest.fixture
def make_job_payload():
    return job_payload


@pytest.fixture
def surveyor_actor() -> Actor:
    return Actor(actor_id="user_surveyor_1", role=Role.SURVEYOR)


@pytest.fixture
def nis_actor() -> Actor:
    return Actor(actor_id="user_nis_1", role=Role.NIS_OFFICER)


@pytest.fixture
def admin_actor() -> Actor:
    return Actor(actor_id="user_admin_1", role=Role.ADMIN)


@pytest.fixture
def verified_surveyor(surveyor_actor, nis_actor, admin_actor) -> dict:
    surveyor = service.register_surveyor(surveyor_actor, registration_payload())
    service.nis_approve_surveyor(nis_actor, surveyor["surveyor_id"])
    return service.admin_approve_surveyor(admin_actor, surveyor["surveyor_id"])


@pytest.fixture
def submitted_job(verified_surveyor, surveyor_actor) -> dict:
    return service.submit_job(surveyor_actor, job_payload())


@pytest.fixture
def job_in_admin_review(submitted_job, nis_actor) -> dict:
    return service.nis_approve(nis_actor, submitted_job["job_id"])
