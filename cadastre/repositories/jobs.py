from __future__ import annotations

from typing import Any


class InMemoryJobsRepository:
    def __init__(self, jobs: dict[str, dict[str, Any]]) -> None:
        self._jobs = jobs

    def create(self, *, job: dict[str, Any]) -> dict[str, Any]:
        self._jobs[str(job["job_id"])] = dict(job)
        return dict(job)

    def get(self, *, job_id: str) -> dict[str, Any] | None:
        row = self._jobs.get(job_id)
        if row is None:
            return None
        return dict(row)

    def update(self, *, job: dict[str, Any]) -> dict[str, Any]:
        job_id = str(job["job_id"])
        if job_id not in self._jobs:
            raise KeyError(job_id)
        self._jobs[job_id] = dict(job)
        return dict(job)

    def job_number_exists(self, *, job_number: str) -> bool:
        return any(row.get("job_number") == job_number for row in self._jobs.values())
