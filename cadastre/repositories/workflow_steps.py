from __future__ import annotations

from typing import Any


class InMemoryWorkflowStepsRepository:
    def __init__(self, steps: dict[str, list[dict[str, Any]]]) -> None:
        self._steps = steps

    def create_for_job(self, *, job_id: str, steps: list[dict[str, Any]]) -> list[dict[str, Any]]:
        if job_id in self._steps:
            raise ValueError(f"workflow steps already exist for job: {job_id}")
        self._steps[job_id] = [dict(x) for x in steps]
        return [dict(x) for x in steps]

    def list_for_job(self, *, job_id: str) -> list[dict[str, Any]]:
        rows = self._steps.get(job_id, [])
        return [dict(x) for x in sorted(rows, key=lambda x: int(x.get("step_order", 0)))]

    def replace_for_job(self, *, job_id: str, steps: list[dict[str, Any]]) -> list[dict[str, Any]]:
        existing = self._steps.get(job_id)
        if existing is None:
            raise KeyError(job_id)
        if [x["step_name"] for x in existing] != [x["step_name"] for x in steps]:
            raise ValueError("workflow step catalog cannot be re-ordered")
        self._steps[job_id] = [dict(x) for x in steps]
        return [dict(x) for x in steps]
