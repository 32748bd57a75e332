from __future__ import annotations

import copy
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any

from cadastre.repositories.documents import InMemoryDocumentsRepository
from cadastre.repositories.jobs import InMemoryJobsRepository
from cadastre.repositories.pillar_systems import InMemoryPillarSystemsRepository
from cadastre.repositories.pillars import InMemoryPillarsRepository
from cadastre.repositories.surveyors import InMemorySurveyorsRepository
from cadastre.repositories.workflow_steps import InMemoryWorkflowStepsRepository

STATE_COLLECTIONS: tuple[str, ...] = (
    "surveyors",
    "jobs",
    "workflow_steps",
    "documents",
    "pillars",
    "pillar_systems",
    "job_sequences",
)


class InMemoryStore:
    """Record collections plus an all-or-nothing ``transaction()``.

    Every mutation goes through ``transaction()``: the store lock is held for
    the whole unit, a snapshot is taken on entry and restored if the body
    raises, and ``_save_state`` runs once the body has finished.
    """

    def __init__(self) -> None:
        self._tx_lock = threading.RLock()
        self._tx_depth = 0
        self.surveyors: dict[str, dict[str, Any]] = {}
        self.jobs: dict[str, dict[str, Any]] = {}
        self.workflow_steps: dict[str, list[dict[str, Any]]] = {}
        self.documents: dict[str, dict[str, Any]] = {}
        self.pillars: dict[str, dict[str, Any]] = {}
        self.pillar_systems: dict[str, dict[str, Any]] = {}
        self.job_sequences: dict[str, dict[str, Any]] = {}
        self._bind_repositories()

    def _bind_repositories(self) -> None:
        self.surveyors_repository = InMemorySurveyorsRepository(self.surveyors)
        self.jobs_repository = InMemoryJobsRepository(self.jobs)
        self.workflow_steps_repository = InMemoryWorkflowStepsRepository(self.workflow_steps)
        self.documents_repository = InMemoryDocumentsRepository(self.documents)
        self.pillars_repository = InMemoryPillarsRepository(self.pillars)
        self.pillar_systems_repository = InMemoryPillarSystemsRepository(self.pillar_systems)
        # Job-number counters live apart from the pillar series.
        self.job_sequences_repository = InMemoryPillarSystemsRepository(self.job_sequences)

    @staticmethod
    def _utcnow_iso() -> str:
        return datetime.now(UTC).isoformat()

    def reset(self) -> None:
        with self._tx_lock:
            for name in STATE_COLLECTIONS:
                getattr(self, name).clear()
            self._bind_repositories()

    def _state_snapshot(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"schema_version": 1}
        for name in STATE_COLLECTIONS:
            payload[name] = getattr(self, name)
        return payload

    def _restore_state(self, payload: dict[str, Any]) -> None:
        for name in STATE_COLLECTIONS:
            value = payload.get(name)
            setattr(self, name, value if isinstance(value, dict) else {})
        self._bind_repositories()

    def _begin_tx(self) -> None:
        return None

    def _commit_tx(self) -> None:
        self._save_state()

    def _rollback_tx(self) -> None:
        return None

    def _save_state(self) -> None:
        return None

    def _refresh_state(self) -> None:
        return None

    @contextmanager
    def transaction(self) -> Iterator["InMemoryStore"]:
        with self._tx_lock:
            if self._tx_depth:
                # Nested units join the outer transaction.
                yield self
                return
            self._begin_tx()
            snapshot = copy.deepcopy(self._state_snapshot())
            self._tx_depth += 1
            try:
                yield self
                self._commit_tx()
            except BaseException:
                self._restore_state(snapshot)
                self._rollback_tx()
                raise
            finally:
                self._tx_depth -= 1

    @contextmanager
    def reading(self) -> Iterator["InMemoryStore"]:
        with self._tx_lock:
            if not self._tx_depth:
                # Pick up state committed by other processes.
                self._refresh_state()
            yield self
