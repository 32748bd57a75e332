from __future__ import annotations

from typing import Any


class InMemoryDocumentsRepository:
    def __init__(self, documents: dict[str, dict[str, Any]]) -> None:
        self._documents = documents

    def create(self, *, document: dict[str, Any]) -> dict[str, Any]:
        self._documents[str(document["document_id"])] = dict(document)
        return dict(document)

    def get(self, *, document_id: str) -> dict[str, Any] | None:
        row = self._documents.get(document_id)
        if row is None:
            return None
        return dict(row)

    def list_for_job(self, *, job_id: str) -> list[dict[str, Any]]:
        rows = [dict(x) for x in self._documents.values() if x.get("job_id") == job_id]
        rows.sort(key=lambda x: str(x.get("uploaded_at", "")))
        return rows
