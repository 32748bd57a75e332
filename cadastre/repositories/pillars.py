from __future__ import annotations

from typing import Any


class InMemoryPillarsRepository:
    """Pillar records keyed by their formatted number; rows are write-once."""

    def __init__(self, pillars: dict[str, dict[str, Any]]) -> None:
        self._pillars = pillars

    def create(self, *, pillar: dict[str, Any]) -> dict[str, Any]:
        pillar_number = str(pillar["pillar_number"])
        if pillar_number in self._pillars:
            raise ValueError(f"pillar number already exists: {pillar_number}")
        self._pillars[pillar_number] = dict(pillar)
        return dict(pillar)

    def get(self, *, pillar_number: str) -> dict[str, Any] | None:
        row = self._pillars.get(pillar_number)
        if row is None:
            return None
        return dict(row)

    def existing(self, *, pillar_numbers: list[str]) -> list[str]:
        return [x for x in pillar_numbers if x in self._pillars]

    def list_for_job(self, *, job_id: str) -> list[dict[str, Any]]:
        rows = [dict(x) for x in self._pillars.values() if x.get("job_id") == job_id]
        rows.sort(key=lambda x: (str(x.get("series_prefix", "")), int(x.get("sequence", 0))))
        return rows

    def list_all(self) -> list[dict[str, Any]]:
        return [dict(x) for x in self._pillars.values()]
