from __future__ import annotations

from typing import Any


class InMemorySurveyorsRepository:
    def __init__(self, surveyors: dict[str, dict[str, Any]]) -> None:
        self._surveyors = surveyors

    def create(self, *, surveyor: dict[str, Any]) -> dict[str, Any]:
        self._surveyors[str(surveyor["surveyor_id"])] = dict(surveyor)
        return dict(surveyor)

    def get(self, *, surveyor_id: str) -> dict[str, Any] | None:
        row = self._surveyors.get(surveyor_id)
        if row is None:
            return None
        return dict(row)

    def update(self, *, surveyor: dict[str, Any]) -> dict[str, Any]:
        surveyor_id = str(surveyor["surveyor_id"])
        if surveyor_id not in self._surveyors:
            raise KeyError(surveyor_id)
        self._surveyors[surveyor_id] = dict(surveyor)
        return dict(surveyor)

    def get_by_user(self, *, user_id: str) -> dict[str, Any] | None:
        for row in self._surveyors.values():
            if row.get("user_id") == user_id:
                return dict(row)
        return None

    def find_registration_clash(
        self,
        *,
        nis_membership_number: str,
        surcon_registration_number: str,
    ) -> list[str]:
        clashes: list[str] = []
        for row in self._surveyors.values():
            if row.get("nis_membership_number") == nis_membership_number:
                clashes.append("nis_membership_number")
            if row.get("surcon_registration_number") == surcon_registration_number:
                clashes.append("surcon_registration_number")
        return sorted(set(clashes))
