# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""Typed adapter over the Team Store (``teams`` collection, members embedded)."""
from datetime import date
from typing import Any, Optional

from teamflow.models.domain import Team


class TeamClient:
    def __init__(self, teams) -> None:
        self._teams = teams

    def get_team(self, team_id: int) -> Team:
        return Team.model_validate(self._teams.get(team_id))

    def list_teams(self, leader_id: Optional[int] = None) -> list[Team]:
        return [Team.model_validate(r) for r in self._teams.list(leader_id=leader_id)]

    def create_team(self, name: str, description: str, leader_id: int) -> Team:
        record = {
            "name": name,
            "description": description,
            "leader_id": leader_id,
            "members": [leader_id],
            "created_on": date.today().isoformat(),
        }
        return Team.model_validate(self._teams.create(record))

    def update_team(self, team: Team, **fields: Any) -> Team:
        return Team.model_validate(
            self._teams.update(team.id, fields, expected_version=team.version)
        )

    def set_members(self, team: Team, members: list[int]) -> Team:
        return self.update_team(team, members=members)

    def delete_team(self, team_id: int) -> None:
        self._teams.delete(team_id)

    def ping(self) -> bool:
        return self._teams.ping()
