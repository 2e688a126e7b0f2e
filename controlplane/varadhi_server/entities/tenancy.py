"""
Tenancy entities: Org, Team and Project.

Orgs are globally unique, teams are unique within their org and projects
are globally unique while belonging to exactly one team.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

from .base import VersionedEntity, validate_name
from .resources import team_resource_id


@dataclass
class Org(VersionedEntity):
    """Top-level tenant."""

    KIND = "Org"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Org:
        return cls(name=data["name"])


@dataclass
class Team(VersionedEntity):
    """Team within an org.

    Attributes:
        org: Owning org name
    """

    KIND = "Team"

    org: str = ""

    @property
    def resource_id(self) -> str:
        return team_resource_id(self.org, self.name)

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "org": self.org}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Team:
        return cls(name=data["name"], org=data["org"])


@dataclass
class Project(VersionedEntity):
    """Project owned by a team.

    Attributes:
        org: Owning org name
        team: Owning team name
        description: Free-form description
    """

    KIND = "Project"

    org: str = ""
    team: str = ""
    description: str = ""

    def validate(self) -> None:
        super().validate()
        validate_name(self.org, "Org")
        validate_name(self.team, "Team")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "org": self.org,
            "team": self.team,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Project:
        return cls(
            name=data["name"],
            org=data["org"],
            team=data["team"],
            description=data.get("description", ""),
        )
