"""Narrow interfaces to the systems the engine depends on.

The engine only needs to know who represents an organization, who owns an
engagement and whether it is still open, and where to hand off
notification records.  ``StaticDirectory`` implements both lookups from a
YAML file for development and tests.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol

import yaml  # type: ignore[import-untyped]
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class Engagement(BaseModel):
    """The subject of an invitation (a job posting in the source domain)."""

    id: str
    initiator_id: str
    title: str = ""
    is_open: bool = True


class Organization(BaseModel):
    """An organization that can be invited, with its designated representative."""

    id: str
    name: str = ""
    representative_id: str | None = None


class IdentityResolver(Protocol):
    """Resolve an organization to the user allowed to act on its behalf."""

    def representative_of(self, org_id: str) -> str | None: ...

    def organization_name(self, org_id: str) -> str | None: ...


class EngagementDirectory(Protocol):
    """Look up engagements by id."""

    def get_engagement(self, engagement_id: str) -> Engagement | None: ...


class DirectoryFile(BaseModel):
    """Shape of the YAML directory file."""

    engagements: list[Engagement] = Field(default_factory=list)
    organizations: list[Organization] = Field(default_factory=list)


class StaticDirectory:
    """In-memory identity resolver and engagement directory."""

    def __init__(
        self,
        engagements: list[Engagement] | None = None,
        organizations: list[Organization] | None = None,
    ) -> None:
        self._engagements = {e.id: e for e in engagements or []}
        self._organizations = {o.id: o for o in organizations or []}

    @classmethod
    def from_yaml(cls, path: Path) -> StaticDirectory:
        """Load a directory from a YAML file.

        Falls back to an empty directory if the file is missing, empty, or
        contains invalid YAML.
        """
        if not path.exists():
            return cls()

        try:
            raw = yaml.safe_load(path.read_text(encoding="utf-8"))
        except yaml.YAMLError:
            logger.warning("Invalid YAML in %s, using empty directory", path)
            return cls()

        if raw is None:
            return cls()

        parsed = DirectoryFile.model_validate(raw)
        return cls(parsed.engagements, parsed.organizations)

    def add_engagement(self, engagement: Engagement) -> None:
        self._engagements[engagement.id] = engagement

    def add_organization(self, organization: Organization) -> None:
        self._organizations[organization.id] = organization

    def get_engagement(self, engagement_id: str) -> Engagement | None:
        return self._engagements.get(engagement_id)

    def representative_of(self, org_id: str) -> str | None:
        org = self._organizations.get(org_id)
        return org.representative_id if org is not None else None

    def organization_name(self, org_id: str) -> str | None:
        org = self._organizations.get(org_id)
        return org.name if org is not None else None
