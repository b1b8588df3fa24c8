"""Specialist agent data models."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict


class Organization(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str
    name: Optional[str] = None


class SpecialistAgent(BaseModel):
    """Snapshot of a remote agent as returned by one discovery call."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str
    organization_id: str
    name: str
    description: Optional[str] = None
    visibility: str = "private"
    request_url: Optional[str] = None
    active_deployment_id: Optional[str] = None
