"""Pydantic schemas for the authenticated caller."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict


class AuthenticatedUser(BaseModel):
    """Acting user resolved from the access token."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    role: str
    email: str | None = None
