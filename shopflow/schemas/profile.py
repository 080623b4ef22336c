# shopflow/schemas/profile.py
import uuid
from datetime import datetime

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field

from shopflow.core.policies import Role


class ProfileRead(SQLModel):
    """Response schema returned to clients."""

    id: uuid.UUID
    full_name: str
    role: Role
    created_at: datetime


class ProfileUpdate(SQLModel):
    """
    Partial profile update for the authenticated caller.
    Only `full_name` is editable; role changes happen in the database.
    """

    model_config = ConfigDict(extra="forbid")

    full_name: str | None = Field(default=None, max_length=200)

    @field_validator("full_name")
    @classmethod
    def normalize_name(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("name cannot be empty")
        return v
