# shopflow/models/profile.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import CheckConstraint
from sqlmodel import SQLModel, Field


class Profile(SQLModel, table=True):
    """
    Application profile for an authenticated identity.

    Identity:
      - id: MUST match Supabase auth.users.id (UUID from JWT "sub")

    Role:
      - "user" | "admin"
      - anonymous callers have no row at all.

    Passwords and emails stay in Supabase Auth; this table only carries
    the display name and the application role.
    """

    __tablename__ = "profiles"
    __table_args__ = (
        CheckConstraint("role IN ('user', 'admin')", name="ck_profiles_role"),
    )

    id: uuid.UUID = Field(
        primary_key=True,
        index=True,
        description="Matches Supabase auth.users.id",
    )

    full_name: str = Field(
        default="",
        max_length=200,
        description="Display name, seeded from signup metadata",
    )

    role: str = Field(
        default="user",
        index=True,
        description="Application role: user | admin",
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )
