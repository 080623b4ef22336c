# shopflow/models/cart.py
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, Column
from sqlmodel import SQLModel, Field


class CartSnapshotRecord(SQLModel, table=True):
    """
    Persisted cart snapshot, one row per identity.

    The payload is the serialized CartSnapshot; rows are overwritten
    on every save (last write wins across devices).
    """

    __tablename__ = "cart_snapshots"

    user_id: uuid.UUID = Field(
        foreign_key="profiles.id",
        primary_key=True,
    )

    version: int = Field(default=2)

    payload: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )

    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
