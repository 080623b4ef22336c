# shopflow/repositories/cart_repo.py
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlmodel import Session

from shopflow.models.cart import CartSnapshotRecord


class CartRepository:
    """
    Data access for persisted cart snapshots (one row per identity).
    """

    def get_for_user(
        self, session: Session, user_id: uuid.UUID
    ) -> CartSnapshotRecord | None:
        return session.get(CartSnapshotRecord, user_id)

    def save(
        self,
        session: Session,
        user_id: uuid.UUID,
        version: int,
        payload: dict[str, Any],
        commit: bool = True,
    ) -> CartSnapshotRecord:
        """Overwrite the caller's snapshot; last write wins."""
        record = self.get_for_user(session, user_id)
        if record is None:
            record = CartSnapshotRecord(user_id=user_id)
        record.version = version
        record.payload = payload
        record.updated_at = datetime.now(timezone.utc)
        session.add(record)
        if commit:
            session.commit()
            session.refresh(record)
        return record

    def delete_for_user(
        self,
        session: Session,
        user_id: uuid.UUID,
        commit: bool = True,
    ) -> None:
        record = self.get_for_user(session, user_id)
        if record is None:
            return
        session.delete(record)
        if commit:
            session.commit()
