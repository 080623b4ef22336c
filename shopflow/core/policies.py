# shopflow/core/policies.py
"""
Row-level authorization rules.

Every collection carries a small set of predicates, one per action,
evaluated against (caller identity, target row). Services call
`authorize(...)` before each repository read or write so that the
rules live in one table instead of being scattered across handlers.

Rules:

    profiles        select/update       own row only
    products        select              anyone (anonymous included)
                    insert/update/delete  admin
    orders          select/update       owner or admin
                    insert              owner (row.user_id == caller)
    order_items     select              owner of parent order or admin
                    insert              owner of parent order
    cart_snapshots  all                 own row only

For `order_items` the row passed in is the *parent order*.
Pairs missing from the table are denied.
"""
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Literal

from fastapi import HTTPException, status

Role = Literal["user", "admin"]
Action = Literal["select", "insert", "update", "delete"]


@dataclass(frozen=True)
class Identity:
    """Authenticated caller as seen by the policy layer."""

    user_id: uuid.UUID
    role: Role = "user"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


Predicate = Callable[[Identity | None, Any], bool]


# ---- predicates ----


def anyone(identity: Identity | None, row: Any) -> bool:
    return True


def is_admin(identity: Identity | None, row: Any) -> bool:
    return identity is not None and identity.is_admin


def is_self(identity: Identity | None, row: Any) -> bool:
    return identity is not None and row is not None and row.id == identity.user_id


def is_owner(identity: Identity | None, row: Any) -> bool:
    return (
        identity is not None
        and row is not None
        and row.user_id == identity.user_id
    )


def is_owner_or_admin(identity: Identity | None, row: Any) -> bool:
    return is_admin(identity, row) or is_owner(identity, row)


POLICIES: dict[tuple[str, Action], Predicate] = {
    ("profiles", "select"): is_self,
    ("profiles", "update"): is_self,
    ("products", "select"): anyone,
    ("products", "insert"): is_admin,
    ("products", "update"): is_admin,
    ("products", "delete"): is_admin,
    ("orders", "select"): is_owner_or_admin,
    ("orders", "insert"): is_owner,
    ("orders", "update"): is_owner_or_admin,
    ("order_items", "select"): is_owner_or_admin,
    ("order_items", "insert"): is_owner,
    ("cart_snapshots", "select"): is_owner,
    ("cart_snapshots", "insert"): is_owner,
    ("cart_snapshots", "update"): is_owner,
    ("cart_snapshots", "delete"): is_owner,
}


def allowed(
    identity: Identity | None,
    collection: str,
    action: Action,
    row: Any = None,
) -> bool:
    """Evaluate the policy for (collection, action) without raising."""
    predicate = POLICIES.get((collection, action))
    if predicate is None:
        return False
    return predicate(identity, row)


def authorize(
    identity: Identity | None,
    collection: str,
    action: Action,
    row: Any = None,
) -> None:
    """
    Enforce the policy for (collection, action) on `row`.

    Raises:
        HTTPException(401): anonymous caller rejected by the policy.
        HTTPException(403): authenticated caller rejected by the policy.
    """
    if allowed(identity, collection, action, row):
        return

    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail=f"Not allowed to {action} {collection}",
    )
