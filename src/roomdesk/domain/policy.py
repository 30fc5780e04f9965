"""Reservation access policy.

Roles:
- admin, staff: every reservation action
- customer: list/view/create/update, limited to reservations they own

Every service operation calls authorize() before doing any work.
"""

from __future__ import annotations

from typing import Protocol

from roomdesk.domain.errors import UnauthorizedError

CUSTOMER_ROLE = "customer"

ACTIONS = ("view_any", "view", "create", "update", "delete")

ROLE_PERMISSIONS: dict[str, frozenset[str]] = {
    "admin": frozenset(ACTIONS),
    "staff": frozenset(ACTIONS),
    CUSTOMER_ROLE: frozenset({"view_any", "view", "create", "update"}),
}


class Actor(Protocol):
    """Who is performing an operation."""

    id: str
    email: str | None
    role: str


def is_customer(actor: Actor) -> bool:
    return actor.role == CUSTOMER_ROLE


def authorize(actor: Actor, action: str, owner_id: str | None = None) -> None:
    """Raise UnauthorizedError unless the actor may perform the action.

    Args:
        actor: Acting user.
        action: One of ACTIONS.
        owner_id: Owner of the target reservation, for per-record actions.

    Raises:
        ValueError: If the action is unknown.
        UnauthorizedError: On denial.
    """
    if action not in ACTIONS:
        raise ValueError(f"Invalid action: {action}")

    allowed = ROLE_PERMISSIONS.get(actor.role, frozenset())
    if action not in allowed:
        raise UnauthorizedError(f"Role {actor.role!r} may not {action} reservations")

    if is_customer(actor) and owner_id is not None and owner_id != actor.id:
        raise UnauthorizedError("Reservation belongs to another user")
