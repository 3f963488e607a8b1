"""Shared FastAPI dependencies: caller identity and collaborators."""
from typing import Optional
from uuid import UUID

from fastapi import Header

from app.exceptions import ValidationError
from app.services.roles import Actor, parse_role


def get_actor(
    x_actor_id: UUID = Header(...),
    x_actor_role: str = Header(...),
) -> Actor:
    """Caller identity, set by the authenticating gateway."""
    return Actor(id=x_actor_id, role=parse_role(x_actor_role))


def get_optional_actor(
    x_actor_id: Optional[UUID] = Header(None),
    x_actor_role: Optional[str] = Header(None),
) -> Optional[Actor]:
    """Caller identity when present; read-only endpoints work without it."""
    if x_actor_id is None and x_actor_role is None:
        return None
    if x_actor_id is None or x_actor_role is None:
        raise ValidationError("X-Actor-Id and X-Actor-Role must be sent together", field="actor")
    return Actor(id=x_actor_id, role=parse_role(x_actor_role))
