"""Capability checks shared by the services.

Routers resolve the caller once (get_current_user) and hand services a plain
``Actor``; services never touch the ORM user object.
"""

from dataclasses import dataclass

from src.am_common.errors import ForbiddenError
from src.am_gateway.user.db_models import UserModel


@dataclass(frozen=True)
class Actor:
    user_id: str
    is_admin: bool = False


def is_admin(user: UserModel) -> bool:
    return user.is_admin


def actor_from_user(user: UserModel) -> Actor:
    return Actor(user_id=str(user.id), is_admin=is_admin(user))


def ensure_owner_or_admin(owner_id: str, actor: Actor) -> None:
    """Ownership guard: only the resource's creator or an admin may mutate it."""
    if actor.is_admin or owner_id == actor.user_id:
        return
    raise ForbiddenError()
