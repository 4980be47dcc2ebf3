# Overview: Actor context and the single authorization check used by every operation.

from __future__ import annotations

from dataclasses import dataclass

from ..extensions import db
from ..errors import AuthorizationError
from ..models import User
from ..permissions import Role, role_has_permission


@dataclass(frozen=True)
class ActorContext:
    """Pre-authenticated caller identity supplied by the auth collaborator."""
    user_id: int
    role: Role

    @classmethod
    def for_user(cls, user: User) -> "ActorContext":
        return cls(user_id=user.id, role=Role(user.role))

    def has(self, permission_code: str) -> bool:
        return role_has_permission(self.role, permission_code)


def load_actor(user_id: int) -> ActorContext | None:
    """Resolve an active user into an ActorContext (None if unknown/inactive)."""
    user = db.session.get(User, user_id)
    if user is None or not user.is_active:
        return None
    try:
        return ActorContext.for_user(user)
    except ValueError:
        return None


def require(actor: ActorContext, permission_code: str) -> None:
    """Raise AuthorizationError unless the actor's role grants the permission."""
    if not actor.has(permission_code):
        raise AuthorizationError(
            f"Role '{actor.role.value}' cannot perform this action",
            details={"required_permission": permission_code},
        )


def require_any(actor: ActorContext, *permission_codes: str) -> None:
    if not any(actor.has(code) for code in permission_codes):
        raise AuthorizationError(
            f"Role '{actor.role.value}' cannot perform this action",
            details={"required_permissions": list(permission_codes)},
        )
