# shop/identity.py — who is calling: anonymous, customer or admin
from dataclasses import dataclass
from typing import Any, Optional

ANONYMOUS = "anonymous"
CUSTOMER = "customer"
ADMIN = "admin"


@dataclass(frozen=True)
class Actor:
    kind: str
    user_id: Optional[int] = None
    user: Any = None

    @property
    def is_authenticated(self) -> bool:
        return self.kind in (CUSTOMER, ADMIN)

    @property
    def is_admin(self) -> bool:
        return self.kind == ADMIN

    @classmethod
    def anonymous(cls) -> "Actor":
        return cls(kind=ANONYMOUS)

    @classmethod
    def for_user(cls, user) -> "Actor":
        if user is None or not getattr(user, "is_authenticated", False) or not user.is_active:
            return cls.anonymous()
        return cls(kind=ADMIN if user.is_staff else CUSTOMER, user_id=user.pk, user=user)


def resolve_actor(request) -> Actor:
    """request.user was already set by DRF (token or session); we only classify it."""
    return Actor.for_user(getattr(request, "user", None))
