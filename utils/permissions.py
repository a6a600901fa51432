from __future__ import annotations

from dataclasses import fields
from functools import wraps
from typing import Any, Callable, Iterable, Optional, TypeVar, cast

from flask import jsonify

from models import Permissions, User
from utils import results

F = TypeVar("F", bound=Callable[..., Any])

ADMIN = "admin"
USER = "user"
ROLES = (ADMIN, USER)

PERMISSION_FLAGS = tuple(f.name for f in fields(Permissions))

ADMIN_PERMISSIONS = Permissions(**{name: True for name in PERMISSION_FLAGS})
DEFAULT_USER_PERMISSIONS = Permissions(
    can_view_students=True,
    can_view_dashboard_summary=True,
)


def bundle_for_role(role: str) -> Permissions:
    if role == ADMIN:
        return ADMIN_PERMISSIONS.copy()
    if role == USER:
        return DEFAULT_USER_PERMISSIONS.copy()
    raise ValueError(f"Unknown role: {role!r}")


def has_permission(user: Optional[User], capability: str) -> bool:
    if user is None or capability not in PERMISSION_FLAGS:
        return False
    return bool(getattr(user.permissions, capability))


def count_admins(users: Iterable[User]) -> int:
    return sum(1 for u in users if u.role == ADMIN)


def would_orphan_admins(users: list[User], email: str, new_role: Optional[str] = None) -> bool:
    """True when demoting (``new_role`` given) or deleting ``email`` leaves no admin."""
    target = next((u for u in users if u.email.lower() == email.lower()), None)
    if target is None or target.role != ADMIN or new_role == ADMIN:
        return False
    return count_admins(users) <= 1


def permission_required(capability: str, current_user: Callable[[], Optional[User]]) -> Callable[[F], F]:
    """Decorator that requires the signed-in user to hold ``capability``.

    ``current_user`` is the identity store's session lookup, passed in by the
    blueprint that owns the view.

    - No session: 401 JSON.
    - Session without the flag: 403 JSON.
    """
    if capability not in PERMISSION_FLAGS:
        raise ValueError(f"Unknown capability: {capability!r}")

    def decorator(func: F) -> F:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any):
            user = current_user()
            if user is None:
                return jsonify({"ok": False, "code": results.UNAUTHENTICATED, "message": "Please log in."}), 401
            if not has_permission(user, capability):
                return (
                    jsonify({"ok": False, "code": results.FORBIDDEN, "message": "You don't have permission to do that."}),
                    403,
                )
            return func(*args, **kwargs)

        return cast(F, wrapper)

    return decorator


def login_required(current_user: Callable[[], Optional[User]]) -> Callable[[F], F]:
    """Decorator that only requires somebody to be signed in."""

    def decorator(func: F) -> F:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any):
            if current_user() is None:
                return jsonify({"ok": False, "code": results.UNAUTHENTICATED, "message": "Please log in."}), 401
            return func(*args, **kwargs)

        return cast(F, wrapper)

    return decorator
