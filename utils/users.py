from __future__ import annotations

import logging
from typing import Dict, List, Optional

from models import Permissions, User
from utils import results
from utils.kv import KeyValueStore
from utils.permissions import ROLES, USER, bundle_for_role, would_orphan_admins
from utils.results import OpResult, failure, success
from utils.security import hash_password, verify_password

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_KEYS = {
    "users": "feeManager_appUsersData",
    "session": "feeManager_loggedInFeeUser",
}


class IdentityStore:
    """User accounts plus the single signed-in session.

    Every mutation reads the whole users collection, changes it and writes it
    back. The session keeps a copy of the signed-in account; mutations that
    touch that account refresh the copy.
    """

    def __init__(
        self,
        kv: KeyValueStore,
        keys: Optional[Dict[str, str]] = None,
        min_password_length: int = 8,
        password_method: str = "pbkdf2:sha256",
    ):
        self.kv = kv
        keys = keys or {}
        self.users_key = keys.get("users", DEFAULT_STORAGE_KEYS["users"])
        self.session_key = keys.get("session", DEFAULT_STORAGE_KEYS["session"])
        self.min_password_length = min_password_length
        self.password_method = password_method

    # ---------- persistence ----------
    def _load(self) -> List[User]:
        return [User.from_dict(u) for u in self.kv.get(self.users_key, []) or []]

    def _save(self, users: List[User]) -> None:
        self.kv.set(self.users_key, [u.to_dict() for u in users])

    def _set_session(self, user: Optional[User]) -> None:
        if user is None:
            self.kv.remove(self.session_key)
        else:
            self.kv.set(self.session_key, user.public_dict())

    def _refresh_session(self, user: User) -> None:
        current = self.current_user()
        if current is not None and current.email.lower() == user.email.lower():
            self._set_session(user)

    @staticmethod
    def _find(users: List[User], email: str) -> Optional[User]:
        target = (email or "").strip().lower()
        return next((u for u in users if u.email.lower() == target), None)

    def is_initialized(self) -> bool:
        return self.kv.get(self.users_key) is not None

    # ---------- reads ----------
    def list_users(self) -> List[User]:
        return self._load()

    def get_user(self, email: str) -> Optional[User]:
        return self._find(self._load(), email)

    def current_user(self) -> Optional[User]:
        data = self.kv.get(self.session_key)
        if not data:
            return None
        return User.from_dict(data)

    # ---------- session ----------
    def login(self, email: str, password: str) -> OpResult:
        user = self.get_user(email)
        if user is None or not verify_password(user.password_hash, password):
            # Same answer for unknown email and wrong password
            logger.warning("Failed login for %s", (email or "").strip().lower())
            return failure(results.INVALID_CREDENTIALS, "Invalid email or password.")
        self._set_session(user)
        logger.info("User %s logged in", user.email)
        return success("Login successful!", data=user)

    def logout(self) -> OpResult:
        self._set_session(None)
        return success("You have been logged out.")

    # ---------- account mutations ----------
    def register(self, email: str, password: str, role: str = USER) -> OpResult:
        """Create an account.

        Registration through the user-management surface always passes the
        default ``user`` role; ``admin`` is only used when seeding the first
        account.
        """
        email = (email or "").strip()
        if not email or "@" not in email:
            return failure(results.VALIDATION, "A valid email is required.")
        if not password:
            return failure(results.VALIDATION, "Password is required.")
        if role not in ROLES:
            return failure(results.VALIDATION, f"Unknown role: {role}.")
        users = self._load()
        if self._find(users, email) is not None:
            return failure(results.EXISTS, "User with this email already exists.")
        user = User(
            email=email,
            password_hash=hash_password(password, method=self.password_method),
            role=role,
            permissions=bundle_for_role(role),
        )
        users.append(user)
        self._save(users)
        logger.info("Registered user %s (%s)", email, role)
        return success("User added successfully!", data=user)

    def change_role(self, email: str, new_role: str) -> OpResult:
        """Set the role and reset permissions to that role's bundle.

        Explicit grants made through ``update_permissions`` are dropped.
        """
        if new_role not in ROLES:
            return failure(results.VALIDATION, f"Unknown role: {new_role}.")
        users = self._load()
        user = self._find(users, email)
        if user is None:
            return failure(results.NOT_FOUND, "User not found.")
        if would_orphan_admins(users, user.email, new_role=new_role):
            logger.warning("Refused to demote last admin %s", user.email)
            return failure(results.LAST_ADMIN, "Cannot demote the last admin.")
        user.role = new_role
        user.permissions = bundle_for_role(new_role)
        self._save(users)
        self._refresh_session(user)
        logger.info("Role of %s changed to %s", user.email, new_role)
        return success(f"Role updated to {new_role}.", data=user)

    def update_permissions(self, email: str, permissions: Permissions) -> OpResult:
        users = self._load()
        user = self._find(users, email)
        if user is None:
            return failure(results.NOT_FOUND, "User not found.")
        user.permissions = permissions.copy()
        self._save(users)
        self._refresh_session(user)
        logger.info("Permissions of %s updated", user.email)
        return success("Permissions updated.", data=user)

    def change_password(self, email: str, old_password: str, new_password: str) -> OpResult:
        users = self._load()
        user = self._find(users, email)
        if user is None:
            return failure(results.NOT_FOUND, "User not found.")
        if not verify_password(user.password_hash, old_password):
            return failure(results.WRONG_PASSWORD, "Incorrect current password.")
        if len(new_password or "") < self.min_password_length:
            return failure(
                results.VALIDATION,
                f"New password must be at least {self.min_password_length} characters long.",
            )
        user.password_hash = hash_password(new_password, method=self.password_method)
        self._save(users)
        self._refresh_session(user)
        logger.info("Password changed for %s", user.email)
        return success("Password updated successfully.")

    def delete_user(self, email: str) -> OpResult:
        users = self._load()
        user = self._find(users, email)
        if user is None:
            return failure(results.NOT_FOUND, "User not found.")
        current = self.current_user()
        if current is not None and current.email.lower() == user.email.lower():
            return failure(results.SELF_DELETE, "You cannot delete yourself.")
        if would_orphan_admins(users, user.email):
            logger.warning("Refused to delete last admin %s", user.email)
            return failure(results.LAST_ADMIN, "Cannot delete the last admin.")
        self._save([u for u in users if u is not user])
        logger.info("Deleted user %s", user.email)
        return success(f"User {user.email} deleted.")
