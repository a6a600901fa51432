from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

VALIDATION = "validation"
EXISTS = "exists"
DUPLICATE_ROLL = "duplicate_roll"
INVALID_CREDENTIALS = "invalid_credentials"
WRONG_PASSWORD = "wrong_password"
NOT_FOUND = "not_found"
LAST_ADMIN = "last_admin"
SELF_DELETE = "self_delete"
FORBIDDEN = "forbidden"
UNAUTHENTICATED = "unauthenticated"

# Rejections that protect a standing rule rather than reject bad input
INVARIANT_CODES = frozenset({LAST_ADMIN, SELF_DELETE})


@dataclass(frozen=True)
class OpResult:
    """Outcome of a store operation.

    Stores return these instead of raising so callers can turn a rejection
    into a user-visible notice. ``data`` carries the created/updated record.
    """

    ok: bool
    code: Optional[str] = None
    message: str = ""
    data: Any = None

    @property
    def is_invariant(self) -> bool:
        return self.code in INVARIANT_CODES

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"ok": self.ok, "message": self.message}
        if self.code:
            out["code"] = self.code
        return out

    def __bool__(self) -> bool:
        return self.ok


def success(message: str = "", data: Any = None) -> OpResult:
    return OpResult(True, None, message, data)


def failure(code: str, message: str) -> OpResult:
    return OpResult(False, code, message)
