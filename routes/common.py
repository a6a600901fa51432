from __future__ import annotations

from typing import Any, Dict, Optional
from zoneinfo import ZoneInfo

from flask import current_app, jsonify, request, session

from utils import results
from utils.results import OpResult
from utils.users import IdentityStore

STATUS_BY_CODE = {
    results.VALIDATION: 400,
    results.WRONG_PASSWORD: 400,
    results.INVALID_CREDENTIALS: 401,
    results.UNAUTHENTICATED: 401,
    results.FORBIDDEN: 403,
    results.NOT_FOUND: 404,
    results.EXISTS: 409,
    results.DUPLICATE_ROLL: 409,
    results.LAST_ADMIN: 409,
    results.SELF_DELETE: 409,
}


def json_body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def result_response(result: OpResult, ok_status: int = 200, extra: Optional[Dict[str, Any]] = None):
    payload = result.to_dict()
    if extra:
        payload.update(extra)
    if result.ok:
        return jsonify(payload), ok_status
    return jsonify(payload), STATUS_BY_CODE.get(result.code, 400)


def error_response(code: str, message: str):
    return result_response(results.failure(code, message))


def display_tz() -> ZoneInfo:
    return ZoneInfo(current_app.config.get("DISPLAY_TIMEZONE", "Asia/Kolkata"))


def session_user(identity: IdentityStore):
    """The signed-in user, but only for the client whose cookie holds that login."""
    email = session.get("user_email")
    if not email:
        return None
    user = identity.current_user()
    if user is None or user.email.lower() != str(email).lower():
        return None
    return user
