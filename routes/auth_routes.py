from flask import Blueprint, current_app, jsonify, session

from extensions import limiter
from routes.common import error_response, json_body, result_response, session_user
from utils import results
from utils.permissions import login_required
from utils.users import IdentityStore


def _login_limit() -> str:
    return current_app.config.get("LOGIN_RATE_LIMIT", "10 per minute")


def make_auth_bp(identity: IdentityStore) -> Blueprint:
    auth_bp = Blueprint('auth', __name__, url_prefix='/auth')

    def current_user():
        return session_user(identity)

    @auth_bp.route('/login', methods=['POST'])
    # Rate limit login POSTs only
    @limiter.limit(_login_limit, methods=['POST'])
    def login():
        """Sign in with email + password.

        Unknown email and wrong password give the same 401 answer. The cookie
        session records who signed in on this client.
        """
        data = json_body()
        result = identity.login(data.get("email") or "", data.get("password") or "")
        if not result.ok:
            return result_response(result)
        session.clear()
        session["user_email"] = result.data.email
        return result_response(result, extra={"user": result.data.public_dict()})

    @auth_bp.route('/logout', methods=['POST'])
    def logout():
        # Only the client that owns the login may end it
        if current_user() is not None:
            identity.logout()
        session.pop("user_email", None)
        return result_response(results.success("You have been logged out."))

    @auth_bp.route('/me', methods=['GET'])
    @login_required(current_user)
    def me():
        return jsonify({"ok": True, "user": current_user().public_dict()})

    @auth_bp.route('/password', methods=['POST'])
    @login_required(current_user)
    def change_password():
        data = json_body()
        new_password = data.get("newPassword") or ""
        if "confirmPassword" in data and data.get("confirmPassword") != new_password:
            return error_response(results.VALIDATION, "New passwords do not match.")
        user = current_user()
        result = identity.change_password(user.email, data.get("currentPassword") or "", new_password)
        if not result.ok:
            current_app.logger.info("Password change rejected for %s: %s", user.email, result.code)
        return result_response(result)

    return auth_bp
