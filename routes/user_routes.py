from flask import Blueprint, jsonify

from models import Permissions
from routes.common import error_response, json_body, result_response, session_user
from utils import results
from utils.permissions import permission_required
from utils.users import IdentityStore


def make_user_bp(identity: IdentityStore) -> Blueprint:
    """User administration; every view needs ``can_manage_users``."""
    user_bp = Blueprint('users', __name__, url_prefix='/users')
    manage_users = permission_required("can_manage_users", lambda: session_user(identity))

    @user_bp.route('', methods=['GET'])
    @manage_users
    def list_users():
        return jsonify({"ok": True, "users": [u.public_dict() for u in identity.list_users()]})

    @user_bp.route('', methods=['POST'])
    @manage_users
    def add_user():
        data = json_body()
        password = data.get("password") or ""
        if "confirmPassword" in data and data.get("confirmPassword") != password:
            return error_response(results.VALIDATION, "Passwords do not match.")
        result = identity.register(data.get("email") or "", password)
        extra = {"user": result.data.public_dict()} if result.ok else None
        return result_response(result, ok_status=201, extra=extra)

    @user_bp.route('/<email>/role', methods=['PUT'])
    @manage_users
    def change_role(email):
        result = identity.change_role(email, (json_body().get("role") or "").strip())
        extra = {"user": result.data.public_dict()} if result.ok else None
        return result_response(result, extra=extra)

    @user_bp.route('/<email>/permissions', methods=['PUT'])
    @manage_users
    def update_permissions(email):
        data = json_body()
        flags = data.get("permissions")
        if not isinstance(flags, dict):
            return error_response(results.VALIDATION, "A permissions object is required.")
        if any(not isinstance(value, bool) for value in flags.values()):
            return error_response(results.VALIDATION, "Permission flags must be true or false.")
        result = identity.update_permissions(email, Permissions.from_dict(flags))
        extra = {"user": result.data.public_dict()} if result.ok else None
        return result_response(result, extra=extra)

    @user_bp.route('/<email>', methods=['DELETE'])
    @manage_users
    def delete_user(email):
        return result_response(identity.delete_user(email))

    return user_bp
