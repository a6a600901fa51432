from models import Permissions
from utils import results
from utils.permissions import ADMIN, USER, bundle_for_role
from utils.security import is_hashed


def test_register_stores_hash_not_password(identity, kv):
    result = identity.register("clerk@x.com", "clerkpass1")
    assert result.ok
    assert result.message == "User added successfully!"
    stored = next(u for u in kv.get(identity.users_key) if u["email"] == "clerk@x.com")
    assert stored["passwordHash"] != "clerkpass1"
    assert is_hashed(stored["passwordHash"])
    assert stored["role"] == USER
    assert stored["permissions"] == bundle_for_role(USER).to_dict()


def test_register_rejects_duplicate_email_case_insensitively(identity):
    assert identity.register("clerk@x.com", "clerkpass1").ok
    result = identity.register("CLERK@X.COM", "otherpass1")
    assert not result.ok
    assert result.code == results.EXISTS
    assert len(identity.list_users()) == 2


def test_register_validates_input(identity):
    assert identity.register("", "pw").code == results.VALIDATION
    assert identity.register("no-at-sign", "pw").code == results.VALIDATION
    assert identity.register("a@x.com", "").code == results.VALIDATION
    assert identity.register("a@x.com", "pw", role="owner").code == results.VALIDATION


def test_login_sets_session(identity):
    result = identity.login("ADMIN@x.com", "adminpassword")
    assert result.ok
    current = identity.current_user()
    assert current.email == "admin@x.com"
    assert current.role == ADMIN
    assert current.password_hash == ""


def test_login_failures_are_indistinguishable(identity):
    unknown = identity.login("nobody@x.com", "adminpassword")
    wrong = identity.login("admin@x.com", "nope")
    assert unknown.code == wrong.code == results.INVALID_CREDENTIALS
    assert unknown.message == wrong.message
    assert identity.current_user() is None


def test_login_never_matches_raw_stored_secret(identity, kv):
    users = kv.get(identity.users_key)
    users.append({"email": "legacy@x.com", "passwordHash": "plaintext", "role": "user", "permissions": {}})
    kv.set(identity.users_key, users)
    assert not identity.login("legacy@x.com", "plaintext").ok


def test_logout_clears_session(identity):
    identity.login("admin@x.com", "adminpassword")
    assert identity.logout().ok
    assert identity.current_user() is None


def test_cannot_demote_last_admin(identity):
    result = identity.change_role("admin@x.com", USER)
    assert result.code == results.LAST_ADMIN
    assert result.is_invariant
    assert identity.get_user("admin@x.com").role == ADMIN


def test_demote_allowed_with_second_admin(identity):
    identity.register("second@x.com", "secondpass")
    assert identity.change_role("second@x.com", ADMIN).ok
    result = identity.change_role("admin@x.com", USER)
    assert result.ok
    demoted = identity.get_user("admin@x.com")
    assert demoted.role == USER
    assert demoted.permissions == bundle_for_role(USER)


def test_change_role_resets_custom_grants(identity):
    identity.register("clerk@x.com", "clerkpass1")
    identity.update_permissions("clerk@x.com", Permissions(can_view_reports=True))
    identity.change_role("clerk@x.com", USER)
    assert identity.get_user("clerk@x.com").permissions == bundle_for_role(USER)


def test_change_role_unknown_user_or_role(identity):
    assert identity.change_role("ghost@x.com", USER).code == results.NOT_FOUND
    assert identity.change_role("admin@x.com", "owner").code == results.VALIDATION


def test_change_role_refreshes_session_copy(identity):
    identity.register("second@x.com", "secondpass")
    identity.change_role("second@x.com", ADMIN)
    identity.login("admin@x.com", "adminpassword")
    identity.change_role("admin@x.com", USER)
    assert identity.current_user().role == USER


def test_update_permissions_refreshes_session_copy(identity):
    identity.register("clerk@x.com", "clerkpass1")
    identity.login("clerk@x.com", "clerkpass1")
    assert not identity.current_user().permissions.can_manage_payments
    result = identity.update_permissions("clerk@x.com", Permissions(can_manage_payments=True))
    assert result.ok
    assert identity.current_user().permissions.can_manage_payments
    assert not identity.current_user().permissions.can_view_students


def test_update_permissions_unknown_user(identity):
    assert identity.update_permissions("ghost@x.com", Permissions()).code == results.NOT_FOUND


def test_change_password(identity):
    identity.login("admin@x.com", "adminpassword")
    assert identity.change_password("admin@x.com", "wrong", "newpassword1").code == results.WRONG_PASSWORD
    assert identity.change_password("admin@x.com", "adminpassword", "short").code == results.VALIDATION
    assert identity.change_password("admin@x.com", "adminpassword", "newpassword1").ok
    identity.logout()
    assert not identity.login("admin@x.com", "adminpassword").ok
    assert identity.login("admin@x.com", "newpassword1").ok


def test_cannot_delete_self(identity):
    identity.register("second@x.com", "secondpass")
    identity.change_role("second@x.com", ADMIN)
    identity.login("admin@x.com", "adminpassword")
    result = identity.delete_user("ADMIN@x.com")
    assert result.code == results.SELF_DELETE
    assert identity.get_user("admin@x.com") is not None


def test_cannot_delete_last_admin(identity):
    identity.register("clerk@x.com", "clerkpass1")
    identity.login("clerk@x.com", "clerkpass1")
    result = identity.delete_user("admin@x.com")
    assert result.code == results.LAST_ADMIN
    assert identity.get_user("admin@x.com") is not None


def test_delete_plain_user(identity):
    identity.register("clerk@x.com", "clerkpass1")
    identity.login("admin@x.com", "adminpassword")
    result = identity.delete_user("clerk@x.com")
    assert result.ok
    assert result.message == "User clerk@x.com deleted."
    assert identity.get_user("clerk@x.com") is None
    assert identity.delete_user("clerk@x.com").code == results.NOT_FOUND
