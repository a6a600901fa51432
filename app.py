import logging
import os

from flask import Flask, jsonify

from config import Config
from extensions import db, limiter
from routes.auth_routes import make_auth_bp
from routes.report_routes import make_report_bp
from routes.student_routes import make_student_bp
from routes.user_routes import make_user_bp
from utils.kv import KeyValueStore, SqlKeyValueStore
from utils.seed import seed_defaults
from utils.students import StudentRoster
from utils.users import IdentityStore


def create_app(config_object=None, kv: KeyValueStore | None = None) -> Flask:
    """Build the Flask app.

    ``kv`` is the key-value capability holding users, students and the
    session. Without one, rows are stored through Flask-SQLAlchemy at
    ``SQLALCHEMY_DATABASE_URI``.
    """
    app = Flask(__name__)

    # Load configuration from Config (falls back to sensible defaults inside Config)
    app.config.from_object(config_object or Config)
    app.json.sort_keys = False

    if not app.debug and not app.testing:
        app.logger.setLevel(logging.INFO)

    db.init_app(app)
    limiter.init_app(app)

    if kv is None:
        with app.app_context():
            db.create_all()
        kv = SqlKeyValueStore(db)

    keys = app.config["STORAGE_KEYS"]
    identity = IdentityStore(
        kv,
        keys=keys,
        min_password_length=app.config.get("MIN_PASSWORD_LENGTH", 8),
        password_method=app.config.get("PASSWORD_HASH_METHOD", "pbkdf2:sha256"),
    )
    roster = StudentRoster(kv, key=keys["students"])

    with app.app_context():
        seed_defaults(identity, roster, app.config)

    app.extensions["feedesk"] = {"identity": identity, "roster": roster, "kv": kv}

    app.register_blueprint(make_auth_bp(identity))
    app.register_blueprint(make_student_bp(roster, identity))
    app.register_blueprint(make_user_bp(identity))
    app.register_blueprint(make_report_bp(roster, identity))

    @app.route("/health")
    def health():
        return jsonify({"ok": True, "app": app.config.get("APP_NAME")})

    @app.errorhandler(404)
    def _not_found(_e):
        return jsonify({"ok": False, "code": "not_found", "message": "Not found."}), 404

    @app.errorhandler(405)
    def _method_not_allowed(_e):
        return jsonify({"ok": False, "code": "method_not_allowed", "message": "Method not allowed."}), 405

    @app.errorhandler(429)
    def _rate_limited(e):
        app.logger.warning("Rate limit hit: %s", e.description)
        return jsonify({"ok": False, "code": "rate_limited", "message": "Too many attempts. Try again later."}), 429

    return app


# ---------- RUN ----------
if __name__ == "__main__":
    port = int(os.environ.get("PORT", "5000"))
    create_app().run(host="0.0.0.0", port=port, debug=os.environ.get("FLASK_DEBUG") == "1")
