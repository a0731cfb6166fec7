from pathlib import Path
from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager
from flask_wtf import CSRFProtect
from werkzeug.exceptions import HTTPException
from .config import Config
from flask_babel import Babel

db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()
csrf = CSRFProtect()
babel = Babel()

def create_app(config=None):
    app = Flask(__name__)
    app.config.from_object(config or Config)

    # Configure logging
    import logging
    app.logger.setLevel(logging.INFO)
    handler = logging.StreamHandler()
    handler.setLevel(logging.INFO)
    formatter = logging.Formatter('[%(asctime)s] %(levelname)s in %(module)s: %(message)s')
    handler.setFormatter(formatter)
    app.logger.addHandler(handler)

    # If using a file-based SQLite URI, ensure the parent directory exists so the DB file can be created.
    db_uri = app.config.get("SQLALCHEMY_DATABASE_URI", "")
    if db_uri and db_uri.startswith("sqlite:") and "///" in db_uri and ":memory:" not in db_uri:
        parent = Path(db_uri.split("///", 1)[1]).parent
        try:
            parent.mkdir(parents=True, exist_ok=True)
        except OSError:
            app.logger.warning("Could not create SQLite directory %s", parent)

    db.init_app(app)
    migrate.init_app(app, db, directory=str(Path(__file__).resolve().parent.parent / "migrations"))
    login_manager.init_app(app)
    from .auth.tokens import load_user_from_request
    from .models import Profile

    @login_manager.user_loader
    def load_user(user_id: str):
        try:
            return db.session.get(Profile, int(user_id))
        except (TypeError, ValueError):
            return None

    # Bearer tokens issued by /auth/login; the session cookie still works for browsers
    login_manager.request_loader(load_user_from_request)

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"error": "Unauthorized"}), 401

    csrf.init_app(app)

    def get_locale():
        # allow user override via session, else Accept-Language
        from flask import session, request
        supported = list(app.config.get("SUPPORTED_LOCALES", ("en", "tr")))
        if session.get('lang') in supported:
            return session.get('lang')
        return request.accept_languages.best_match(supported)

    babel.init_app(app, locale_selector=get_locale)

    @app.after_request
    def set_security_headers(response):
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("Referrer-Policy", "no-referrer")
        return response

    # Every HTTP error leaves the API as {"error": "..."}
    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        return jsonify({"error": exc.description}), exc.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(exc: Exception):
        if isinstance(exc, HTTPException):
            return handle_http_error(exc)
        db.session.rollback()
        app.logger.exception("Unhandled error")
        return jsonify({"error": "Internal server error"}), 500

    # ヘルスチェックエンドポイント: Kubernetes の readiness/liveness probe 用
    @app.route("/health", methods=["GET"])
    def health_check():
        return ("OK", 200)

    from .auth.routes import auth_bp
    from .profiles.routes import profiles_bp
    from .organizations.routes import org_bp
    from .events.routes import events_bp
    from .bookings.routes import bookings_bp

    # JSON API: authenticated by session or bearer token, no CSRF form tokens
    for bp in (auth_bp, profiles_bp, org_bp, events_bp, bookings_bp):
        csrf.exempt(bp)
        app.register_blueprint(bp)

    from .cli import demo_cli

    app.cli.add_command(demo_cli)

    return app

