"""Flask application factory for the civic issue reporting and transparency service."""
import os
from typing import Optional

import click
from flask import Flask, g, jsonify, request
from sqlalchemy import create_engine, text
from sqlalchemy.engine.url import make_url
from sqlalchemy.exc import OperationalError
from werkzeug.exceptions import HTTPException
from dotenv import load_dotenv

from utils.errors import AuthorizationError, ServiceError
from utils.logger import REQUEST_ID_HEADER, assign_request_id, init_logging
from utils.security import apply_security_headers
from extensions import csrf, db, migrate, login_manager

CONFIG_ALIASES = {
    "development": "DevelopmentConfig",
    "dev": "DevelopmentConfig",
    "production": "ProductionConfig",
    "prod": "ProductionConfig",
    "testing": "TestingConfig",
    "test": "TestingConfig",
}


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ServiceError)
    def service_error(error: ServiceError):
        # Authorization failures never explain themselves to the client.
        if isinstance(error, AuthorizationError):
            app.logger.warning("Authorization denied", extra={"path": request.path, "reason": error.message})
            message = error.public_message
        elif error.status_code >= 500:
            app.logger.error("Service unavailable", extra={"path": request.path, "reason": error.message})
            message = error.public_message
        else:
            message = error.message
        return jsonify({"error": type(error).__name__, "message": message}), error.status_code

    @app.errorhandler(HTTPException)
    def http_error(error: HTTPException):
        log = app.logger.error if (error.code or 500) >= 500 else app.logger.warning
        log("HTTP %s", error.code, extra={"path": request.path, "method": request.method})
        return jsonify({"error": error.name, "message": error.description}), error.code

    @app.errorhandler(Exception)
    def unhandled_error(error):
        app.logger.exception("Unhandled error", extra={"path": request.path, "method": request.method})
        db.session.rollback()
        return jsonify({"error": "Internal Server Error", "message": "Unexpected error"}), 500


def bootstrap_admin(app: Flask) -> None:
    """Create (or reactivate) the configured admin account and grant it the admin role."""
    from models import User  # Local import to avoid circular dependency
    from utils.access_policy import grant_role

    email = (app.config.get("DEFAULT_ADMIN_EMAIL") or "").lower().strip()
    password = app.config.get("DEFAULT_ADMIN_PASSWORD") or ""
    if not email or not password:
        return

    user = User.query.filter_by(email=email).first()
    if user is None:
        user = User(full_name="Portal Administrator", email=email, is_active=True)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        app.logger.info("Bootstrap admin created", extra={"user_id": user.id})
    elif not user.is_active:
        user.is_active = True
        db.session.commit()
    grant_role(user.id, "admin")


def prepare_database(app: Flask) -> None:
    """Make sure the configured database can be opened before tables are created.

    SQLite needs its parent directory; PostgreSQL databases are created through
    the maintenance database when missing.
    """
    url = make_url(app.config["SQLALCHEMY_DATABASE_URI"])

    if url.drivername.startswith("sqlite"):
        if url.database and url.database != ":memory:":
            os.makedirs(os.path.dirname(url.database) or ".", exist_ok=True)
        return
    if not url.drivername.startswith("postgres"):
        return

    maintenance = create_engine(
        url.set(database=os.getenv("POSTGRES_DB_ADMIN", "postgres")), isolation_level="AUTOCOMMIT"
    )
    try:
        with maintenance.connect() as conn:
            found = conn.execute(
                text("SELECT 1 FROM pg_database WHERE datname = :name"), {"name": url.database}
            ).scalar()
            if not found:
                conn.execute(text(f'CREATE DATABASE "{url.database}"'))
                app.logger.info("Database created", extra={"database": url.database})
    except OperationalError:
        # Startup still fails on create_all when the server is really unreachable.
        app.logger.warning("Could not verify database", extra={"database": url.database}, exc_info=True)
    finally:
        maintenance.dispose()


def register_cli(app: Flask) -> None:
    @app.cli.command("seed-reference")
    def seed_reference():
        """Load demo projects and a budget flow when they are missing."""
        from utils.reference_data import seed_reference_data

        projects_added, budget_added = seed_reference_data()
        click.echo(f"Projects added: {projects_added}; budget added: {'yes' if budget_added else 'no'}")

    @app.cli.command("grant-role")
    @click.argument("email")
    @click.argument("role")
    def grant_role_command(email, role):
        """Grant ROLE (citizen, official, admin) to the user registered with EMAIL."""
        from models import User
        from utils.access_policy import grant_role

        user = User.query.filter_by(email=email.lower().strip()).first()
        if not user:
            raise click.ClickException(f"No user registered with {email}")
        try:
            grant_role(user.id, role)
        except ServiceError as exc:
            raise click.ClickException(exc.message) from exc
        click.echo(f"Granted {role.lower()} to {user.email}")


def create_app(config_name: Optional[str] = None) -> Flask:
    """Build the API app; ``config_name`` falls back to FLASK_CONFIG, then FLASK_ENV."""
    load_dotenv()

    import config

    app = Flask(__name__, instance_relative_config=True)
    config_key = (config_name or os.getenv("FLASK_CONFIG") or os.getenv("FLASK_ENV") or "production").lower()
    config_class = getattr(config, CONFIG_ALIASES.get(config_key, "ProductionConfig"))
    app.config.from_object(config_class())

    if not app.config.get("TESTING"):
        # instance/config.py may override secrets per deployment
        app.config.from_pyfile("config.py", silent=True)
        os.makedirs(app.instance_path, exist_ok=True)

    init_logging(app)
    prepare_database(app)

    csrf.init_app(app)
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    login_manager.session_protection = "strong"

    @login_manager.user_loader
    def load_user(user_id):
        from models import User  # Local import to avoid circular dependency

        return db.session.get(User, str(user_id)) if user_id else None

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"error": "Unauthorized", "message": "Authentication required"}), 401

    from routes import main_bp, auth_bp, complaints_bp, transparency_bp

    for blueprint in (main_bp, complaints_bp, transparency_bp):
        app.register_blueprint(blueprint)
    app.register_blueprint(auth_bp, url_prefix="/auth")

    register_error_handlers(app)
    register_cli(app)

    @app.before_request
    def _tag_request() -> None:
        assign_request_id()

    @app.after_request
    def _finalize_response(response):
        response.headers.setdefault(REQUEST_ID_HEADER, getattr(g, "request_id", ""))
        return apply_security_headers(response, force_https=app.config.get("PREFERRED_URL_SCHEME") == "https")

    with app.app_context():
        db.create_all()
        bootstrap_admin(app)

    return app


if __name__ == "__main__":
    create_app().run(host="0.0.0.0", port=int(os.getenv("PORT", 5000)), use_reloader=False)
