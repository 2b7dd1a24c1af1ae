from dataclasses import dataclass
import logging

import click
from flask import Flask
from flasgger import Swagger
from flask_cors import CORS

from .config import get_config, credential_settings
from .errors import register_error_handlers
from .rotation import RotationProtocol
from models.credential_store import CredentialStore
from models.db_storage import DBStorage
from models.principal_directory import PrincipalDirectory
from utils.security import Signer

# Minimal Swagger config: exposes /swagger.json and UI at /apidocs
SWAGGER_TEMPLATE = {
    "swagger": "2.0.0",
    "info": {
        "title": "izin-api Auth",
        "version": "1.0.0",
        "description": "Login, refresh-token rotation, logout and session revocation.",
    },
    "basePath": "/",
    "schemes": ["http"],
    "securityDefinitions": {
        "Bearer": {
            "type": "apiKey",
            "name": "Authorization",
            "in": "header",
            "description": "Enter the access token with the `Bearer ` prefix, e.g. \"Bearer abcde12345\"."
        }
    }
}

SWAGGER_CONFIG = {
    "headers": [],
    "specs": [
        {
            "endpoint": "apispec_1",
            "route": "/swagger.json",
            "rule_filter": lambda rule: True,   # include all endpoints
            "model_filter": lambda tag: True,   # include all models
        }
    ],
    "static_url_path": "/flasgger_static",
    "swagger_ui": True,
    "specs_route": "/apidocs/",
}


@dataclass(frozen=True)
class CredentialServices:
    """Everything the auth endpoints need, built once per app."""
    storage: DBStorage
    signer: Signer
    store: CredentialStore
    directory: PrincipalDirectory
    protocol: RotationProtocol


def build_services(config) -> CredentialServices:
    settings = credential_settings(config)
    storage = DBStorage(config["DATABASE_URL"], echo=config.get("SQL_ECHO", False))
    storage.reload()
    signer = Signer(settings)
    store = CredentialStore(storage, settings.hashing)
    directory = PrincipalDirectory(storage)
    protocol = RotationProtocol(signer, store, directory)
    return CredentialServices(storage, signer, store, directory, protocol)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def create_app(config_name: str | None = None, config_overrides: dict | None = None) -> Flask:
    """
    Application factory: creates and configures the Flask app.
    Signing secrets, TTLs and the hashing mode are resolved here, once,
    and handed to the services stored in app.extensions["credentials"].
    """
    app = Flask(__name__)

    # Load configuration (reads .env via get_config)
    app.config.from_object(get_config(config_name))
    if config_overrides:
        app.config.update(config_overrides)

    configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    # Cross-Origin Resource Sharing: enable for dev, configurable for prod
    CORS(app, resources={r"/*": {"origins": app.config.get("CORS_ORIGINS", "*")}})

    # Swagger UI and JSON
    Swagger(app, template=SWAGGER_TEMPLATE, config=SWAGGER_CONFIG)

    # Register global error handlers that return the uniform error envelope
    register_error_handlers(app)

    services = build_services(app.config)
    app.extensions["credentials"] = services

    from .health import bp as health_bp
    from .auth import bp as auth_bp

    app.register_blueprint(health_bp, url_prefix="/api/v1")
    app.register_blueprint(auth_bp)

    # Ensure the DB session is removed at the end of each request/app context
    @app.teardown_appcontext
    def remove_session(exception=None):
        services.storage.close()

    @app.cli.command("create-user")
    @click.argument("email")
    @click.password_option()
    @click.option("--role", default="employee", show_default=True)
    @click.option("--department-id", type=int, default=None)
    def create_user(email, password, role, department_id):
        """Provision a user that can log in (bootstrap only)."""
        if role not in app.config["ALLOWED_ROLES"]:
            raise click.BadParameter(f"role must be one of {app.config['ALLOWED_ROLES']}")
        principal = services.directory.add_user(email, password, role=role, department_id=department_id)
        click.echo(f"created user {principal.id} <{principal.email}> role={principal.role}")

    @app.route("/")
    def root():
        return {
            "message": "Welcome to izin-api auth",
            "docs": "/apidocs/",
            "health": "/api/v1/health",
        }, 200

    return app
