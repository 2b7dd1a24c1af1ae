"""
Environment-aware configuration.
Flask config classes read the environment (and .env) once at import;
credential_settings() freezes the signing/hashing part into an immutable
object handed to the Signer and CredentialStore.
"""
import os
from dotenv import load_dotenv
from datetime import timedelta

from utils.security import CredentialSettings
from utils.token_hash import hashing_mode

load_dotenv()  # Read .env if present


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class BaseConfig:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")  # Set a strong key in production
    DEBUG = False
    TESTING = False
    # CORS: in dev we usually allow '*', in prod supply a comma-separated list in env
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")
    # Keep a copy of env for visibility
    APP_ENV = os.getenv("APP_ENV", "dev")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///izin-auth.db")
    SQL_ECHO = _env_flag("SQL_ECHO")
    # Access and refresh tokens are signed with different secrets
    JWT_SECRET = os.getenv("JWT_SECRET", "dev-access-secret-change-me-0123456789")
    JWT_REFRESH_SECRET = os.getenv("JWT_REFRESH_SECRET", "dev-refresh-secret-change-me-0123456789")
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
    JWT_ISSUER = os.getenv("JWT_ISSUER", "izin-api")
    ACCESS_TOKEN_EXPIRES = timedelta(seconds=int(os.getenv("ACCESS_TOKEN_EXPIRES_SECONDS", "900")))
    REFRESH_TOKEN_EXPIRES = timedelta(seconds=int(os.getenv("REFRESH_TOKEN_EXPIRES_SECONDS", "604800")))
    # Keys the stored refresh token digest (HMAC-SHA256); plain SHA-256 when unset
    REFRESH_TOKEN_SECRET = os.getenv("REFRESH_TOKEN_SECRET") or None
    ALLOWED_ROLES = os.getenv("ALLOWED_ROLES", "admin,ik,employee").split(",")


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    # In dev, propagate exceptions so our error handler has full context
    PROPAGATE_EXCEPTIONS = True
    LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")


class TestingConfig(BaseConfig):
    TESTING = True
    DATABASE_URL = "sqlite:///izin-auth-test.db"
    JWT_SECRET = "test-access-secret-0123456789abcdef0123456789"
    JWT_REFRESH_SECRET = "test-refresh-secret-0123456789abcdef012345678"
    REFRESH_TOKEN_SECRET = None


class ProductionConfig(BaseConfig):
    DEBUG = False


def get_config(name: str | None):
    """
    Select config class.
    - If name is provided, choose by name.
    - Else choose based on APP_ENV (dev/test/prod).
    """
    if name:
        name = name.lower()
    env = (name or os.getenv("APP_ENV", "dev")).lower()
    if env in ["prod", "production"]:
        return ProductionConfig
    if env in ["test", "testing"]:
        return TestingConfig
    return DevelopmentConfig


def credential_settings(config) -> CredentialSettings:
    """Build the immutable signing/hashing settings from a Flask config mapping."""
    return CredentialSettings(
        access_secret=config["JWT_SECRET"],
        refresh_secret=config["JWT_REFRESH_SECRET"],
        access_ttl=config["ACCESS_TOKEN_EXPIRES"],
        refresh_ttl=config["REFRESH_TOKEN_EXPIRES"],
        issuer=config["JWT_ISSUER"],
        algorithm=config["JWT_ALGORITHM"],
        hashing=hashing_mode(config.get("REFRESH_TOKEN_SECRET")),
    )
