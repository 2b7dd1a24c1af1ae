"""
Development entrypoint: python -m api
In production run create_app() under a WSGI server (gunicorn/uwsgi) instead.
"""
import logging
import os

from . import create_app

logger = logging.getLogger("api")


def main():
    app = create_app(os.getenv("APP_ENV"))
    services = app.extensions["credentials"]
    logger.info(
        "starting izin-api auth (env=%s, db=%s, refresh token hashing=%s)",
        app.config["APP_ENV"], services.storage.dialect, services.store.hashing_label,
    )
    host = os.getenv("FLASK_RUN_HOST", "0.0.0.0")
    port = int(os.getenv("FLASK_RUN_PORT", "8000"))
    app.run(host=host, port=port, debug=app.config.get("DEBUG", False))


if __name__ == "__main__":
    main()
