from __future__ import annotations
from functools import wraps
from flask import request, g, abort, current_app

from utils.exceptions import SignatureInvalid


def jwt_required():
    """Require a valid access token in the Authorization header."""
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            auth = request.headers.get("Authorization", "")
            if not auth.startswith("Bearer "):
                abort(401, description="Missing or invalid Authorization header")
            token = auth.split(" ", 1)[1].strip()
            services = current_app.extensions["credentials"]
            try:
                decoded = services.signer.verify_access(token)
            except SignatureInvalid as e:
                abort(401, description=str(e))

            principal = services.directory.find_by_id(decoded["id"])
            if not principal:
                abort(401, description="User not found")
            g.current_principal = principal
            g.current_token_jti = decoded.get("jti")
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def roles_required(required_roles: list[str]):
    """
    Allow access if the current principal's role is one of required_roles.
    """
    req = set(required_roles or [])

    def decorator(fn):
        @wraps(fn)
        @jwt_required()
        def wrapper(*args, **kwargs):
            if g.current_principal.role not in req:
                abort(403, description="Insufficient role")
            return fn(*args, **kwargs)

        return wrapper

    return decorator
