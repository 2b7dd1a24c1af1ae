"""
Authentication blueprint:
- POST /auth/login
- POST /auth/refresh-token
- POST /auth/logout
- POST /auth/users/<user_id>/revoke (admin only) -> expire every session of a user

The implementation:
- Uses argon2 for password verification (via utils.security)
- Issues short-lived access tokens and long-lived refresh tokens (JWTs, separate secrets)
- Stores only a hash of the refresh token, one row per user, rotated on every refresh
- Never echoes a token or password back in error messages
"""
from __future__ import annotations

from flask import Blueprint, request, jsonify, g, current_app

from models.schemas.auth import LoginSchema, RefreshTokenSchema, LoginOutSchema, TokenPairOutSchema
from utils.decorators import roles_required

bp = Blueprint("auth", __name__, url_prefix="/auth")

login_schema = LoginSchema()
refresh_token_schema = RefreshTokenSchema()
login_out_schema = LoginOutSchema()
token_pair_out_schema = TokenPairOutSchema()


def _protocol():
    return current_app.extensions["credentials"].protocol


@bp.post("/login")
def login():
    """
    Login: return user info, access token and refresh token
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           required: [email, password]
           properties:
             email: { type: string }
             password: { type: string }
    responses:
      200:
        description: OK (returns tokens)
      400:
        description: Validation error
      401:
        description: Wrong password
      404:
        description: Unknown email
    """
    payload = request.get_json(silent=True) or {}
    data = login_schema.load(payload)

    result = _protocol().login(data["email"], data["password"])
    principal = result.principal

    return jsonify(
        {
            "data": login_out_schema.dump(
                {
                    "id": principal.id,
                    "email": principal.email,
                    "role": principal.role,
                    "department_id": principal.department_id,
                    "access_token": result.access_token,
                    "refresh_token": result.refresh_token,
                }
            ),
            "message": "Login successful",
        }
    ), 200


@bp.post("/refresh-token")
def refresh_token():
    """
    Use a refresh token to obtain a new access and refresh token (rotation)
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           required: [refreshToken]
           properties:
             refreshToken: { type: string }
    responses:
      200:
        description: OK (returns new tokens; the presented one is spent)
      400:
        description: Validation error
      403:
        description: Invalid, expired or already used token
      404:
        description: User no longer exists
    """
    payload = request.get_json(silent=True) or {}
    data = refresh_token_schema.load(payload)

    pair = _protocol().refresh(data["refresh_token"])

    return jsonify(
        {
            "data": token_pair_out_schema.dump(pair),
            "message": "New tokens issued",
        }
    ), 200


@bp.post("/logout")
def logout():
    """
    Logout: revokes the refresh token. Succeeds whether or not the token was known.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           required: [refreshToken]
           properties:
             refreshToken: { type: string }
    responses:
      200:
        description: OK
      400:
        description: Validation error
    """
    payload = request.get_json(silent=True) or {}
    data = refresh_token_schema.load(payload)

    _protocol().logout(data["refresh_token"])

    return jsonify({"data": None, "message": "Logged out, token revoked"}), 200


@bp.post("/users/<int:user_id>/revoke")
@roles_required(["admin"])
def revoke_user_sessions(user_id: int):
    """
    Admin-only: expire every refresh token of a user
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    parameters:
      -  in: path
         name: user_id
         type: integer
         required: true
    responses:
      200:
        description: OK (returns number of revoked sessions)
      401:
        description: Unauthorized
      403:
        description: Forbidden
    """
    revoked = _protocol().revoke_all(user_id, actor_id=g.current_principal.id)
    return jsonify(
        {
            "data": {"revoked": revoked},
            "message": "Sessions revoked",
        }
    ), 200
