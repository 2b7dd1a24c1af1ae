from flask import Blueprint, current_app

bp = Blueprint("health", __name__)


@bp.get("/health")
def health():
    """
    Health check
    ---
    tags:
      - Health
    responses:
      200:
        description: API is up
        schema:
          type: object
          properties:
            status:
              type: string
              example: ok
            version:
              type: string
              example: 1.0.0
            token_hashing:
              type: string
              example: keyed
    """
    hashing = current_app.extensions["credentials"].store.hashing_label
    return {"status": "ok", "version": "1.0.0", "token_hashing": hashing}, 200
