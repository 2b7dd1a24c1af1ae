"""
RefreshToken model: one hashed refresh credential per user.
Fields:
- user_id (unique) - id of the principal; at most one live session per user.
  Not a foreign key: removing a user must not drop credential rows outside
  the audited store, so a stale row survives until refresh reports it.
- token_hash - hex digest of the refresh token, never the token itself
- expires_at - a row is live only while this is in the future
- created_at, updated_at
"""
from sqlalchemy import Column, Integer, String, DateTime

from models.base_model import BaseModel, Base


class RefreshToken(BaseModel, Base):
    __tablename__ = "refresh_tokens"
    __private_fields__ = ("token_hash",)

    user_id = Column(Integer, nullable=False, unique=True, index=True)
    token_hash = Column(String(64), nullable=False, unique=True, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)

    def __repr__(self):
        return f"<RefreshToken user_id={self.user_id} expires_at={self.expires_at}>"
