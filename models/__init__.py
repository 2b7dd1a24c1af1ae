"""
Persistence layer: SQLAlchemy models, the DBStorage unit of work and the
CredentialStore that owns the refresh_tokens table.
"""
