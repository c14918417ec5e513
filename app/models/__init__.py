"""Database models."""

from app.models.users import COLUMN_FOR_FIELD, metadata, users

__all__ = [
    "COLUMN_FOR_FIELD",
    "metadata",
    "users",
]
