"""User model definition using SQLAlchemy Core."""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    MetaData,
    String,
    Table,
    Text,
)

metadata = MetaData()

users = Table(
    "users",
    metadata,
    # Identity provider subject id (SOURCE OF TRUTH, never regenerated)
    Column("uid", Text, primary_key=True),
    # Mirrored from the identity provider at creation
    Column("email", Text, index=True),
    Column("email_verified", Boolean, nullable=False, default=False),
    Column("provider", Text, nullable=False),
    # Profile
    Column("first_name", Text, nullable=False, default=""),
    Column("last_name", Text, nullable=False, default=""),
    Column("phone_number", String(32), nullable=False, default=""),
    Column("photo_url", Text, nullable=False, default=""),
    # Product ids, kept duplicate free
    Column("wishlist", JSON, nullable=False, default=list),
    # Audit
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)

# Record attribute name -> column name
COLUMN_FOR_FIELD = {
    "uid": "uid",
    "email": "email",
    "emailVerified": "email_verified",
    "provider": "provider",
    "firstName": "first_name",
    "lastName": "last_name",
    "phoneNumber": "phone_number",
    "photoURL": "photo_url",
    "wishlist": "wishlist",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}
