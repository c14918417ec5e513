"""User record schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.schemas.identity import AuthProvider


class UserRecord(BaseModel):
    """
    Durable user record, one per identity provider subject.

    Serialized with camelCase keys, which is also the stored document shape.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    uid: str
    email: str | None = None
    first_name: str = ""
    last_name: str = ""
    phone_number: str = ""
    photo_url: str = Field(default="", alias="photoURL")
    email_verified: bool = False
    # None only on documents written before the provider was recorded
    provider: AuthProvider | None = None
    wishlist: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    def to_document(self) -> dict[str, Any]:
        """Serialize to the stored document shape."""
        return self.model_dump(by_alias=True)

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "UserRecord":
        """Deserialize a stored document, tolerating older document shapes."""
        data = dict(document)
        if data.get("updatedAt") is None:
            data["updatedAt"] = data.get("createdAt")
        for key in ("firstName", "lastName", "phoneNumber", "photoURL"):
            if data.get(key) is None:
                data[key] = ""
        return cls.model_validate(data)


class WishlistResponse(BaseModel):
    """Product ids on the caller's wishlist."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    uid: str
    items: list[str]
