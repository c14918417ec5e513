import asyncio
import itertools
from collections.abc import AsyncGenerator
from datetime import timedelta
from types import SimpleNamespace
from typing import Any

import pytest
import pytest_asyncio
from firebase_admin import auth
from httpx import ASGITransport, AsyncClient

from app.core.exceptions import NotFoundException
from app.dependencies import (
    get_cache_manager,
    get_optional_firebase_client,
    get_rate_limiter,
    get_user_store,
)
from app.main import app
from app.schemas.users import UserRecord
from app.services.user_store import UserStore


class FakeFirebaseClient:
    """Stands in for FirebaseClient with in-memory tokens and accounts."""

    def __init__(self) -> None:
        self.tokens: dict[str, dict[str, Any]] = {}
        self.expired_tokens: set[str] = set()
        self.accounts: dict[str, SimpleNamespace] = {}
        self.sessions: dict[str, dict[str, Any]] = {}
        self.session_lifetimes: list[timedelta] = []
        self._uids = itertools.count(1)

    def add_token(
        self,
        token: str,
        uid: str | None,
        email: str | None = "ama@example.com",
        name: str | None = "Ama Serwaa",
        email_verified: bool = True,
        picture: str | None = "https://example.com/ama.png",
        phone_number: str | None = None,
        sign_in_provider: str = "google.com",
    ) -> None:
        decoded: dict[str, Any] = {
            "email": email,
            "name": name,
            "email_verified": email_verified,
            "picture": picture,
            "phone_number": phone_number,
            "firebase": {"sign_in_provider": sign_in_provider},
        }
        if uid is not None:
            decoded["uid"] = uid
            decoded["sub"] = uid
        self.tokens[token] = decoded

    def add_account(self, uid: str, email: str, email_verified: bool = False) -> SimpleNamespace:
        account = SimpleNamespace(
            uid=uid, email=email, email_verified=email_verified, phone_number=None, display_name=None
        )
        self.accounts[uid] = account
        return account

    async def verify_id_token(self, id_token: str) -> dict:
        if id_token in self.expired_tokens:
            raise auth.ExpiredIdTokenError("Token expired", None)
        if id_token not in self.tokens:
            raise auth.InvalidIdTokenError("Could not verify token signature")
        return dict(self.tokens[id_token])

    async def create_session_cookie(self, id_token: str, expires_in: timedelta) -> str:
        decoded = await self.verify_id_token(id_token)
        cookie = f"session-{id_token}"
        self.sessions[cookie] = decoded
        self.session_lifetimes.append(expires_in)
        return cookie

    async def verify_session_cookie(self, session_cookie: str) -> dict:
        if session_cookie not in self.sessions:
            raise auth.InvalidSessionCookieError("Invalid session cookie")
        return dict(self.sessions[session_cookie])

    async def get_user(self, uid: str) -> SimpleNamespace:
        if uid not in self.accounts:
            raise auth.UserNotFoundError("No user record found")
        return self.accounts[uid]

    async def get_user_by_email(self, email: str) -> SimpleNamespace:
        for account in self.accounts.values():
            if account.email == email:
                return account
        raise auth.UserNotFoundError("No user record found")

    async def create_user(self, **properties: Any) -> SimpleNamespace:
        for account in self.accounts.values():
            if account.email == properties.get("email"):
                raise auth.EmailAlreadyExistsError("Email exists", None, None)
            if properties.get("phone_number") and account.phone_number == properties["phone_number"]:
                raise auth.PhoneNumberAlreadyExistsError("Phone exists", None, None)

        account = SimpleNamespace(
            uid=f"uid-{next(self._uids)}",
            email=properties.get("email"),
            email_verified=properties.get("email_verified", False),
            phone_number=properties.get("phone_number"),
            display_name=properties.get("display_name"),
        )
        self.accounts[account.uid] = account
        return account


class InMemoryUserStore(UserStore):
    """User store with an atomic create-if-absent over a dict."""

    def __init__(self) -> None:
        self.records: dict[str, UserRecord] = {}
        self.create_calls = 0
        self.update_calls = 0

    async def get(self, uid: str) -> UserRecord | None:
        await asyncio.sleep(0)
        record = self.records.get(uid)
        return record.model_copy(deep=True) if record else None

    async def create_if_absent(self, record: UserRecord) -> tuple[UserRecord, bool]:
        await asyncio.sleep(0)
        self.create_calls += 1
        if record.uid in self.records:
            return self.records[record.uid].model_copy(deep=True), False
        self.records[record.uid] = record.model_copy(deep=True)
        return record, True

    async def update_fields(self, uid: str, fields: dict[str, Any]) -> None:
        if uid not in self.records:
            raise NotFoundException("User not found")
        self.update_calls += 1
        document = self.records[uid].to_document()
        document.update(fields)
        self.records[uid] = UserRecord.from_document(document)

    async def add_to_wishlist(self, uid: str, product_id: str) -> list[str]:
        if uid not in self.records:
            raise NotFoundException("User not found")
        wishlist = self.records[uid].wishlist
        if product_id not in wishlist:
            wishlist.append(product_id)
        return list(wishlist)

    async def remove_from_wishlist(self, uid: str, product_id: str) -> list[str]:
        if uid not in self.records:
            raise NotFoundException("User not found")
        record = self.records[uid]
        record.wishlist = [item for item in record.wishlist if item != product_id]
        return list(record.wishlist)


@pytest.fixture
def firebase() -> FakeFirebaseClient:
    """Fake identity platform."""
    return FakeFirebaseClient()


@pytest.fixture
def user_store() -> InMemoryUserStore:
    """Empty in-memory user store."""
    return InMemoryUserStore()


@pytest_asyncio.fixture
async def client(
    firebase: FakeFirebaseClient, user_store: InMemoryUserStore
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client wired to the fakes."""
    app.dependency_overrides[get_optional_firebase_client] = lambda: firebase
    app.dependency_overrides[get_user_store] = lambda: user_store
    app.dependency_overrides[get_cache_manager] = lambda: None
    app.dependency_overrides[get_rate_limiter] = lambda: None

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
