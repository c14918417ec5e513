"""Tests for the user store backends and their error policy."""

import asyncio
from collections.abc import AsyncGenerator
from datetime import UTC, datetime
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from google.api_core import exceptions as google_exceptions
from google.cloud import firestore
from sqlalchemy.ext.asyncio import create_async_engine

from app.config import settings
from app.core.exceptions import NotFoundException, StoreUnavailableException
from app.models.users import metadata
from app.schemas.users import UserRecord
from app.services.user_store import (
    FirestoreUserStore,
    SqlUserStore,
    UserStore,
    create_operation,
    store_operation,
)


def make_record(uid: str = "uid-1", **overrides: Any) -> UserRecord:
    now = datetime.now(UTC)
    values: dict[str, Any] = {
        "uid": uid,
        "email": "kofi@example.com",
        "first_name": "Kofi",
        "last_name": "",
        "phone_number": "+233244123456",
        "provider": "password",
        "created_at": now,
        "updated_at": now,
    }
    values.update(overrides)
    return UserRecord(**values)


class FlakyStore(UserStore):
    """Store whose get() fails a configurable number of times."""

    transient_errors = (ConnectionError,)
    store_errors = (OSError,)

    def __init__(self, failures: int, error: Exception):
        self.failures = failures
        self.error = error
        self.calls = 0

    @store_operation
    async def get(self, uid: str) -> UserRecord | None:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return None

    async def create_if_absent(self, record):
        raise NotImplementedError

    async def update_fields(self, uid, fields):
        raise NotImplementedError

    async def add_to_wishlist(self, uid, product_id):
        raise NotImplementedError

    async def remove_from_wishlist(self, uid, product_id):
        raise NotImplementedError


@pytest.fixture
def no_retry_delay(monkeypatch):
    monkeypatch.setattr(settings, "store_retry_base_delay", 0.0)


@pytest.mark.asyncio
async def test_store_operation_retries_transient_errors(no_retry_delay):
    store = FlakyStore(failures=2, error=ConnectionError("reset"))

    assert await store.get("uid-1") is None
    assert store.calls == 3


@pytest.mark.asyncio
async def test_store_operation_gives_up_after_two_retries(no_retry_delay):
    store = FlakyStore(failures=5, error=ConnectionError("reset"))

    with pytest.raises(StoreUnavailableException):
        await store.get("uid-1")

    assert store.calls == 3


@pytest.mark.asyncio
async def test_store_operation_does_not_retry_permanent_errors(no_retry_delay):
    store = FlakyStore(failures=1, error=PermissionError("denied"))

    with pytest.raises(StoreUnavailableException):
        await store.get("uid-1")

    assert store.calls == 1


def test_user_record_from_older_document_shape():
    """Documents missing provider, updatedAt or name fields still load."""
    record = UserRecord.from_document(
        {
            "uid": "uid-9",
            "email": "esi@example.com",
            "firstName": "Esi",
            "lastName": None,
            "phoneNumber": "",
            "createdAt": 1717000000000,
        }
    )

    assert record.provider is None
    assert record.last_name == ""
    assert record.updated_at == record.created_at
    assert record.wishlist == []


@pytest_asyncio.fixture
async def sql_store(tmp_path) -> AsyncGenerator[SqlUserStore, None]:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'users.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)

    store = SqlUserStore(engine)
    yield store
    await store.close()


@pytest.mark.asyncio
async def test_sql_create_if_absent(sql_store):
    record, created = await sql_store.create_if_absent(make_record())
    assert created is True

    again, created_again = await sql_store.create_if_absent(
        make_record(first_name="Someone", email="other@example.com")
    )
    assert created_again is False
    assert again.first_name == "Kofi"
    assert again.email == "kofi@example.com"

    stored = await sql_store.get("uid-1")
    assert stored is not None
    assert stored.phone_number == "+233244123456"
    assert stored.provider == "password"


@pytest.mark.asyncio
async def test_sql_get_missing(sql_store):
    assert await sql_store.get("nobody") is None


@pytest.mark.asyncio
async def test_sql_update_fields(sql_store):
    await sql_store.create_if_absent(make_record(email_verified=False))

    await sql_store.update_fields("uid-1", {"emailVerified": True})

    stored = await sql_store.get("uid-1")
    assert stored.email_verified is True


@pytest.mark.asyncio
async def test_sql_update_fields_missing_user(sql_store):
    with pytest.raises(NotFoundException):
        await sql_store.update_fields("nobody", {"emailVerified": True})


@pytest.mark.asyncio
async def test_sql_wishlist_is_a_set(sql_store):
    await sql_store.create_if_absent(make_record())

    assert await sql_store.add_to_wishlist("uid-1", "prod-1") == ["prod-1"]
    assert await sql_store.add_to_wishlist("uid-1", "prod-2") == ["prod-1", "prod-2"]
    assert await sql_store.add_to_wishlist("uid-1", "prod-1") == ["prod-1", "prod-2"]
    assert await sql_store.remove_from_wishlist("uid-1", "prod-1") == ["prod-2"]
    assert await sql_store.remove_from_wishlist("uid-1", "missing") == ["prod-2"]

    stored = await sql_store.get("uid-1")
    assert stored.wishlist == ["prod-2"]


@pytest.mark.asyncio
async def test_sql_wishlist_missing_user(sql_store):
    with pytest.raises(NotFoundException):
        await sql_store.add_to_wishlist("nobody", "prod-1")


class SlowCommitStore(FlakyStore):
    """Store whose first create commits, then outlives the call timeout."""

    def __init__(self):
        super().__init__(failures=0, error=ConnectionError())
        self.records: dict[str, UserRecord] = {}

    @create_operation
    async def create_if_absent(self, record):
        self.calls += 1
        if record.uid in self.records:
            return self.records[record.uid], False
        self.records[record.uid] = record
        if self.calls == 1:
            await asyncio.sleep(1)
        return record, True


@pytest.mark.asyncio
async def test_create_after_timeout_reports_own_write_as_created(no_retry_delay, monkeypatch):
    monkeypatch.setattr(settings, "external_call_timeout_seconds", 0.05)
    store = SlowCommitStore()
    record = make_record()

    stored, created = await store.create_if_absent(record)

    assert created is True
    assert stored.uid == "uid-1"
    assert store.calls == 2


class ConflictAfterTimeoutStore(SlowCommitStore):
    """Store where another writer's record is found after a timed out attempt."""

    @create_operation
    async def create_if_absent(self, record):
        self.calls += 1
        if self.calls == 1:
            await asyncio.sleep(1)
        return self.records[record.uid], False


@pytest.mark.asyncio
async def test_create_after_timeout_keeps_other_writers_record(no_retry_delay, monkeypatch):
    monkeypatch.setattr(settings, "external_call_timeout_seconds", 0.05)
    store = ConflictAfterTimeoutStore()
    earlier = make_record(created_at=datetime(2024, 1, 1, tzinfo=UTC))
    store.records["uid-1"] = earlier

    stored, created = await store.create_if_absent(make_record())

    assert created is False
    assert stored.created_at == earlier.created_at
    assert store.calls == 2


def firestore_collection(document: dict | None = None) -> tuple[MagicMock, MagicMock]:
    """Build a mocked async Firestore client around a single document reference."""
    snapshot = MagicMock()
    snapshot.exists = document is not None
    snapshot.to_dict.return_value = document

    ref = MagicMock()
    ref.get = AsyncMock(return_value=snapshot)
    ref.create = AsyncMock()
    ref.update = AsyncMock()

    client = MagicMock()
    client.collection.return_value.document.return_value = ref
    return client, ref


@pytest.mark.asyncio
async def test_firestore_create_if_absent_creates():
    client, ref = firestore_collection()
    store = FirestoreUserStore(client, "users")
    record = make_record()

    stored, created = await store.create_if_absent(record)

    assert created is True
    assert stored == record
    client.collection.assert_called_once_with("users")
    ref.create.assert_awaited_once_with(record.to_document())


@pytest.mark.asyncio
async def test_firestore_create_if_absent_existing_document():
    existing = make_record(first_name="Kofi").to_document()
    client, ref = firestore_collection(existing)
    ref.create.side_effect = google_exceptions.AlreadyExists("Document already exists")
    store = FirestoreUserStore(client)

    stored, created = await store.create_if_absent(make_record(first_name="Someone"))

    assert created is False
    assert stored.first_name == "Kofi"
    ref.update.assert_not_awaited()


@pytest.mark.asyncio
async def test_firestore_create_if_absent_document_vanished():
    client, ref = firestore_collection(None)
    ref.create.side_effect = google_exceptions.AlreadyExists("Document already exists")
    store = FirestoreUserStore(client)

    with pytest.raises(StoreUnavailableException):
        await store.create_if_absent(make_record())


@pytest.mark.asyncio
async def test_firestore_get_missing_document():
    client, _ = firestore_collection(None)

    assert await FirestoreUserStore(client).get("nobody") is None


@pytest.mark.asyncio
async def test_firestore_wishlist_transforms():
    client, ref = firestore_collection({**make_record().to_document(), "wishlist": ["prod-1"]})
    store = FirestoreUserStore(client)

    assert await store.add_to_wishlist("uid-1", "prod-1") == ["prod-1"]
    transform = ref.update.await_args.args[0]["wishlist"]
    assert isinstance(transform, firestore.ArrayUnion)
    assert transform.values == ["prod-1"]

    await store.remove_from_wishlist("uid-1", "prod-1")
    transform = ref.update.await_args.args[0]["wishlist"]
    assert isinstance(transform, firestore.ArrayRemove)
    assert transform.values == ["prod-1"]


@pytest.mark.asyncio
async def test_firestore_missing_document_raises_not_found():
    client, ref = firestore_collection(None)
    ref.update.side_effect = google_exceptions.NotFound("No document to update")
    store = FirestoreUserStore(client)

    with pytest.raises(NotFoundException):
        await store.update_fields("nobody", {"emailVerified": True})
    with pytest.raises(NotFoundException):
        await store.add_to_wishlist("nobody", "prod-1")


@pytest.mark.asyncio
async def test_firestore_unavailable_backend(no_retry_delay):
    client, ref = firestore_collection(None)
    ref.get.side_effect = google_exceptions.ServiceUnavailable("backend down")
    store = FirestoreUserStore(client)

    with pytest.raises(StoreUnavailableException):
        await store.get("uid-1")

    assert ref.get.await_count == 1 + settings.store_max_retries
