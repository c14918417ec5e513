"""User record persistence backends."""

import asyncio
import functools
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any, TypeVar

from google.api_core import exceptions as google_exceptions
from google.cloud import firestore
from sqlalchemy import select, text, update
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncEngine
from structlog import get_logger

from app.config import Settings, settings
from app.core.exceptions import AppException, NotFoundException, StoreUnavailableException
from app.core.firebase import FirebaseClient
from app.core.retry import retry_async
from app.database import create_database_engine
from app.models.users import COLUMN_FOR_FIELD, users
from app.schemas.users import UserRecord

logger = get_logger(__name__)

T = TypeVar("T")


async def _run_store_call(
    store: "UserStore", name: str, call: Callable[[], Awaitable[T]]
) -> T:
    """Run call under the external call timeout with retries on transient errors."""

    async def attempt() -> T:
        return await asyncio.wait_for(call(), timeout=settings.external_call_timeout_seconds)

    try:
        return await retry_async(
            attempt,
            max_retries=settings.store_max_retries,
            base_delay=settings.store_retry_base_delay,
            exceptions=(TimeoutError, *store.transient_errors),
            operation=f"user_store.{name}",
        )
    except AppException:
        raise
    except (TimeoutError, *store.store_errors) as e:
        logger.error("user_store_operation_failed", operation=name, error=str(e))
        raise StoreUnavailableException() from e


def store_operation(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
    """
    Bound a store coroutine by the external call timeout, retry it on the
    backend's transient errors and surface backend failures as
    StoreUnavailableException.
    """

    @functools.wraps(func)
    async def wrapper(self: "UserStore", *args: Any, **kwargs: Any) -> T:
        return await _run_store_call(self, func.__name__, lambda: func(self, *args, **kwargs))

    return wrapper


def _same_instant(a: datetime, b: datetime) -> bool:
    # Backends without timezone support hand back naive UTC values
    if a.tzinfo is None:
        a = a.replace(tzinfo=UTC)
    if b.tzinfo is None:
        b = b.replace(tzinfo=UTC)
    return a == b


def create_operation(
    func: Callable[["UserStore", UserRecord], Awaitable[tuple[UserRecord, bool]]],
) -> Callable[["UserStore", UserRecord], Awaitable[tuple[UserRecord, bool]]]:
    """
    store_operation for create_if_absent.

    A timed out attempt may still have committed. When a later attempt then
    finds a record carrying this call's createdAt, the write was ours and
    the result reports it as created.
    """

    @functools.wraps(func)
    async def wrapper(self: "UserStore", record: UserRecord) -> tuple[UserRecord, bool]:
        timed_out = False

        async def call() -> tuple[UserRecord, bool]:
            nonlocal timed_out
            try:
                return await func(self, record)
            except asyncio.CancelledError:
                # wait_for cancels the attempt when the timeout fires
                timed_out = True
                raise

        stored, created = await _run_store_call(self, func.__name__, call)
        if not created and timed_out and _same_instant(stored.created_at, record.created_at):
            logger.info("user_store_create_confirmed_after_timeout", uid=record.uid)
            return stored, True
        return stored, created

    return wrapper

class UserStore(ABC):
    """Keyed storage of user records with a create-if-absent primitive."""

    # Errors worth retrying, and errors that mean the backend failed
    transient_errors: tuple[type[BaseException], ...] = ()
    store_errors: tuple[type[BaseException], ...] = ()

    @abstractmethod
    async def get(self, uid: str) -> UserRecord | None:
        """Return the record for uid, or None."""

    @abstractmethod
    async def create_if_absent(self, record: UserRecord) -> tuple[UserRecord, bool]:
        """
        Persist record unless one already exists for its uid.

        Returns:
            The stored record and whether this call created it
        """

    @abstractmethod
    async def update_fields(self, uid: str, fields: dict[str, Any]) -> None:
        """Overwrite the given camelCase fields of an existing record."""

    @abstractmethod
    async def add_to_wishlist(self, uid: str, product_id: str) -> list[str]:
        """Add a product id to the wishlist and return the wishlist."""

    @abstractmethod
    async def remove_from_wishlist(self, uid: str, product_id: str) -> list[str]:
        """Remove a product id from the wishlist and return the wishlist."""

    async def ping(self) -> bool:
        """Check backend reachability."""
        return True

    async def close(self) -> None:
        """Release backend resources."""


class FirestoreUserStore(UserStore):
    """User records as documents keyed by uid in a Firestore collection."""

    transient_errors = (
        google_exceptions.ServiceUnavailable,
        google_exceptions.DeadlineExceeded,
        google_exceptions.Aborted,
    )
    store_errors = (google_exceptions.GoogleAPICallError, google_exceptions.RetryError)

    def __init__(self, client: Any, collection: str = "users"):
        """Initialize with an async Firestore client."""
        self._collection = client.collection(collection)

    @store_operation
    async def get(self, uid: str) -> UserRecord | None:
        snapshot = await self._collection.document(uid).get()
        if not snapshot.exists:
            return None
        return UserRecord.from_document(snapshot.to_dict())

    @create_operation
    async def create_if_absent(self, record: UserRecord) -> tuple[UserRecord, bool]:
        ref = self._collection.document(record.uid)
        try:
            # create() carries a "document must not exist" precondition
            await ref.create(record.to_document())
            return record, True
        except google_exceptions.AlreadyExists:
            snapshot = await ref.get()
            if not snapshot.exists:
                raise StoreUnavailableException("User record vanished during creation")
            return UserRecord.from_document(snapshot.to_dict()), False

    @store_operation
    async def update_fields(self, uid: str, fields: dict[str, Any]) -> None:
        try:
            await self._collection.document(uid).update(fields)
        except google_exceptions.NotFound as e:
            raise NotFoundException("User not found") from e

    @store_operation
    async def add_to_wishlist(self, uid: str, product_id: str) -> list[str]:
        return await self._update_wishlist(uid, firestore.ArrayUnion([product_id]))

    @store_operation
    async def remove_from_wishlist(self, uid: str, product_id: str) -> list[str]:
        return await self._update_wishlist(uid, firestore.ArrayRemove([product_id]))

    async def _update_wishlist(self, uid: str, transform: Any) -> list[str]:
        ref = self._collection.document(uid)
        try:
            await ref.update({"wishlist": transform})
        except google_exceptions.NotFound as e:
            raise NotFoundException("User not found") from e
        snapshot = await ref.get()
        return list((snapshot.to_dict() or {}).get("wishlist") or [])

    async def ping(self) -> bool:
        try:
            await self._collection.limit(1).get()
            return True
        except Exception:
            return False


class SqlUserStore(UserStore):
    """User records as rows of the ``users`` table."""

    transient_errors = (OperationalError, PoolTimeoutError)
    store_errors = (SQLAlchemyError,)

    def __init__(self, engine: AsyncEngine):
        """Initialize with an async engine (PostgreSQL or SQLite)."""
        self.engine = engine

    @staticmethod
    def _to_row(record: UserRecord) -> dict[str, Any]:
        document = record.to_document()
        return {COLUMN_FOR_FIELD[key]: value for key, value in document.items()}

    @staticmethod
    def _to_record(row: Any) -> UserRecord:
        document = {field: row[column] for field, column in COLUMN_FOR_FIELD.items()}
        return UserRecord.from_document(document)

    def _insert_ignoring_duplicates(self, values: dict[str, Any]) -> Any:
        dialect = self.engine.dialect.name
        if dialect == "postgresql":
            stmt = postgresql_insert(users).values(**values)
        elif dialect == "sqlite":
            stmt = sqlite_insert(users).values(**values)
        else:
            raise RuntimeError(f"Unsupported database dialect for user store: {dialect}")
        return stmt.on_conflict_do_nothing(index_elements=[users.c.uid]).returning(users.c.uid)

    @store_operation
    async def get(self, uid: str) -> UserRecord | None:
        async with self.engine.connect() as conn:
            result = await conn.execute(select(users).where(users.c.uid == uid))
            row = result.mappings().first()
        return self._to_record(row) if row else None

    @create_operation
    async def create_if_absent(self, record: UserRecord) -> tuple[UserRecord, bool]:
        async with self.engine.begin() as conn:
            result = await conn.execute(self._insert_ignoring_duplicates(self._to_row(record)))
            if result.first() is not None:
                return record, True

            existing = await conn.execute(select(users).where(users.c.uid == record.uid))
            row = existing.mappings().first()

        if row is None:
            raise StoreUnavailableException("User record vanished during creation")
        return self._to_record(row), False

    @store_operation
    async def update_fields(self, uid: str, fields: dict[str, Any]) -> None:
        values = {COLUMN_FOR_FIELD[key]: value for key, value in fields.items()}
        async with self.engine.begin() as conn:
            result = await conn.execute(update(users).where(users.c.uid == uid).values(**values))
        if result.rowcount == 0:
            raise NotFoundException("User not found")

    @store_operation
    async def add_to_wishlist(self, uid: str, product_id: str) -> list[str]:
        async with self.engine.begin() as conn:
            items = await self._locked_wishlist(conn, uid)
            if product_id not in items:
                items.append(product_id)
                await conn.execute(
                    update(users).where(users.c.uid == uid).values(wishlist=items)
                )
        return items

    @store_operation
    async def remove_from_wishlist(self, uid: str, product_id: str) -> list[str]:
        async with self.engine.begin() as conn:
            items = await self._locked_wishlist(conn, uid)
            if product_id in items:
                items = [item for item in items if item != product_id]
                await conn.execute(
                    update(users).where(users.c.uid == uid).values(wishlist=items)
                )
        return items

    @staticmethod
    async def _locked_wishlist(conn: Any, uid: str) -> list[str]:
        result = await conn.execute(
            select(users.c.wishlist).where(users.c.uid == uid).with_for_update()
        )
        row = result.first()
        if row is None:
            raise NotFoundException("User not found")
        return list(row.wishlist or [])

    async def ping(self) -> bool:
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception:
            return False

    async def close(self) -> None:
        await self.engine.dispose()


def build_user_store(app_settings: Settings, firebase: FirebaseClient | None) -> UserStore:
    """Construct the user store selected by USER_STORE_BACKEND."""
    if app_settings.user_store_backend == "sql":
        return SqlUserStore(create_database_engine(app_settings))

    if firebase is None:
        raise RuntimeError("Firestore user store requires an initialized Firebase app")
    return FirestoreUserStore(firebase.firestore(), app_settings.users_collection)
