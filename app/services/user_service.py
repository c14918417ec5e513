"""User service for profile, wishlist and verification state."""

from firebase_admin import auth
from firebase_admin.exceptions import FirebaseError
from structlog import get_logger

from app.core.exceptions import NotFoundException, StoreUnavailableException
from app.core.firebase import FirebaseClient
from app.core.redis_client import CacheManager
from app.schemas.users import UserRecord
from app.services.identity_reconciler import IdentityReconciler
from app.services.user_store import UserStore

logger = get_logger(__name__)


class UserService:
    """Service for operations on an existing user record."""

    # Cache TTL in seconds (30 minutes for user profiles)
    USER_CACHE_TTL = 1800

    def __init__(
        self,
        store: UserStore,
        cache_manager: CacheManager | None = None,
        firebase: FirebaseClient | None = None,
    ):
        """Initialize service with the store and optional cache and Firebase client."""
        self.store = store
        self.cache = cache_manager
        self.firebase = firebase

    @staticmethod
    def _get_user_cache_key(uid: str) -> str:
        """Generate cache key for user."""
        return f"user:{uid}"

    def invalidate(self, uid: str) -> None:
        """Drop the cached copy of a user record."""
        if self.cache:
            self.cache.delete(self._get_user_cache_key(uid))

    async def get_user(self, uid: str) -> UserRecord:
        """Get a user record with caching."""
        if self.cache:
            cached_user = self.cache.get_json(self._get_user_cache_key(uid))
            if cached_user:
                return UserRecord.model_validate(cached_user)

        user = await self.store.get(uid)
        if user is None:
            raise NotFoundException("User not found")

        if self.cache:
            self.cache.set_json(
                self._get_user_cache_key(uid),
                user.model_dump(mode="json", by_alias=True),
                ttl=self.USER_CACHE_TTL,
            )

        return user

    async def user_exists(self, uid: str) -> bool:
        """Check for a stored record without caching."""
        return await self.store.get(uid) is not None

    async def get_wishlist(self, uid: str) -> list[str]:
        """Product ids on the user's wishlist."""
        user = await self.get_user(uid)
        return user.wishlist

    async def add_to_wishlist(self, uid: str, product_id: str) -> list[str]:
        """Add a product to the wishlist."""
        items = await self.store.add_to_wishlist(uid, product_id)
        self.invalidate(uid)
        logger.info("wishlist_item_added", uid=uid, product_id=product_id)
        return items

    async def remove_from_wishlist(self, uid: str, product_id: str) -> list[str]:
        """Remove a product from the wishlist."""
        items = await self.store.remove_from_wishlist(uid, product_id)
        self.invalidate(uid)
        logger.info("wishlist_item_removed", uid=uid, product_id=product_id)
        return items

    async def refresh_email_verification(self, uid: str, reconciler: IdentityReconciler) -> UserRecord:
        """
        Re-read emailVerified from the identity provider and store it.

        The value always comes from the provider's live account, never from
        the client.
        """
        if self.firebase is None:
            raise StoreUnavailableException("Identity platform not initialized")

        try:
            account = await self.firebase.get_user(uid)
        except auth.UserNotFoundError as e:
            raise NotFoundException("User not found") from e
        except FirebaseError as e:
            logger.error("identity_provider_lookup_failed", uid=uid, error=str(e))
            raise StoreUnavailableException("Identity provider unavailable") from e

        record = await self.store.get(uid)
        if record is None:
            raise NotFoundException("User not found")

        if await reconciler.sync_email_verified(record, account.email_verified):
            self.invalidate(uid)
            record = await self.get_user(uid)

        return record
