"""User endpoints."""

from fastapi import APIRouter, Path

from app.dependencies import CurrentUid, ReconcilerDep, UserServiceDep
from app.schemas.users import UserRecord, WishlistResponse

router = APIRouter(prefix="/users", tags=["Users"])

ProductId = Path(..., min_length=1, max_length=128, description="Product id")


@router.get("/me", response_model=UserRecord)
async def get_current_user_profile(uid: CurrentUid, user_service: UserServiceDep) -> UserRecord:
    """Get current user's record."""
    return await user_service.get_user(uid)


@router.post("/me/email-verification", response_model=UserRecord)
async def refresh_email_verification(
    uid: CurrentUid, user_service: UserServiceDep, reconciler: ReconcilerDep
) -> UserRecord:
    """Sync emailVerified from the identity provider."""
    return await user_service.refresh_email_verification(uid, reconciler)


@router.get("/me/wishlist", response_model=WishlistResponse)
async def get_wishlist(uid: CurrentUid, user_service: UserServiceDep) -> WishlistResponse:
    """List wishlist product ids."""
    return WishlistResponse(uid=uid, items=await user_service.get_wishlist(uid))


@router.put("/me/wishlist/{product_id}", response_model=WishlistResponse)
async def add_wishlist_item(
    uid: CurrentUid, user_service: UserServiceDep, product_id: str = ProductId
) -> WishlistResponse:
    """Add a product to the wishlist. Adding twice keeps one entry."""
    return WishlistResponse(uid=uid, items=await user_service.add_to_wishlist(uid, product_id))


@router.delete("/me/wishlist/{product_id}", response_model=WishlistResponse)
async def remove_wishlist_item(
    uid: CurrentUid, user_service: UserServiceDep, product_id: str = ProductId
) -> WishlistResponse:
    """Remove a product from the wishlist."""
    return WishlistResponse(
        uid=uid, items=await user_service.remove_from_wishlist(uid, product_id)
    )
