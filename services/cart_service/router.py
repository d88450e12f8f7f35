from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config.database import get_db
from shared.security.dependencies import get_current_owner

from .schemas import CartItemCreate, CartItemUpdate, CartResponse
from .service import CartService

router = APIRouter(prefix="/cart", tags=["Cart"])
public_router = APIRouter(prefix="/cart")

@public_router.get("/health", include_in_schema=False)
async def health_check():
    return {"service": "cart", "status": "running"}


@router.get("/", response_model=CartResponse)
async def get_cart(owner_id: str = Depends(get_current_owner), db: AsyncSession = Depends(get_db)):
    return await CartService.get_cart(db, owner_id)


@router.post("/items", response_model=CartResponse)
async def add_item(
    item: CartItemCreate,
    owner_id: str = Depends(get_current_owner),
    db: AsyncSession = Depends(get_db),
):
    return await CartService.add_item(db, owner_id, item.product_id, item.quantity)


@router.patch("/items/{item_id}", response_model=CartResponse)
async def update_item(
    item_id: int,
    payload: CartItemUpdate,
    owner_id: str = Depends(get_current_owner),
    db: AsyncSession = Depends(get_db),
):
    return await CartService.update_item(db, owner_id, item_id, payload.quantity)


@router.delete("/items/{item_id}", response_model=CartResponse)
async def remove_item(
    item_id: int,
    owner_id: str = Depends(get_current_owner),
    db: AsyncSession = Depends(get_db),
):
    return await CartService.remove_item(db, owner_id, item_id)


@router.delete("/", response_model=CartResponse)
async def clear_cart(owner_id: str = Depends(get_current_owner), db: AsyncSession = Depends(get_db)):
    """Deletes all items in the owner's cart."""
    return await CartService.clear_cart(db, owner_id)
