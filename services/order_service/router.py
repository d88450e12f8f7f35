from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from shared.config.database import get_db
from shared.security.dependencies import get_current_owner, verify_internal_api_key
from .checkout import CheckoutService
from .schemas import CheckoutRequest, OrderResponse, OrderStatusUpdate, PaymentStatusUpdate
from .service import OrderService

router = APIRouter(prefix="/orders", tags=["Orders"])
# Status changes are admin/back-office actions
admin_router = APIRouter(prefix="/orders", tags=["Orders"], dependencies=[Depends(verify_internal_api_key)])
public_router = APIRouter(prefix="/orders")

@public_router.get("/health", include_in_schema=False)
async def health_check():
    return {"service": "order", "status": "running"}


@router.post("/", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def checkout(
    payload: CheckoutRequest,
    owner_id: str = Depends(get_current_owner),
    db: AsyncSession = Depends(get_db),
):
    """Converts the owner's cart into an order."""
    return await CheckoutService.checkout(
        db,
        owner_id,
        shipping_address=payload.shipping_address.model_dump(exclude_none=True),
        billing_address=payload.billing_address.model_dump(exclude_none=True) if payload.billing_address else None,
        notes=payload.notes,
    )


@router.get("/", response_model=list[OrderResponse])
async def list_orders(owner_id: str = Depends(get_current_owner), db: AsyncSession = Depends(get_db)):
    return await OrderService.list_orders(db, owner_id)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: int, owner_id: str = Depends(get_current_owner), db: AsyncSession = Depends(get_db)):
    return await OrderService.get_order(db, order_id, owner_id)


@admin_router.patch("/{order_id}/status", response_model=OrderResponse)
async def update_status(order_id: int, payload: OrderStatusUpdate, db: AsyncSession = Depends(get_db)):
    return await OrderService.update_status(db, order_id, payload.status)


@admin_router.patch("/{order_id}/payment-status", response_model=OrderResponse)
async def update_payment_status(order_id: int, payload: PaymentStatusUpdate, db: AsyncSession = Depends(get_db)):
    return await OrderService.update_payment_status(db, order_id, payload.payment_status)
