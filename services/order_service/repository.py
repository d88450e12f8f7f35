from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from .models import Order

class OrderRepository:
    @staticmethod
    async def add_order(db: AsyncSession, order: Order):
        """Stages the order header and flushes so a duplicate order number fails here. Does not commit."""
        db.add(order)
        await db.flush()
        return order

    @staticmethod
    async def get_order(db: AsyncSession, order_id: int, owner_id: str | None = None, fresh: bool = False, lock: bool = False):
        stmt = select(Order).where(Order.id == order_id)
        if fresh:
            stmt = stmt.execution_options(populate_existing=True)
        if lock:
            stmt = stmt.with_for_update()
        if owner_id is not None:
            stmt = stmt.where(Order.owner_id == owner_id)
        result = await db.execute(stmt)
        return result.scalars().first()

    @staticmethod
    async def get_by_order_number(db: AsyncSession, order_number: str):
        result = await db.execute(select(Order).where(Order.order_number == order_number))
        return result.scalars().first()

    @staticmethod
    async def get_by_payment_intent(db: AsyncSession, intent_id: str):
        """Row-locks the order (FOR UPDATE) until the caller commits."""
        result = await db.execute(
            select(Order)
            .where(Order.payment_intent_id == intent_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    @staticmethod
    async def list_for_owner(db: AsyncSession, owner_id: str):
        result = await db.execute(
            select(Order)
            .where(Order.owner_id == owner_id)
            .order_by(Order.created_at.desc(), Order.id.desc())
        )
        return result.scalars().all()

    @staticmethod
    async def compare_and_set_status(db: AsyncSession, order_id: int, expected_status, expected_payment_status, status, payment_status) -> bool:
        """
        Moves status/payment_status only if both still hold the expected values.
        Returns False when a concurrent writer got there first. Does not commit.
        """
        stmt = (
            update(Order)
            .where(
                Order.id == order_id,
                Order.status == expected_status,
                Order.payment_status == expected_payment_status,
            )
            .values(status=status, payment_status=payment_status)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        return result.rowcount == 1

    @staticmethod
    async def save(db: AsyncSession, order: Order):
        db.add(order)
        await db.commit()
        return order
