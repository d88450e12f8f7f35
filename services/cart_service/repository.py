from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from .models import Cart, CartItem

class CartRepository:

    @staticmethod
    async def get_cart(db: AsyncSession, owner_id: str, fresh: bool = False):
        stmt = select(Cart).where(Cart.owner_id == owner_id)
        if fresh:
            stmt = stmt.execution_options(populate_existing=True)
        result = await db.execute(stmt)
        return result.scalars().first()

    @staticmethod
    async def create_cart(db: AsyncSession, cart: Cart):
        db.add(cart)
        await db.commit()
        return cart

    @staticmethod
    async def add_item(db: AsyncSession, cart: Cart, item: CartItem):
        cart.items.append(item)
        await db.flush()
        return item

    @staticmethod
    async def remove_item(db: AsyncSession, cart: Cart, item: CartItem):
        # delete-orphan cascade removes the row on flush
        cart.items.remove(item)
        await db.flush()

    @staticmethod
    async def clear_items(db: AsyncSession, cart: Cart):
        """Removes all items. Flushes but does not commit: checkout clears the cart inside its own transaction."""
        cart.items.clear()
        await db.flush()

    @staticmethod
    async def save(db: AsyncSession, cart: Cart):
        db.add(cart)
        await db.commit()
        return cart
