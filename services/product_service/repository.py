from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from .models import Product

class ProductRepository:

    @staticmethod
    async def create_product(db: AsyncSession, product: Product):
        db.add(product)
        await db.commit()
        await db.refresh(product)
        return product

    @staticmethod
    async def get_product_by_id(db: AsyncSession, product_id: int, fresh: bool = False):
        stmt = select(Product).where(Product.id == product_id)
        if fresh:
            # Bypass the identity map so a stock value read earlier in the session is replaced
            stmt = stmt.execution_options(populate_existing=True)
        result = await db.execute(stmt)
        return result.scalars().first()

    @staticmethod
    async def get_products_by_ids(db: AsyncSession, product_ids):
        result = await db.execute(select(Product).where(Product.id.in_(list(product_ids))))
        return {p.id: p for p in result.scalars().all()}

    @staticmethod
    async def update_product(db: AsyncSession, product: Product):
        db.add(product)
        await db.commit()
        await db.refresh(product)
        return product

    @staticmethod
    async def decrement_stock_if_available(db: AsyncSession, product_id: int, quantity: int) -> bool:
        """
        Compare-and-decrement in a single UPDATE. Returns False when the row's
        stock no longer covers `quantity`. Does not commit: the caller owns the
        transaction.
        """
        stmt = (
            update(Product)
            .where(Product.id == product_id, Product.stock_quantity >= quantity)
            .values(stock_quantity=Product.stock_quantity - quantity)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        return result.rowcount == 1
