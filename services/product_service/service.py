import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from shared.errors import ConflictError, InsufficientStockError, NotFoundError

from .models import Product
from .repository import ProductRepository
from .schemas import ProductCreate, ProductUpdate

logger = structlog.get_logger(__name__)


class ProductService:

    @staticmethod
    async def create_product(db: AsyncSession, data: ProductCreate) -> Product:
        product = Product(**data.model_dump())
        try:
            return await ProductRepository.create_product(db, product)
        except IntegrityError:
            await db.rollback()
            raise ConflictError(f"SKU {data.sku} already exists")

    @staticmethod
    async def get_product(db: AsyncSession, product_id: int) -> Product:
        product = await ProductRepository.get_product_by_id(db, product_id)
        if not product:
            raise NotFoundError(f"Product {product_id} not found")
        return product

    @staticmethod
    async def update_product(db: AsyncSession, product_id: int, data: ProductUpdate) -> Product:
        product = await ProductService.get_product(db, product_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(product, field, value)
        try:
            return await ProductRepository.update_product(db, product)
        except IntegrityError:
            await db.rollback()
            raise ConflictError(f"SKU {data.sku} already exists")

    @staticmethod
    async def decrement_stock(db: AsyncSession, product_id: int, quantity: int) -> Product:
        """
        Inventory ledger entry point used inside the checkout transaction.

        Re-reads the product, then applies the guarded decrement for tracked
        products. Raises NotFoundError / InsufficientStockError; never commits.
        Returns the product as it was read (name/SKU are snapshotted from it).
        """
        product = await ProductRepository.get_product_by_id(db, product_id, fresh=True)
        if not product:
            raise NotFoundError(f"Product {product_id} not found")

        if not product.track_inventory:
            return product

        if product.stock_quantity < quantity:
            raise InsufficientStockError(product.id, product.name)

        # Another checkout may have committed between the read above and here
        if not await ProductRepository.decrement_stock_if_available(db, product_id, quantity):
            logger.info("stock_decrement_lost_race", product_id=product_id, quantity=quantity)
            raise InsufficientStockError(product.id, product.name)

        return product
