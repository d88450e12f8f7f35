from fastapi import FastAPI

from shared.config.database import create_tables
from shared.errors import register_exception_handlers
from shared.observability import setup_observability

# IMPORTANT: import models so they register with Base
from services.product_service import models as product_models
from services.cart_service import models as cart_models
from services.order_service import models as order_models
from services.payment_service import models as payment_models

from services.product_service.router import router as product_router, public_router as product_public_router
from services.cart_service.router import router as cart_router, public_router as cart_public_router
from services.order_service.router import (
    router as order_router,
    admin_router as order_admin_router,
    public_router as order_public_router,
)
from services.payment_service.router import router as payment_router, public_router as payment_public_router

app = FastAPI(title="Checkout Service", version="1.0.0")

# --- OBSERVABILITY BOOTSTRAP ---
setup_observability(app, "checkout_service")

# --- ERROR MAPPING ---
register_exception_handlers(app)

# Health routes first so /<prefix>/health is not captured by /<prefix>/{id}
app.include_router(product_public_router)
app.include_router(cart_public_router)
app.include_router(order_public_router)
app.include_router(payment_public_router)

app.include_router(product_router)
app.include_router(cart_router)
app.include_router(order_router)
app.include_router(order_admin_router)
app.include_router(payment_router)


@app.on_event("startup")
async def startup_event():
    await create_tables()
