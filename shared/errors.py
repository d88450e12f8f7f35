"""
Error taxonomy shared by every service.

Services raise these instead of HTTPException so the same failure carries
a stable machine-readable `kind` whether it surfaces over HTTP or to an
in-process caller. `register_exception_handlers()` turns them into JSON
responses of the form {"error": kind, "detail": message, ...extra}.
"""
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse


class DomainError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    kind = "internal_error"

    def __init__(self, message: str, **extra):
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_dict(self) -> dict:
        return {"error": self.kind, "detail": self.message, **self.extra}


class ValidationError(DomainError):
    status_code = 422
    kind = "validation_error"


class EmptyCartError(DomainError):
    status_code = status.HTTP_400_BAD_REQUEST
    kind = "empty_cart"


class NotFoundError(DomainError):
    status_code = status.HTTP_404_NOT_FOUND
    kind = "not_found"


class ConflictError(DomainError):
    status_code = status.HTTP_409_CONFLICT
    kind = "conflict"


class UnavailableError(ConflictError):
    kind = "product_unavailable"


class InsufficientStockError(ConflictError):
    kind = "insufficient_stock"

    def __init__(self, product_id: int, product_name: str | None = None):
        name = product_name or f"Product {product_id}"
        super().__init__(f"Insufficient stock for {name}", product_id=product_id)
        self.product_id = product_id


class OrderNumberConflictError(ConflictError):
    kind = "order_number_conflict"


class AlreadyPaidError(ConflictError):
    kind = "already_paid"


class InvalidTransitionError(ConflictError):
    kind = "invalid_transition"


class AuthenticationError(DomainError):
    # Rejected webhook deliveries get a 400 so the provider marks them failed
    status_code = status.HTTP_400_BAD_REQUEST
    kind = "invalid_signature"


class ExternalServiceError(DomainError):
    status_code = status.HTTP_502_BAD_GATEWAY
    kind = "payment_provider_error"


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(DomainError, domain_error_handler)
