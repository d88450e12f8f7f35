from fastapi import Depends, HTTPException, status
from fastapi.security import APIKeyHeader, HTTPAuthorizationCredentials, HTTPBearer
from .jwt_handler import verify_access_token
from .api_key import verify_api_key

# Authorization: Bearer <token>; there is no login route here to point a password flow at
bearer_scheme = HTTPBearer(auto_error=False)

# Internal service / admin header
api_key_header = APIKeyHeader(name="X-Internal-API-Key", auto_error=False)


async def get_current_owner(credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme)) -> str:
    """Validates the bearer token and returns the owner id (sub)."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if credentials is None:
        raise credentials_exception

    payload = verify_access_token(credentials.credentials)
    if payload is None or payload.get("sub") is None:
        raise credentials_exception

    return str(payload["sub"])


async def verify_internal_api_key(api_key: str | None = Depends(api_key_header)) -> bool:
    """Dependency to validate service-to-service and admin requests."""
    if not verify_api_key(api_key):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid or missing X-Internal-API-Key header"
        )
    return True
