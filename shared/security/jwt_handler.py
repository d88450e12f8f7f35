"""
Owner bearer tokens.

Tokens are issued by the identity service elsewhere; this module only
verifies them. The owner id is read from `sub` by the dependencies.
"""
import os
from jose import JWTError, jwt

SECRET_KEY = os.getenv("JWT_SECRET_KEY")
if not SECRET_KEY:
    raise ValueError("FATAL ERROR: JWT_SECRET_KEY is not set in the environment!")

ALGORITHM = "HS256"


def verify_access_token(token: str) -> dict | None:
    """Decodes and verifies the JWT, expiry included. Returns None if invalid/expired."""
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None
