from datetime import datetime

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from app.core.config import settings

security = HTTPBearer()


class TokenPayload:
    def __init__(self, sub: str, exp: datetime, email: str | None = None, role: str | None = None):
        self.sub = sub
        self.exp = exp
        self.email = email
        self.role = role


def decode_token(token: str) -> TokenPayload:
    """Decode a bearer token. Raises JWTError when invalid or expired."""
    payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    return TokenPayload(
        sub=payload.get("sub"),
        exp=payload.get("exp"),
        email=payload.get("email"),
        role=payload.get("role"),
    )


def verify_token(credentials: HTTPAuthorizationCredentials = Depends(security)) -> TokenPayload:
    try:
        return decode_token(credentials.credentials)
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )


def require_role(required_roles: list[str]):
    def role_checker(token: TokenPayload = Depends(verify_token)) -> TokenPayload:
        if token.role in required_roles:
            return token
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient permissions",
        )
    return role_checker
