# storefront/utils/tokenJWT.py
from dataclasses import dataclass
from typing import Optional

from jose import jwt, JWTError
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from storefront.config import settings

# Tokens come from the managed auth provider; audience checks are left to it
bearer_scheme = HTTPBearer(auto_error=False)


@dataclass
class AuthSession:
    user_id: str
    access_token: str
    email: Optional[str] = None
    role: str = "customer"

    @property
    def is_admin(self) -> bool:
        return (self.role or "").lower() == "admin"


def decode_session(token: str) -> AuthSession:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(
            token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM], options={"verify_aud": False}
        )
    except JWTError:
        raise credentials_exception

    user_id = payload.get("sub")
    # Ensure subject is present in the token payload
    if not user_id:
        raise credentials_exception

    metadata = payload.get("app_metadata") or {}
    role = payload.get("role") if payload.get("role") in ("admin", "customer") else metadata.get("role")
    return AuthSession(
        user_id=str(user_id),
        access_token=token,
        email=payload.get("email"),
        role=role or "customer",
    )


# Session is optional for storefront routes: guests can browse and buy
def get_optional_session(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[AuthSession]:
    if credentials is None or not credentials.credentials:
        return None
    return decode_session(credentials.credentials)


def get_current_session(session: Optional[AuthSession] = Depends(get_optional_session)) -> AuthSession:
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return session


# Dependency factory for Role-Based Access Control
def role_required(*allowed_roles):
    def _checker(session: AuthSession = Depends(get_current_session)):
        if allowed_roles and (session.role or "").lower() not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Forbidden"
            )
        return session
    return _checker


admin_required = role_required("admin")
