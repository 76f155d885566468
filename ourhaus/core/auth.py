from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from ourhaus.core.config import settings
from ourhaus.db.session import get_store
from ourhaus.db.store import DocumentStore
from ourhaus.repositories.user_repo import AccountRepository

security = HTTPBearer()


@dataclass
class CurrentUser:
    """The authenticated caller: identity subject and email."""
    user_id: str
    email: str
    display_name: Optional[str] = None


def create_access_token(
    user_id: str,
    email: str,
    token_version: int = 0,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Create JWT access token."""
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    now = datetime.now(timezone.utc)
    expire = now + expires_delta

    payload = {
        "sub": user_id,
        "email": email,
        "ver": token_version,
        "exp": int(expire.timestamp()),
        "iat": int(now.timestamp()),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    store: DocumentStore = Depends(get_store),
) -> CurrentUser:
    """Get current user from JWT token."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM],
        )
    except JWTError:
        raise credentials_exception

    user_id = payload.get("sub")
    if user_id is None:
        raise credentials_exception

    account = await AccountRepository(store).get_account_by_id(user_id)
    if account is None:
        raise credentials_exception

    # Signed out since this token was issued
    if payload.get("ver", 0) != account.token_version:
        raise credentials_exception

    return CurrentUser(user_id=account.id, email=account.email, display_name=account.display_name)
