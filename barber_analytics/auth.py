import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from .config import ACCESS_TOKEN_EXPIRE_MINUTES, JWT_ALGORITHM, SECRET_KEY
from .database import get_db
from .models import User

logger = logging.getLogger(__name__)

# auto_error=False so a missing header is a 401 instead of FastAPI's 403
security = HTTPBearer(auto_error=False)

NOT_AUTHENTICATED = "Not authenticated. Please provide a valid Bearer token in the Authorization header."
SESSION_EXPIRED = "Sessão expirada. Faça login novamente."


def create_access_token(
    user_id: str, role: Optional[str] = None, expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create a signed access token

    Args:
        user_id: Stored in the 'sub' claim
        role: Informational copy of the user's role
        expires_delta: Token lifetime (default ACCESS_TOKEN_EXPIRE_MINUTES)
    """
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode: dict[str, Any] = {"sub": user_id, "exp": expire}
    if role:
        to_encode["role"] = role
    return jwt.encode(to_encode, SECRET_KEY, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> Optional[dict[str, Any]]:
    """
    Verify and decode an access token

    Returns:
        Decoded payload if valid, None if invalid or expired
    """
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except JWTError as e:
        logger.warning(f"⚠️ JWT verification failed: {e}")
        return None


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """Get current user from the Bearer token"""

    if not credentials or not credentials.credentials:
        logger.warning("⚠️ No credentials provided")
        raise HTTPException(status_code=401, detail=NOT_AUTHENTICATED)

    token = credentials.credentials
    if len(token.split(".")) != 3:
        logger.warning(f"⚠️ Malformed token received, length: {len(token)}")
        raise HTTPException(status_code=401, detail="Invalid token format. Expected a valid JWT token.")

    payload = decode_access_token(token)
    if payload is None:
        raise HTTPException(status_code=401, detail=SESSION_EXPIRED)

    user_id = payload.get("sub")
    if not user_id:
        logger.error(f"❌ Token missing 'sub' claim. Available claims: {list(payload.keys())}")
        raise HTTPException(status_code=401, detail="Invalid token claims")

    user = db.query(User).filter(User.id == user_id).first()
    if not user or not user.is_active:
        logger.warning(f"⚠️ Token for unknown or inactive user: {user_id}")
        raise HTTPException(status_code=401, detail=NOT_AUTHENTICATED)

    return user
