from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from . import config
from .database import get_db
from .errors import AuthError, ForbiddenError
from .models import User

# Used for admin passwords and drop access keys alike.
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not plain_password or not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        # malformed hash or over-long secret
        return False


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(data: dict, expires_minutes: Optional[int] = None) -> str:
    to_encode = data.copy()
    minutes = expires_minutes if expires_minutes is not None else config.ACCESS_TOKEN_EXPIRE_MINUTES
    expire = datetime.now(timezone.utc) + timedelta(minutes=minutes)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, config.JWT_SECRET, algorithm=config.ALGORITHM)


def authenticate_user(db: Session, email: str, password: str) -> User:
    from .crud import get_user_by_email

    user = get_user_by_email(db, email)
    if not user or not verify_password(password, user.password_hash):
        raise AuthError("Invalid credentials")
    return user


bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    if credentials is None or not credentials.credentials:
        raise AuthError("Access token required")

    try:
        payload = jwt.decode(credentials.credentials, config.JWT_SECRET, algorithms=[config.ALGORITHM])
    except JWTError:
        raise AuthError("Invalid or expired token")

    email = payload.get("sub")
    if not email:
        raise AuthError("Invalid or expired token")

    from .crud import get_user_by_email

    user = get_user_by_email(db, email)
    if user is None:
        raise AuthError("Invalid or expired token")
    # end the read transaction; the handler starts its own
    db.commit()
    return user


def get_current_admin(current_user: User = Depends(get_current_user)) -> User:
    if current_user.role != "admin":
        raise ForbiddenError("Admin access required")
    return current_user
