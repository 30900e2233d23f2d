import secrets
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlmodel import Session

from core.config import config
from core.database import get_session
from models.user import ADMIN_ROLES, User, UserRole, UserStatus
from utils.clock import as_utc, utcnow

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
bearer_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    return pwd_context.verify(plain_password, password_hash)


def create_access_token(user: User, expires_delta: Optional[timedelta] = None) -> str:
    """Issue a signed bearer token carrying the user's id and role."""
    expire = utcnow() + (expires_delta or timedelta(days=config.ACCESS_TOKEN_EXPIRE_DAYS))
    payload = {
        "sub": str(user.id),
        "role": user.role.value if isinstance(user.role, UserRole) else user.role,
        "username": user.username,
        "exp": expire,
    }
    return jwt.encode(payload, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def decode_token(token: str) -> Dict[str, Any]:
    try:
        return jwt.decode(token, config.JWT_SECRET_KEY, algorithms=[config.JWT_ALGORITHM])
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )


# OTPs: 6 digits, valid for OTP_EXPIRE_MINUTES
def generate_otp() -> str:
    return f"{secrets.randbelow(900000) + 100000}"


def otp_expiry() -> datetime:
    return utcnow() + timedelta(minutes=config.OTP_EXPIRE_MINUTES)


def is_otp_valid(user: User, otp: str) -> bool:
    if not user.otp or not user.otp_expiry:
        return False
    return secrets.compare_digest(user.otp, otp) and utcnow() < as_utc(user.otp_expiry)


def clear_otp(user: User):
    user.otp = None
    user.otp_expiry = None


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    session: Session = Depends(get_session),
) -> User:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_token(credentials.credentials)
    try:
        user_id = uuid.UUID(payload.get("sub", ""))
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token subject")

    user = session.get(User, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User no longer exists")
    if user.status != UserStatus.active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is inactive")
    return user


def role_required(*roles: UserRole):
    """Dependency factory: only let through users holding one of ``roles``."""

    def checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
        return current_user

    return checker


admin_required = role_required(*ADMIN_ROLES)
superadmin_required = role_required(UserRole.superadmin)
citizen_required = role_required(UserRole.citizen)
worker_required = role_required(UserRole.worker)
