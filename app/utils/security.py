from argon2 import PasswordHasher
from argon2.exceptions import VerifyMismatchError, HashingError, VerificationError
from datetime import datetime, timedelta, timezone
from jose import JWTError, jwt
from typing import Optional, Tuple
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload
from uuid import UUID

from app.config import settings
from app.dependencies import get_db
from app.models.user import User
from app.utils.logging_config import get_logger, log_security_event

logger = get_logger(__name__)

# Argon2 password hashing configuration
ph = PasswordHasher(
    time_cost=3,
    memory_cost=65536,
    parallelism=1,
    hash_len=32,
    salt_len=16
)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_PREFIX}/users/auth/login")


class TokenManager:
    """JWT access tokens carrying the user id and role"""

    @staticmethod
    def create_access_token(
        data: dict,
        expires_delta: Optional[timedelta] = None,
    ) -> str:
        to_encode = data.copy()
        expire = datetime.now(timezone.utc) + (
            expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
        )
        to_encode.update({"exp": expire, "type": "access"})
        return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

    @staticmethod
    def create_user_token(user: User) -> str:
        return TokenManager.create_access_token(
            {"sub": str(user.id), "role": user.role.value}
        )

    @staticmethod
    def decode_token(token: str) -> dict:
        """Decode and verify a JWT token"""
        try:
            return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        except JWTError as e:
            raise ValueError("Invalid or expired token") from e


def get_password_hash(password: str) -> str:
    """Hash a plaintext password using Argon2"""
    try:
        return ph.hash(password)
    except HashingError as e:
        logger.error(
            "Password hashing failed",
            extra={
                "event_type": "password_hashing_failed",
                "error": str(e)
            }
        )
        raise HTTPException(
            status_code=500,
            detail="Password hashing failed"
        ) from e


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        ph.verify(hashed_password, plain_password)
        return True
    except VerifyMismatchError:
        return False
    except VerificationError as e:
        logger.error(
            "Password verification error",
            extra={
                "event_type": "password_verification_error",
                "error": str(e)
            }
        )
        return False


def needs_rehash(hashed_password: str) -> bool:
    return ph.check_needs_rehash(hashed_password)


async def authenticate_user(
    db: AsyncSession,
    email: str,
    password: str,
    ip_address: str = None,
) -> Tuple[bool, Optional[User], Optional[str]]:
    """
    Check credentials.
    Returns: (success, user, error_message)
    """
    result = await db.execute(
        select(User)
        .options(selectinload(User.hospital))
        .where(User.email == email.lower())
    )
    user = result.scalar_one_or_none()

    if not user or not verify_password(password, user.password):
        log_security_event(
            event_type="failed_login_attempt",
            ip_address=ip_address,
            details={"email": email},
        )
        return False, None, "Invalid email or password"

    if not user.is_active:
        return False, user, "Account is inactive"

    if needs_rehash(user.password):
        user.password = get_password_hash(password)
        logger.info(
            "Password rehashed with updated parameters",
            extra={
                "event_type": "password_rehashed",
                "user_id": str(user.id)
            }
        )

    log_security_event(
        event_type="successful_login",
        user_id=str(user.id),
        ip_address=ip_address,
    )
    return True, user, None


async def get_current_user(
    db: AsyncSession = Depends(get_db),
    token: str = Depends(oauth2_scheme),
) -> User:
    """Resolve the bearer token to an active user"""
    try:
        payload = TokenManager.decode_token(token)
        user_id = payload.get("sub")

        if user_id is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token does not contain user ID",
                headers={"WWW-Authenticate": "Bearer"},
            )

        if payload.get("type") != "access":
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid token type",
                headers={"WWW-Authenticate": "Bearer"},
            )

        result = await db.execute(
            select(User)
            .options(selectinload(User.hospital))
            .where(User.id == UUID(user_id))
        )
        user = result.scalar_one_or_none()

        if user is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="User not found",
                headers={"WWW-Authenticate": "Bearer"},
            )

        if not user.is_active:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Account is inactive",
                headers={"WWW-Authenticate": "Bearer"},
            )

        return user

    except (JWTError, ValueError) as e:
        logger.warning(
            "Invalid authentication credentials",
            extra={
                "event_type": "invalid_auth_credentials",
                "error": str(e)
            }
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
