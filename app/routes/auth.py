import time
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.dependencies import get_db
from app.schemas.user import TokenResponse, UserLogin, UserResponse
from app.utils.ip_address_finder import get_client_ip, get_user_agent
from app.utils.logging_config import get_logger, log_security_event
from app.utils.security import TokenManager, authenticate_user

logger = get_logger(__name__)

router = APIRouter(prefix="/users/auth", tags=["auth"])


@router.post("/login", response_model=TokenResponse)
async def login(
    credentials: UserLogin,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """Exchange email and password for a bearer token"""
    start_time = time.time()
    client_ip = get_client_ip(request)

    logger.info(
        f"Login attempt for email: {credentials.email}",
        extra={
            "extra_fields": {
                "email": credentials.email,
                "client_ip": client_ip,
                "user_agent": get_user_agent(request),
                "action": "login_attempt",
            }
        },
    )

    try:
        success, user, error_message = await authenticate_user(
            db=db,
            email=credentials.email,
            password=credentials.password,
            ip_address=client_ip,
        )
        if not success:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=error_message,
                headers={"WWW-Authenticate": "Bearer"},
            )

        await db.commit()
        access_token = TokenManager.create_user_token(user)

        logger.info(
            "Login successful",
            extra={
                "extra_fields": {
                    "user_id": str(user.id),
                    "duration_ms": round((time.time() - start_time) * 1000, 2),
                    "action": "login_success",
                }
            },
        )
        return TokenResponse(
            access_token=access_token,
            user=UserResponse.model_validate(user),
        )

    except HTTPException:
        raise
    except Exception as e:
        logger.error(
            "Login failed due to unexpected error",
            extra={"extra_fields": {"error": str(e), "action": "login_error"}},
            exc_info=True,
        )
        log_security_event(
            event_type="login_system_error",
            ip_address=client_ip,
            details={"error": str(e)},
        )
        raise HTTPException(status_code=500, detail="Login failed")
