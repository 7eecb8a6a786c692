from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, Depends
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi
from fastapi.responses import RedirectResponse
from sqladmin import Admin
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from app.admin.hospital_admin import HospitalAdmin
from app.admin.request_admin import BloodRequestAdmin
from app.admin.user_admin import UserAdmin
from app.config import settings
from app.database import IS_SERVERLESS, engine, init_db, close_db
from app.dependencies import get_db
from app.middlewares.logging_middleware import LoggingMiddleware
from app.routes import router as api_router
from app.services.scheduler import start_scheduler, stop_scheduler
from app.utils.exceptions import BloodLinkError, blood_link_error_handler
from app.utils.logging_config import get_logger

logger = get_logger(__name__)

RUN_SCHEDULER = settings.ENABLE_SCHEDULER and not IS_SERVERLESS


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI application startup and shutdown events.
    """
    logger.info("Application starting up...")

    # Production schemas are managed by alembic
    if settings.ENVIRONMENT.lower() != "production":
        await init_db()

    if RUN_SCHEDULER:
        start_scheduler()
    else:
        logger.info("Badge snapshot scheduler disabled")

    yield

    logger.info("Application shutting down...")
    if RUN_SCHEDULER:
        stop_scheduler()
    await close_db()


def create_application() -> FastAPI:
    """Create the FastAPI application"""
    app = FastAPI(
        title=settings.PROJECT_NAME,
        description=settings.PROJECT_DESCRIPTION,
        version=settings.VERSION,
        docs_url=settings.DOCS_URL,
        redoc_url=None,
        lifespan=lifespan,
    )

    @app.middleware("http")
    async def https_redirect(request: Request, call_next):
        """Redirect HTTP to HTTPS behind a TLS-terminating load balancer"""
        if request.headers.get("x-forwarded-proto") == "http":
            url = request.url.replace(scheme="https")
            return RedirectResponse(url)
        return await call_next(request)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.BACKEND_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
        allow_headers=[
            "Content-Type",
            "Authorization",
            "Accept",
            "X-Requested-With",
            "Origin",
        ],
        expose_headers=["Content-Length", "Content-Type", "X-Request-ID"],
        max_age=600,
    )

    app.add_middleware(LoggingMiddleware)

    app.add_exception_handler(BloodLinkError, blood_link_error_handler)

    app.include_router(api_router, prefix=settings.API_PREFIX)

    if settings.ENABLE_ADMIN_PANEL and not IS_SERVERLESS:
        admin = Admin(app, engine, base_url=settings.ADMIN_PATH)
        admin.add_view(UserAdmin)
        admin.add_view(HospitalAdmin)
        admin.add_view(BloodRequestAdmin)

    def custom_openapi():
        if app.openapi_schema:
            return app.openapi_schema

        openapi_schema = get_openapi(
            title=app.title,
            version=app.version,
            description=app.description,
            routes=app.routes,
        )

        openapi_schema["components"]["securitySchemes"] = {
            "BearerAuth": {
                "type": "http",
                "scheme": "bearer",
                "bearerFormat": "JWT",
            }
        }

        protected_paths = [
            f"{settings.API_PREFIX}/users/me",
            f"{settings.API_PREFIX}/requests",
            f"{settings.API_PREFIX}/hospitals",
        ]

        for path_key, path_item in openapi_schema["paths"].items():
            if any(path_key.startswith(p) for p in protected_paths):
                for method in path_item.values():
                    method.setdefault("security", []).append({"BearerAuth": []})

        app.openapi_schema = openapi_schema
        return app.openapi_schema

    app.openapi = custom_openapi

    @app.get("/")
    def read_root():
        return {
            "status": "ok",
            "service": settings.PROJECT_NAME,
            "environment": settings.ENVIRONMENT,
        }

    @app.get("/health")
    async def health_check(db: AsyncSession = Depends(get_db)):
        """Health check with database connectivity test"""
        try:
            await db.execute(select(1))
            return {"status": "healthy", "database": "connected"}
        except Exception as e:
            logger.error(f"Health check failed: {e}")
            return {"status": "unhealthy", "database": "disconnected"}

    return app


app = create_application()
