import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine

# Import models so they're registered with SQLAlchemy Base before create_all
from . import models  # noqa: F401
from .config import Settings, load_settings
from .database import Base, build_engine, build_session_factory
from .domain.applications.router import router as applications_router
from .domain.therapists.router import router as therapists_router
from .exceptions import IdentityProviderNotConfiguredError, StoreNotConfiguredError
from .identity import IdentityProviderClient, build_identity_provider
from .routes.admin import router as admin_router
from .routes.auth import router as auth_router
from .security_headers import SecurityHeadersMiddleware
from .security_middleware import AdminAccessMiddleware, ProAccessMiddleware

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    engine = app.state.engine
    if engine is None:
        logger.warning("⚠️ DATABASE_URL not set - store-backed endpoints will answer 500")
    else:
        try:
            Base.metadata.create_all(bind=engine, checkfirst=True)
            logger.info("Database tables created successfully")
        except Exception as e:
            # Ignore "already exists" errors from race conditions between workers
            error_msg = str(e)
            if "already exists" in error_msg or "duplicate key" in error_msg:
                logger.info("Database tables already exist (created by another worker)")
            else:
                logger.error(f"Failed to create database tables: {e}")

    yield
    logger.info("Application shutting down...")


def create_app(
    settings: Optional[Settings] = None,
    identity_provider: Optional[IdentityProviderClient] = None,
    engine: Optional[Engine] = None,
) -> FastAPI:
    """
    Build the application.

    Tests pass their own settings, engine and identity provider; in production all
    three come from the environment.
    """
    settings = settings or load_settings()
    if engine is None and settings.store_configured:
        engine = build_engine(settings)
    if identity_provider is None:
        identity_provider = build_identity_provider(settings)

    app = FastAPI(title="Psicofinders API", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine) if engine is not None else None
    app.state.identity_provider = identity_provider

    @app.exception_handler(StoreNotConfiguredError)
    async def store_not_configured_handler(request: Request, exc: StoreNotConfiguredError):
        logger.error(f"❌ {request.method} {request.url.path}: {exc}")
        return JSONResponse(status_code=500, content={"error": str(exc)})

    @app.exception_handler(IdentityProviderNotConfiguredError)
    async def provider_not_configured_handler(
        request: Request, exc: IdentityProviderNotConfiguredError
    ):
        logger.error(f"❌ {request.method} {request.url.path}: {exc.message}")
        return JSONResponse(status_code=500, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Validation error for {request.url.path}: {exc.errors()}")
        # The rejected input is not echoed back; it may hold NaN, which JSON cannot carry
        errors = [{k: v for k, v in error.items() if k != "input"} for error in exc.errors()]
        return JSONResponse(status_code=422, content={"detail": jsonable_encoder(errors)})

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        try:
            response = await call_next(request)
            return response
        except Exception as e:
            logger.error(f"{request.method} {request.url.path} - Error: {str(e)}")
            raise

    # Innermost first: the access gates run after CORS and security headers
    app.add_middleware(ProAccessMiddleware)
    app.add_middleware(AdminAccessMiddleware)

    if settings.security_headers_enabled:
        app.add_middleware(
            SecurityHeadersMiddleware,
            exclude_paths=["/health", "/docs", "/openapi.json"],
            is_production=settings.is_production,
        )
        logger.info("Security headers enabled")
    else:
        logger.warning("Security headers DISABLED - only use in development!")

    logger.info(f"CORS allowed origins: {list(settings.allowed_origins)}")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.allowed_origins),
        allow_credentials=True,  # Session cookies
        allow_methods=["GET", "POST", "PUT", "OPTIONS"],
        allow_headers=["*"],
    )

    # Routes
    app.include_router(auth_router)
    app.include_router(therapists_router)
    app.include_router(applications_router)
    app.include_router(admin_router)

    @app.get("/")
    def root():
        return {"message": "Psicofinders API is running"}

    @app.get("/health")
    def health():
        return {"status": "healthy"}

    return app


app = create_app()
