"""Main FastAPI application."""
import logging
from contextlib import asynccontextmanager
import httpx
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from storefront.config import settings
from storefront.data.database.connection import engine, Base, get_db
# Import models to ensure tables are created
from storefront.data.database import cache_models  # noqa: F401
from storefront.errors import StorefrontError
from storefront.logging_config import configure_logging
from storefront.middlewares.tokenValidationMiddleware import TokenValidationMiddleware
from storefront.routes.admin import router as admin_router
from storefront.routes.public import router as public_router
from storefront.routes.storefront import router as storefront_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # One pooled HTTP client shared by every outbound integration
    app.state.http_client = httpx.AsyncClient(timeout=settings.http_timeout)
    logger.info("HTTP client ready")
    try:
        yield
    finally:
        await app.state.http_client.aclose()


async def storefront_error_handler(request: Request, exc: StorefrontError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s rejected (%d): %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


def create_app() -> FastAPI:
    configure_logging()

    # Create database tables
    Base.metadata.create_all(bind=engine)

    app = FastAPI(
        title=settings.project_name,
        version=settings.api_version,
        description="NA storefront backend - cart proxy, AI generation and admin functions",
        lifespan=lifespan,
    )

    app.add_middleware(TokenValidationMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(StorefrontError, storefront_error_handler)

    app.include_router(storefront_router)
    app.include_router(public_router)
    app.include_router(admin_router)

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "message": f"{settings.project_name} API",
            "version": settings.api_version,
            "docs": "/docs",
        }

    @app.get("/health")
    @app.head("/health")
    def health_check(db: Session = Depends(get_db)):
        """Health check endpoint. Resolving the session proves the database answers."""
        return {"status": "healthy"}

    return app


app = create_app()
