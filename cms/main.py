import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from cms.config import Settings, settings
from cms.database import Database
from cms.errors import CMSError, cms_error_handler, http_error_handler, request_validation_handler
from cms.middleware import ErrorBoundaryMiddleware, TimingMiddleware
from cms.routers import articles, auth, categories, dashboard, users
from cms.security import CredentialVerifier

VERSION = "1.0.0"

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("CMS API starting (env=%s)", app.state.settings.APP_ENV)
    yield
    # Shutdown
    await app.state.db.dispose()


def create_app(app_settings: Settings | None = None, database: Database | None = None) -> FastAPI:
    """
    Build the application.  Tests pass their own settings and an in-memory
    ``Database``; otherwise both come from the environment.
    """
    app_settings = app_settings or settings
    logging.basicConfig(
        level=app_settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title="CMS API",
        description="Content management backend: users, articles, categories and an activity-logged dashboard",
        version=VERSION,
        debug=app_settings.DEBUG,
        lifespan=lifespan,
    )
    app.state.settings = app_settings
    app.state.db = database or Database(app_settings.DATABASE_URL, echo=app_settings.DEBUG)
    app.state.credentials = CredentialVerifier.from_settings(app_settings)

    # Error handlers
    app.add_exception_handler(CMSError, cms_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)

    # Middleware (last added is outermost). CORS wraps the error boundary
    # so the generic 500 carries CORS headers too.
    app.add_middleware(TimingMiddleware)
    app.add_middleware(ErrorBoundaryMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.CORS_ORIGINS,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(auth.router)
    app.include_router(users.router)
    app.include_router(articles.router)
    app.include_router(categories.router)
    app.include_router(dashboard.router)

    @app.get("/health")
    async def health():
        return {"status": "healthy", "version": VERSION}

    return app


app = create_app()
