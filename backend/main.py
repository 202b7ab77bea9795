# backend/main.py
"""
Event registration intake API
"""
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from core.config import Settings, settings as default_settings
from core.dependencies import enforce_rate_limit
from core.exceptions import InternalError, RateLimitExceeded, RegistrationAPIError
from core.registration_store import RegistrationStore
from core.responses import error_response, success_response
from core.security import SECURITY_HEADERS, RateLimiter, get_client_ip
from routes import registrations

# ===== LOGGING SETUP =====
logging.basicConfig(
    level=getattr(logging, default_settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def build_discovery_document(settings: Settings) -> dict:
    base = f"{settings.API_PREFIX}/registrations"
    return {
        "version": settings.APP_VERSION,
        "endpoints": {
            "registrations": {
                f"POST {base}": "Create a new registration",
                f"GET {base}": "Get all registrations with filtering and pagination",
                f"GET {base}/stats": "Get registration statistics",
                f"GET {base}/:id": "Get a single registration by ID",
                f"PUT {base}/:id/status": "Update registration status",
                f"DELETE {base}/:id": "Permanently delete a registration",
            },
            "health": {
                "GET /health": "Health check endpoint",
            },
        },
        "queryParameters": {
            f"GET {base}": {
                "page": "Page number for pagination (default: 1)",
                "limit": f"Number of records per page (default: {settings.DEFAULT_PAGE_SIZE}, max: {settings.MAX_PAGE_SIZE})",
                "registrationType": "Filter by registration type (anchor-partner, series-venture, attend)",
                "status": "Filter by status (pending, reviewed, approved, rejected)",
                "sponsorshipTier": "Filter by sponsorship tier (tier1, tier2, community, demoday)",
                "ventureStage": "Filter by venture stage (idea, prototype, pilot, early-revenue, scaling)",
                "fundingNeeds": "Filter by funding needs (under-5m, 5m-10m, 10m-25m, 25m-50m, over-50m)",
                "startDate": "Filter by start date (YYYY-MM-DD)",
                "endDate": "Filter by end date (YYYY-MM-DD, inclusive)",
                "search": "Search in name, email, organization, phone, or location",
            },
        },
        "contact": {
            "email": settings.CONTACT_EMAIL,
            "organization": settings.CONTACT_ORGANIZATION,
        },
    }


def create_app(settings: Optional[Settings] = None, store: Optional[RegistrationStore] = None) -> FastAPI:
    """Build the application; the store is opened on startup and closed on shutdown"""
    settings = settings or default_settings
    store = store or RegistrationStore.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"🚀 Starting {settings.APP_NAME} ({settings.ENVIRONMENT})...")
        await store.open()
        logger.info(f"✅ {settings.APP_NAME} ready!")
        try:
            yield
        finally:
            logger.info("🛑 Shutting down...")
            await store.close()

    app = FastAPI(
        title=settings.APP_NAME,
        description="Registration intake for anchor partners, series ventures and attendees",
        version=settings.APP_VERSION,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store
    window = settings.RATE_LIMIT_WINDOW_SECONDS
    app.state.rate_limiters = {
        kind: RateLimiter(kind, limit, window)
        for kind, limit in settings.get_rate_limits().items()
    }

    # ===== CORS =====
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_cors_origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
    )

    # ===== MIDDLEWARE =====
    @app.middleware("http")
    async def request_middleware(request: Request, call_next):
        """General rate limit, security headers and request logging"""
        start_time = time.time()

        try:
            if request.url.path.startswith(settings.API_PREFIX):
                enforce_rate_limit(request, "general")
            response = await call_next(request)
        except RateLimitExceeded as e:
            response = render_api_error(e)
        process_time = time.time() - start_time

        for header, value in SECURITY_HEADERS.items():
            response.headers[header] = value
        response.headers["X-Process-Time"] = str(round(process_time, 3))

        logger.info(
            f"{request.method} {request.url.path} {response.status_code} "
            f"{process_time * 1000:.0f}ms - {get_client_ip(request)}"
        )
        if process_time > settings.SLOW_REQUEST_THRESHOLD_SECONDS:
            logger.warning(f"Slow request: {request.method} {request.url.path} - {process_time:.3f}s")

        return response

    # ===== ERROR HANDLERS =====
    def render_api_error(exc: RegistrationAPIError):
        headers = None
        extra = dict(exc.extra)
        if isinstance(exc, RateLimitExceeded):
            headers = {"Retry-After": str(exc.retry_after)}
        if isinstance(exc, InternalError) and exc.detail and settings.is_development():
            extra["error"] = exc.detail
        return error_response(exc.message, exc.status_code, errors=exc.errors, headers=headers, **extra)

    @app.exception_handler(RegistrationAPIError)
    async def registration_error_handler(request: Request, exc: RegistrationAPIError):
        return render_api_error(exc)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = [
            {"field": ".".join(str(p) for p in err.get("loc", ())), "message": err.get("msg")}
            for err in exc.errors()
        ]
        return error_response("Validation errors", 400, errors=errors)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return error_response(
                "API endpoint not found",
                404,
                availableEndpoints={
                    "health": "GET /health",
                    "api_docs": f"GET {settings.API_PREFIX}",
                    "registrations": f"GET {settings.API_PREFIX}/registrations",
                },
            )
        return error_response(str(exc.detail), exc.status_code)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(f"Global error handler: {exc}", exc_info=True)
        return render_api_error(
            InternalError(detail=str(exc) if settings.is_development() else None)
        )

    # ===== SYSTEM ENDPOINTS =====
    @app.get("/health")
    async def health_check():
        """System health check"""
        database = await app.state.store.ping()
        return success_response(
            message=f"{settings.APP_NAME} is running",
            timestamp=datetime.utcnow().isoformat(),
            environment=settings.ENVIRONMENT,
            version=settings.APP_VERSION,
            database=database,
        )

    @app.get(settings.API_PREFIX)
    async def api_discovery():
        """API documentation"""
        return success_response(
            message=f"{settings.APP_NAME} v{settings.APP_VERSION}",
            **build_discovery_document(settings),
        )

    # ===== ROUTES =====
    app.include_router(
        registrations.router,
        prefix=f"{settings.API_PREFIX}/registrations",
        tags=["registrations"],
    )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=5000)
