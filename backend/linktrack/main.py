from fastapi import FastAPI, Request, Depends
from fastapi.responses import RedirectResponse, JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from .config import settings
from .database import engine, Base, get_db
from .geolocation import GeoResolver
from .resolver import GlobalCode, LinkLookup, SlugScoped
from .routes import router as api_router
from .redis_client import RedisService
from .schemas import HealthResponse
from .services import is_reserved_slug
from .tracking import TrackingOutcome, dispatch, request_meta
from .logging_config import setup_logging, get_logger, set_request_id

# Initialize structured logging
setup_logging()
logger = get_logger(__name__)

geo_resolver = GeoResolver.from_settings()


def get_geo_resolver() -> GeoResolver:
    """Dependency returning the shared provider chain."""
    return geo_resolver


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Middleware to add request ID to each request for tracing."""

    async def dispatch(self, request: Request, call_next):
        rid = set_request_id(request.headers.get("X-Request-ID"))
        response = await call_next(request)
        response.headers["X-Request-ID"] = rid
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info(f"Starting {settings.APP_NAME}...")

    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created/verified")

    providers = ", ".join(p.name for p in geo_resolver.providers) or "none"
    logger.info(f"Geolocation providers: {providers}")

    yield

    logger.info(f"Shutting down {settings.APP_NAME}...")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Click tracking links with per-creator analytics",
    lifespan=lifespan,
    docs_url="/api/docs" if settings.DEBUG else None,
    redoc_url="/api/redoc" if settings.DEBUG else None
)

# Request ID middleware for tracing
app.add_middleware(RequestIdMiddleware)

if settings.CORS_ORIGINS == ["*"]:
    logger.warning("CORS configured to allow all origins. Set CORS_ORIGINS for production.")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(api_router, prefix="/api", tags=["Analytics"])


@app.get("/health", response_model=HealthResponse)
async def health_check(db: Session = Depends(get_db)):
    """Health check endpoint."""
    db_healthy = True
    redis_healthy = RedisService.health_check()

    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}")
        db_healthy = False

    status = "healthy" if (db_healthy and redis_healthy) else "degraded"

    return {
        "status": status,
        "database": db_healthy,
        "redis": redis_healthy,
        "version": settings.APP_VERSION
    }


def _split_params(params: str):
    return [part for part in params.split("/") if part]


async def _track(
    request: Request,
    db: Session,
    resolver: GeoResolver,
    lookup: LinkLookup,
    segments,
) -> RedirectResponse:
    """Run the tracking pipeline; every failure ends in the blank redirect."""
    try:
        outcome = await dispatch(db, lookup, segments, request_meta(request), resolver)
    except Exception:
        logger.exception(f"Tracking failed for {request.url.path}")
        outcome = TrackingOutcome.blank()

    return RedirectResponse(url=outcome.location, status_code=307)


# Tracking routes are registered after the API so /api/* is matched first,
# and global /l/* before the slug-scoped catch-all.
@app.get("/l/{short_code}", include_in_schema=False)
async def track_global(
    short_code: str,
    request: Request,
    db: Session = Depends(get_db),
    resolver: GeoResolver = Depends(get_geo_resolver),
):
    return await _track(request, db, resolver, GlobalCode(short_code), [])


@app.get("/l/{short_code}/{params:path}", include_in_schema=False)
async def track_global_attributed(
    short_code: str,
    params: str,
    request: Request,
    db: Session = Depends(get_db),
    resolver: GeoResolver = Depends(get_geo_resolver),
):
    return await _track(request, db, resolver, GlobalCode(short_code), _split_params(params))


@app.get("/{project_slug}/{short_code}", include_in_schema=False)
async def track_project(
    project_slug: str,
    short_code: str,
    request: Request,
    db: Session = Depends(get_db),
    resolver: GeoResolver = Depends(get_geo_resolver),
):
    if is_reserved_slug(project_slug):
        return JSONResponse(status_code=404, content={"error": "Not found"})
    return await _track(request, db, resolver, SlugScoped(project_slug, short_code), [])


@app.get("/{project_slug}/{short_code}/{params:path}", include_in_schema=False)
async def track_project_attributed(
    project_slug: str,
    short_code: str,
    params: str,
    request: Request,
    db: Session = Depends(get_db),
    resolver: GeoResolver = Depends(get_geo_resolver),
):
    if is_reserved_slug(project_slug):
        return JSONResponse(status_code=404, content={"error": "Not found"})
    return await _track(
        request, db, resolver, SlugScoped(project_slug, short_code), _split_params(params)
    )


# Exception handlers
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code or 500,
        content={"error": exc.detail or "HTTP error"},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def server_error_handler(request: Request, exc: Exception):
    logger.error(f"Server error: {exc}")
    return JSONResponse(status_code=500, content={"error": "Internal server error"})
