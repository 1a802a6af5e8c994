import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from conduit.cache import cache
from conduit.config import settings
from conduit.database import create_schema
from conduit.exceptions import ConduitError, StoreError
from conduit.middleware import TimingMiddleware
from conduit.routers import articles, profiles, tags, users

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


def setup_logging() -> None:
    """Configure root logging once, from ``settings.LOG_LEVEL``, to stdout."""
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )
    # SQL echo is controlled by DEBUG on the engine itself.
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    if settings.CREATE_SCHEMA_ON_STARTUP:
        await create_schema()
    await cache.connect()
    logger.info("Conduit API started (env=%s)", settings.APP_ENV)
    yield
    await cache.disconnect()


# ---------------------------------------------------------------------------
# Error rendering: every failure becomes {"error": <detail>}
# ---------------------------------------------------------------------------

def _validation_errors(exc: RequestValidationError) -> dict[str, list[str]]:
    """Collapse pydantic's error list into a ``{field: [messages]}`` map."""
    errors: dict[str, list[str]] = {}
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ())]
        # Drop the request location ("body", "query", ...), keep the field path.
        if loc and loc[0] in ("body", "query", "path", "header"):
            loc = loc[1:]
        field = loc[-1] if loc else "body"
        message = error.get("msg", "is invalid")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        errors.setdefault(field, []).append(message)
    return errors


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ConduitError)
    async def handle_conduit_error(request: Request, exc: ConduitError):
        if exc.status_code >= 500:
            logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.context)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=422, content={"error": _validation_errors(exc)})

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(SQLAlchemyError)
    async def handle_store_error(request: Request, exc: SQLAlchemyError):
        logger.error("Store error on %s %s", request.method, request.url.path, exc_info=exc)
        error = StoreError(str(exc) if settings.DEBUG else "database error")
        return JSONResponse(status_code=error.status_code, content={"error": error.detail})

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error("Unexpected error on %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse(status_code=500, content={"error": "internal server error"})


app = FastAPI(
    title="Conduit API",
    description="Blogging platform backend: users, profiles, articles, comments, tags",
    version=VERSION,
    lifespan=lifespan,
)

# Middleware
app.add_middleware(TimingMiddleware)
app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Routers
app.include_router(users.router)
app.include_router(profiles.router)
app.include_router(articles.router)
app.include_router(tags.router)


@app.get("/health")
async def health():
    return {"status": "healthy", "version": VERSION, "cache": cache.stats}
