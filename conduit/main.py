import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from conduit.config import settings
from conduit.database import engine
from conduit.errors import (
    DuplicateError,
    EditConflictError,
    NotFoundError,
    StoreError,
    StoreValidationError,
)
from conduit.middleware import TimingMiddleware
from conduit.routers import articles, profiles

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: dict[type[StoreError], int] = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    EditConflictError: status.HTTP_409_CONFLICT,
    DuplicateError: status.HTTP_409_CONFLICT,
    StoreValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("Starting article store API (env=%s)", settings.APP_ENV)
    yield
    # Shutdown
    await engine.dispose()


app = FastAPI(
    title="Conduit Article Store",
    description="Articles, favorites and follows with a consistent favorites counter",
    version="1.0.0",
    lifespan=lifespan,
)

# Middleware
app.add_middleware(TimingMiddleware)

# Routers
app.include_router(articles.router)
app.include_router(articles.tags_router)
app.include_router(profiles.router)


def _error_response(status_code: int, message: str, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"errors": {"body": [message]}},
        headers=headers,
    )


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    status_code = _STATUS_BY_ERROR.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
    return _error_response(status_code, str(exc))


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return _error_response(exc.status_code, str(exc.detail), getattr(exc, "headers", None))


@app.exception_handler(TimeoutError)
@app.exception_handler(SQLAlchemyError)
async def storage_error_handler(request: Request, exc: Exception):
    logger.exception(
        "Storage failure on %s %s", request.method, request.url.path, exc_info=exc
    )
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "internal server error")


@app.get("/health")
async def health():
    return {"status": "healthy", "version": "1.0.0"}
