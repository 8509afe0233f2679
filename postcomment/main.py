"""Posts & comments API - Main Application."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from postcomment.comments.repository import CommentRepository
from postcomment.comments.router import post_comments_router
from postcomment.comments.router import router as comments_router
from postcomment.comments.service import CommentService
from postcomment.config import get_settings
from postcomment.core.cache import CacheCoordinator, CacheTTLs, RedisCacheStore
from postcomment.core.context import current_context
from postcomment.core.database import (
    WorkerIdLease,
    init_async_cassandra,
    shutdown_async_cassandra,
)
from postcomment.core.exceptions import AppError, status_for_error
from postcomment.core.ids import SnowflakeIdGenerator
from postcomment.core.logging import configure_structlog, get_logger
from postcomment.core.middleware import RequestContextMiddleware
from postcomment.core.pagination import CursorPaginator
from postcomment.health import router as health_router
from postcomment.posts.repository import PostRepository
from postcomment.posts.router import router as posts_router
from postcomment.posts.router import users_router
from postcomment.posts.service import FeedService


# Configure logging early (before creating logger)
settings = get_settings()
configure_structlog(settings, to_files=not settings.is_testing)

logger = get_logger(__name__)


class AppState:
    """Application state container."""

    cassandra_session: Any = None
    cache: CacheCoordinator | None = None
    feed_service: FeedService | None = None
    comment_service: CommentService | None = None


app_state = AppState()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    settings = get_settings()
    logger.info(
        "starting_application",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
    )

    # Redis is non-critical: while it is down every read goes to Cassandra
    store = None
    if settings.cache_enabled:
        store = RedisCacheStore.from_settings(settings)
        if await store.ping():
            logger.info(
                "redis_connected", max_connections=settings.redis_max_connections
            )
        else:
            logger.warning(
                "redis_unreachable",
                message="Serving from Cassandra until Redis answers",
            )

    app_state.cache = CacheCoordinator(store, CacheTTLs.from_settings(settings))
    app.state.cache = app_state.cache

    lease = None
    try:
        app_state.cassandra_session = await init_async_cassandra()
        logger.info("cassandra_initialized")

        posts = PostRepository(
            session=app_state.cassandra_session,
            keyspace=settings.cassandra_keyspace,
        )
        comments = CommentRepository(
            session=app_state.cassandra_session,
            keyspace=settings.cassandra_keyspace,
        )
        lease = WorkerIdLease(
            app_state.cassandra_session,
            settings.cassandra_keyspace,
            ttl_seconds=settings.worker_lease_ttl_seconds,
        )
        ids = SnowflakeIdGenerator(await lease.acquire(settings.snowflake_worker_id))
        lease.start(ids)
        paginator = CursorPaginator(settings.feed_page_size)

        app_state.feed_service = FeedService(
            posts=posts,
            comments=comments,
            cache=app_state.cache,
            ids=ids,
            paginator=paginator,
        )
        app.state.feed_service = app_state.feed_service
        logger.info("feed_service_initialized")

        app_state.comment_service = CommentService(
            comments=comments,
            posts=posts,
            cache=app_state.cache,
            ids=ids,
            paginator=paginator,
        )
        app.state.comment_service = app_state.comment_service
        logger.info("comment_service_initialized", cache_enabled=store is not None)
    except Exception as e:
        logger.warning(
            "database_init_skipped",
            error=str(e),
            message="Running without database connection",
        )

    yield

    # Shutdown
    logger.info("shutting_down_application")
    if lease is not None:
        try:
            await lease.release()
        except Exception as e:
            logger.warning("worker_id_release_failed", error=str(e))
    if store is not None:
        await store.close()
    await shutdown_async_cassandra()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    # debug stays off so ServerErrorMiddleware never renders tracebacks
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Posts, feeds and threaded comments",
        debug=False,
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
    )

    # Request context middleware (must be added first - outermost)
    app.add_middleware(
        RequestContextMiddleware,
        log_requests=settings.log_requests,
        exclude_paths=settings.log_exclude_paths,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
        max_age=settings.cors_max_age,
    )

    def _get_request_id_safe(request: Request) -> str | None:
        """Get request_id from request state or context."""
        if hasattr(request.state, "request_id"):
            return request.state.request_id
        return current_context().request_id or None

    def _error_response(
        request: Request, status_code: int, message: str, **extra: Any
    ) -> ORJSONResponse:
        return ORJSONResponse(
            status_code=status_code,
            content={
                "error": True,
                "message": message,
                "status_code": status_code,
                "request_id": _get_request_id_safe(request),
                **extra,
            },
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> ORJSONResponse:
        """Handle HTTP exceptions with safe error messages."""
        logger.warning(
            "http_exception",
            status_code=exc.status_code,
            detail=str(exc.detail),
            path=request.url.path,
            method=request.method,
        )
        message = (
            str(exc.detail)
            if exc.status_code < status.HTTP_500_INTERNAL_SERVER_ERROR
            else "Internal server error"
        )
        return _error_response(request, exc.status_code, message)

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> ORJSONResponse:
        """Application errors that escaped a router."""
        status_code = status_for_error(exc)
        logger.warning(
            "app_error",
            code=exc.code,
            status_code=status_code,
            detail=exc.message,
            path=request.url.path,
            method=request.method,
        )
        return _error_response(request, status_code, exc.message, code=exc.code)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> ORJSONResponse:
        """Handle validation errors with safe error messages."""
        logger.warning(
            "validation_error",
            errors=exc.errors(),
            path=request.url.path,
            method=request.method,
        )
        return _error_response(
            request,
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            "Validation error",
            details=[
                {
                    "field": ".".join(str(loc) for loc in err.get("loc", [])),
                    "message": err.get("msg", "Invalid value"),
                }
                for err in exc.errors()
            ],
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request, exc: Exception
    ) -> ORJSONResponse:
        """Catch-all handler; details are logged, never returned."""
        logger.exception(
            "unhandled_exception",
            error_type=type(exc).__name__,
            error_message=str(exc),
            path=request.url.path,
            method=request.method,
        )
        return _error_response(
            request,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "An unexpected error occurred. Please try again later.",
        )

    app.include_router(health_router)
    app.include_router(posts_router)
    app.include_router(users_router)
    app.include_router(post_comments_router)
    app.include_router(comments_router)

    @app.get("/", include_in_schema=False)
    async def root(request: Request) -> dict[str, str]:
        """Root endpoint."""
        return {
            "message": "Posts & comments API",
            "version": settings.app_version,
            "docs": f"{request.url}docs",
        }

    return app


app = create_app()
