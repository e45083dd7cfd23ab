from __future__ import annotations

from contextlib import asynccontextmanager
import logging

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from tenantauth.authz.cache import ContextCache, MemoryCacheStore, RedisCacheStore
from tenantauth.authz.errors import AuthorizationError
from tenantauth.db import filters as _filters  # noqa: F401  (register SQLAlchemy filters)
from tenantauth.db.init_db import init_db
from tenantauth.logging_config import configure_app_logging
from tenantauth.routers import bookings, health, me, roles
from tenantauth.security.config import load_security_config
from tenantauth.security.dependencies import enforce_security
from tenantauth.settings import Settings, get_settings

logger = logging.getLogger(__name__)


def build_context_cache(settings: Settings) -> tuple[ContextCache, RedisCacheStore | None]:
    if settings.cache_backend == "redis":
        store = RedisCacheStore.from_url(settings.redis_url)
        cache = ContextCache(store, settings.context_cache_ttl_seconds, settings.context_cache_prefix)
        return cache, store
    return ContextCache(MemoryCacheStore(), settings.context_cache_ttl_seconds, settings.context_cache_prefix), None


async def authorization_error_handler(request: Request, exc: AuthorizationError) -> JSONResponse:
    logger.info(
        "Authorization failure code=%s path=%s method=%s",
        exc.code,
        request.url.path,
        request.method,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def create_app() -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        settings = get_settings()
        configure_app_logging(settings.log_level)
        logger.info("App startup beginning")

        app.state.security_config = load_security_config(settings.resolved_security_config_path())
        logger.info("Loaded security config: %s", settings.resolved_security_config_path())

        app.state.context_cache, redis_store = build_context_cache(settings)
        logger.info(
            "Context cache backend=%s ttl=%ss",
            settings.cache_backend,
            settings.context_cache_ttl_seconds,
        )

        init_db()
        logger.info("Database initialized (tables ensured + seed if needed)")

        yield

        # Shutdown
        if redis_store is not None:
            redis_store.close()

    # Global dependency: every route is checked against the security config.
    app = FastAPI(dependencies=[Depends(enforce_security)], lifespan=lifespan)
    app.add_exception_handler(AuthorizationError, authorization_error_handler)

    app.include_router(health.router)
    app.include_router(me.router)
    app.include_router(roles.router)
    app.include_router(bookings.router)

    return app


app = create_app()
