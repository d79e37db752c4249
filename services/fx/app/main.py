"""FastAPI application entrypoint."""
from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.concurrency import run_in_threadpool

from .api import failure, router
from .cache import RateCache
from .clients import ExchangeRateApiClient
from .cors import add_cors
from .errors import ErrorCode
from .ports import RateProvider
from .services import ConversionService
from .settings import Settings, get_settings

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def create_app(settings: Optional[Settings] = None, provider: Optional[RateProvider] = None) -> FastAPI:
    """Build the app; ``provider`` replaces the exchangerate-api client (tests)."""
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.LOG_LEVEL)
        config = settings.exchange_config()

        owned_client: Optional[ExchangeRateApiClient] = None
        rate_provider = provider
        if rate_provider is None:
            owned_client = ExchangeRateApiClient(
                base_url=settings.EXCHANGE_API_BASE_URL,
                api_key=settings.EXCHANGE_API_KEY,
                timeout=settings.HTTP_TIMEOUT_SEC,
                attempts=settings.RETRY_ATTEMPTS,
                retry_delay=settings.RETRY_DELAY_SEC,
            )
            rate_provider = owned_client
            logger.info(f"Exchange rate API client initialized ({settings.EXCHANGE_API_BASE_URL})")

        cache = RateCache(rate_provider, config)
        app.state.rate_cache = cache
        app.state.conversion = ConversionService(cache, rate_provider, config)

        if settings.BACKGROUND_REFRESH:
            cache.start_background_refresh()
        logger.info(f"{settings.APP_NAME} started, supported currencies: {', '.join(config.currencies())}")
        try:
            yield
        finally:
            logger.info("Shutting down...")
            # join off the event loop so other shutdown hooks keep running
            await run_in_threadpool(cache.stop)
            if owned_client is not None:
                owned_client.close()
            logger.info("Server exited")

    app = FastAPI(title=settings.APP_NAME, version=settings.VERSION, lifespan=lifespan)
    app.state.settings = settings
    add_cors(app, settings)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(f"{request.method} {request.url.path} {response.status_code} {elapsed_ms:.1f}ms")
        return response

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(_: Request, exc: RequestValidationError):
        missing = [".".join(str(p) for p in e.get("loc", ())[1:]) for e in exc.errors()]
        return failure(
            ErrorCode.BAD_INPUT,
            "invalid input",
            details={"fields": [m for m in missing if m]},
        )

    @app.exception_handler(Exception)
    async def unhandled_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
        return failure(ErrorCode.INTERNAL, "internal server error", status_code=500)

    app.include_router(router)
    return app


if __name__ == "__main__":
    _settings = get_settings()
    uvicorn.run(
        create_app(_settings),
        host=_settings.HOST,
        port=_settings.PORT,
        reload=False,
    )


__all__ = ["create_app"]
