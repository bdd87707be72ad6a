# contact_api/main.py
# run it with: contact-api  (or uvicorn contact_api.main:create_app --factory)
import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from contact_api.core.cors import AllowListCORSMiddleware
from contact_api.core.errors import ConfigurationError, RateLimitExceeded
from contact_api.core.mailer import Mailer, build_mailer
from contact_api.core.rate_limit import ContactRateLimiter
from contact_api.core.settings import Settings, load_settings
from contact_api.routers.contact import router as contact_router
from contact_api.routers.health import router as health_router

log = logging.getLogger("uvicorn.error")


async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(status_code=429, content={"error": str(exc)}, headers=exc.headers)


async def unhandled_error_handler(request: Request, exc: Exception):
    log.error(f"Unhandled error: {exc}", exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error."})


def create_app(
    settings: Optional[Settings] = None,
    mailer: Optional[Mailer] = None,
    rate_limiter: Optional[ContactRateLimiter] = None,
) -> FastAPI:
    settings = settings or load_settings()
    mailer = mailer or build_mailer(settings)
    rate_limiter = rate_limiter or ContactRateLimiter(
        limit=settings.rate_limit_max,
        window_seconds=settings.rate_limit_window,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        log.info(f"[main] API listening on port {settings.port}, mail backend = {mailer.name}")
        yield
        await mailer.close()

    app = FastAPI(title=settings.service_name, lifespan=lifespan)
    app.state.settings = settings
    app.state.mailer = mailer
    app.state.rate_limiter = rate_limiter

    app.add_middleware(
        AllowListCORSMiddleware,
        allow_origins=settings.allowed_origins,
        case_sensitive=settings.cors_case_sensitive,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["RateLimit-Limit", "RateLimit-Remaining", "RateLimit-Reset"],
    )

    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(health_router)
    app.include_router(contact_router)
    return app


def run() -> None:
    import uvicorn

    try:
        settings = load_settings()
    except ConfigurationError as e:
        logging.basicConfig(level=logging.ERROR)
        logging.getLogger(__name__).error(str(e))
        sys.exit(1)

    app = create_app(settings)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
