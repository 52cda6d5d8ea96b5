import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from sweepstakes.core.config import settings
from sweepstakes.core.logging import setup_logging
from sweepstakes.services.errors import DuplicateEntry, ServiceError, TransientStoreFailure
from sweepstakes.web.routes import limiter, router as giveaway_router

logger = logging.getLogger(__name__)


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    if isinstance(exc, TransientStoreFailure):
        logger.warning("Transient store failure on %s: %s", request.url.path, exc)
    content = {"success": False, "error": exc.code, "message": str(exc)}
    if isinstance(exc, DuplicateEntry):
        content["alreadyEntered"] = True
    return JSONResponse(status_code=exc.status_code, content=content)


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(title=settings.project_name)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(ServiceError, service_error_handler)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    app.include_router(giveaway_router)
    return app


app = create_app()
