import logging

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.errors import AppError, error_envelope
from app.core.logging import configure_logging, set_run_id
from app.core.middleware import RateLimitMiddleware, SecurityHeadersMiddleware
from app.core.rate_limit import FixedWindowRateLimiter
from app.api.v1.endpoints import documents

# Initialize logging before anything else
configure_logging()
set_run_id()  # Set unique run ID for this application instance

logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.PROJECT_NAME,
    version="1.0.0",
)

app.add_middleware(
    RateLimitMiddleware,
    limiter=FixedWindowRateLimiter(settings.RATE_LIMIT_MAX, settings.RATE_LIMIT_WINDOW_MS),
)
# Добавлен последним, чтобы заголовки были и у ответов 429
app.add_middleware(SecurityHeadersMiddleware)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(status_code=exc.http_code, content=error_envelope(exc))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error("Unhandled exception: %s", exc, exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"status": "error", "code": 500, "message": "Internal Server Error"},
    )


@app.get("/", tags=["Health Check"])
def read_root():
    return {"status": "ok", "project_name": settings.PROJECT_NAME, "mock": settings.B24_MOCK}


app.include_router(documents.router, prefix="/robots", tags=["Robots"])


def run():
    logger.info("Service up on http://localhost:%d", settings.PORT)
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT, log_config=None)


if __name__ == "__main__":
    run()
