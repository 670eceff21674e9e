from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ca_assistant.api.chat import CORS_HEADERS, router as chat_router
from ca_assistant.api.dependencies import close_pipeline
from ca_assistant.core.config import get_settings
from ca_assistant.core.errors import Rejected
from ca_assistant.utils.logging import get_logger, setup_logging

settings = get_settings()
setup_logging(settings.log_level)
logger = get_logger("ca_assistant.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting %s (%s)...", settings.app_name, settings.environment)
    yield
    logger.info("Shutting down %s...", settings.app_name)
    await close_pipeline()
    logger.info("[OK] Shutdown complete")


app = FastAPI(
    title=settings.app_name,
    description="Retrieval-augmented chat assistant for professional-domain questions",
    version="1.0.0",
    lifespan=lifespan,
    redirect_slashes=False,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_allow_origins),
    allow_methods=["POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)

app.include_router(chat_router, prefix=settings.chat_path)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message}, headers=CORS_HEADERS)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    # Wrong method on a known path is reported the same as an unknown path
    if exc.status_code in (status.HTTP_404_NOT_FOUND, status.HTTP_405_METHOD_NOT_ALLOWED):
        return _error(status.HTTP_404_NOT_FOUND, "Not Found")
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.info("[API] Invalid request body: %s", exc.errors())
    return _error(status.HTTP_400_BAD_REQUEST, "Invalid request")


@app.exception_handler(Rejected)
async def rejected_handler(request: Request, exc: Rejected):
    logger.info("[API] Rejected (%d): %s", exc.status_code, exc)
    return _error(exc.status_code, exc.public_message)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error("[API] Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal Error")
