from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import uvicorn
import json
import logging
import sys
from datetime import datetime

from greyrock.settings import settings
from greyrock.errors import ModelNotFoundError, ProviderError
from greyrock.providers import build_adapters
from greyrock.registry import Dispatcher, ProviderRegistry
from greyrock.schemas import (
    AnalysisResponse,
    AnalyzeRequest,
    ErrorResponse,
    INVALID_INPUT,
    INVALID_MODELS,
    ModelsResponse,
    SingleAnalysisResponse,
    SingleAnalyzeRequest,
    ValidationError,
    validation_failure,
)


# ==================== LOGGING ====================
def setup_logging():
    """Configure the package logger: console always, a daily file when enabled."""
    logger = logging.getLogger("greyrock")
    logger.setLevel(settings.LOG_LEVEL.upper())

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    if not logger.handlers:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

        if settings.LOG_TO_FILE:
            file_handler = logging.FileHandler(f'app_logs_{datetime.now().strftime("%Y%m%d")}.log')
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

    return logging.getLogger(__name__)


logger = setup_logging()

app = FastAPI(title="Grey Rock Analyzer")
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

dispatcher = Dispatcher(
    ProviderRegistry.from_catalog(settings.model_catalog),
    build_adapters(settings),
    default_model_id=settings.DEFAULT_MODEL_ID,
)

try:
    logger.info(f"Available models: {[m.id for m in dispatcher.list_available_models()]}")
    logger.info(f"Default model: {settings.DEFAULT_MODEL_ID}")
    logger.info(f"Allowed origins: {settings.allowed_origins}")
except Exception as e:
    logger.error(f"Error loading settings on startup: {e}")


def error_response(status_code: int, message: str, code: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(message=message, code=code).model_dump(),
    )


def _preview(text: str) -> str:
    return text[:50] + "..." if len(text) > 50 else text


async def _read_body(request: Request):
    try:
        return await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/api/models")
async def list_models(request: Request):
    """List the models a caller can request."""
    request_id = request.state.request_id
    try:
        models = dispatcher.list_available_models()
        logger.info(f"[{request_id}] Returning {len(models)} models")
        return JSONResponse(ModelsResponse(models=models).model_dump(mode="json", by_alias=True))
    except Exception as e:
        logger.error(f"[{request_id}] Error getting models: {str(e)}", exc_info=True)
        return error_response(500, "Failed to retrieve models", "SERVER_ERROR")


@app.post("/api/analyze")
async def analyze(request: Request):
    """Analyze a message with every requested model at once."""
    request_id = request.state.request_id
    body = await _read_body(request)

    try:
        req = AnalyzeRequest.model_validate(body)
    except ValidationError as e:
        failure = validation_failure(e)
        logger.warning(f"[{request_id}] Validation error: {failure.code} - {failure.message}")
        return JSONResponse(status_code=400, content=failure.model_dump())

    logger.info(
        f"[{request_id}] Analyze request | "
        f"Models: {req.models or [dispatcher.default_model_id]}, "
        f"Message length: {len(req.text)} chars, "
        f"Preview: '{_preview(req.text)}'"
    )

    try:
        start_time = datetime.now()
        results = await dispatcher.analyze_many(req.models, req.text)
        processing_time = (datetime.now() - start_time).total_seconds()

        failed = sum(1 for r in results if getattr(r, "error", None))
        logger.info(
            f"[{request_id}] {len(results)} results in {processing_time:.2f}s "
            f"({failed} failed)"
        )
        response = AnalysisResponse(original=req.text, results=results)
        return JSONResponse(response.model_dump(mode="json", by_alias=True))

    except Exception as e:
        logger.error(f"[{request_id}] Unexpected error in analyze: {str(e)}", exc_info=True)
        return error_response(503, "Service temporarily unavailable. Please try again.", "SERVICE_ERROR")


@app.post("/api/analyze/single")
async def analyze_single(request: Request):
    """Analyze a message with a single model, surfacing upstream rate limits as 429."""
    request_id = request.state.request_id
    body = await _read_body(request)

    try:
        req = SingleAnalyzeRequest.model_validate(body)
    except ValidationError as e:
        failure = validation_failure(e)
        logger.warning(f"[{request_id}] Validation error: {failure.code} - {failure.message}")
        return JSONResponse(status_code=400, content=failure.model_dump())

    model_id = req.model or dispatcher.default_model_id
    logger.info(f"[{request_id}] Single analyze request | Model: {model_id}, Preview: '{_preview(req.text)}'")

    try:
        result = await dispatcher.analyze_strict(model_id, req.text)
        response = SingleAnalysisResponse(original=req.text, result=result)
        return JSONResponse(response.model_dump(mode="json", by_alias=True))

    except ModelNotFoundError as e:
        logger.warning(f"[{request_id}] {e}")
        return error_response(400, str(e), INVALID_MODELS)
    except ProviderError as e:
        logger.warning(
            f"[{request_id}] Provider error | Status: {e.status_code}, Detail: {e.detail}, "
            f"Model: {model_id}"
        )
        if e.status_code == 429:
            return error_response(429, "Too many requests. Please try again in a moment.", "RATE_LIMIT")
        return error_response(503, "Service temporarily unavailable. Please try again.", "SERVICE_ERROR")
    except Exception as e:
        logger.error(f"[{request_id}] Unexpected error in analyze_single: {str(e)}", exc_info=True)
        return error_response(503, "Service temporarily unavailable. Please try again.", "SERVICE_ERROR")


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Render framework HTTP errors (404, 405) in the service's error shape."""
    request_id = getattr(request.state, "request_id", "-")
    logger.warning(f"[{request_id}] HTTP {exc.status_code} on {request.method} {request.url.path}")

    if exc.status_code == 405:
        return error_response(405, "Method not allowed", "METHOD_NOT_ALLOWED")
    if exc.status_code == 404:
        return error_response(404, "Not found", "NOT_FOUND")
    return error_response(exc.status_code, str(exc.detail), INVALID_INPUT if exc.status_code < 500 else "SERVER_ERROR")


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    request_id = getattr(request.state, "request_id", "-")
    logger.error(f"[{request_id}] Unhandled error: {str(exc)}", exc_info=exc)
    return error_response(500, "Internal server error", "SERVER_ERROR")


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log every request with a short id, its status and duration."""
    request_id = datetime.now().strftime("%H%M%S%f")[-8:]
    request.state.request_id = request_id

    start_time = datetime.now()

    logger.info(
        f"[{request_id}] {request.method} {request.url.path} - "
        f"Client: {request.client.host if request.client else 'unknown'}"
    )

    try:
        response = await call_next(request)
        processing_time = (datetime.now() - start_time).total_seconds()

        logger.info(
            f"[{request_id}] {request.method} {request.url.path} - "
            f"Status: {response.status_code} - "
            f"Time: {processing_time:.3f}s"
        )

        return response

    except Exception as e:
        processing_time = (datetime.now() - start_time).total_seconds()
        logger.error(
            f"[{request_id}] {request.method} {request.url.path} - "
            f"Exception: {str(e)} - "
            f"Time: {processing_time:.3f}s",
            exc_info=True
        )
        raise


def main():
    logger.info("=" * 50)
    logger.info("Starting Grey Rock Analyzer")
    logger.info("=" * 50)

    uvicorn.run(
        "greyrock.endpoints:app",
        host=settings.HOST,
        port=settings.PORT,
        log_config={
            "version": 1,
            "disable_existing_loggers": False,
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "level": "INFO",
                    "formatter": "default",
                },
            },
            "formatters": {
                "default": {
                    "format": "%(asctime)s - %(levelname)s - %(message)s",
                },
            },
            "loggers": {
                "uvicorn": {"level": "INFO", "handlers": ["console"]},
            },
        }
    )


if __name__ == "__main__":
    main()
