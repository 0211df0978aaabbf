import logging

import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from storjstore.api.v1.deps import require_api_key
from storjstore.api.v1.routers.objects import router as objects_router
from storjstore.common.config import get_settings
from storjstore.common.logging import setup_logging
from storjstore.infra.observability.metrics import metrics_app
from storjstore.infra.observability.middleware import MetricsMiddleware
from storjstore.infra.storage.client import StorageError

ERROR_CODE_BY_STATUS = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
    413: "payload_too_large",
    415: "unsupported_media_type",
    416: "range_not_satisfiable",
    429: "too_many_requests",
    500: "internal_error",
    502: "bad_gateway",
    503: "service_unavailable",
}


def _normalize_detail(detail):
    if isinstance(detail, dict):
        maybe_code = detail.get("error_code")
        cleaned = {k: v for k, v in detail.items() if k != "error_code"}
        if len(cleaned) == 1 and "message" in cleaned:
            cleaned = cleaned["message"]
        if not cleaned:
            cleaned = None
        return cleaned, maybe_code if isinstance(maybe_code, str) else None
    return detail, None


def _resolve_error_code(status_code: int, override: str | None = None) -> str:
    if override:
        return override
    if status_code == 422:
        return "validation_error"
    return ERROR_CODE_BY_STATUS.get(status_code, "unknown_error")


def _problem(
    request: Request, status_code: int, title: str, detail, error_code: str
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        media_type="application/problem+json",
        content={
            "type": "about:blank",
            "title": title,
            "status": status_code,
            "detail": detail,
            "error_code": error_code,
            "instance": str(request.url),
            "request_id": request.headers.get("X-Request-Id"),
        },
    )


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging()
    app = FastAPI(
        title="Storj Object Storage Service",
        version="v1.0",
        description="Chunked upload, download and composition of objects stored on Storj",
    )

    # Optional CORS
    if settings.CORS_ENABLED:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(settings.CORS_ORIGINS) or ["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.include_router(
        objects_router,
        prefix="/api/v1",
        tags=["objects"],
        dependencies=[Depends(require_api_key)],
    )

    # Metrics
    if settings.ENABLE_METRICS:
        app.add_middleware(MetricsMiddleware)
        app.mount("/metrics", metrics_app)

    @app.on_event("startup")
    def on_startup() -> None:
        startup_logger = logging.getLogger("storjstore.startup")
        if settings.API_KEY_ENABLED and not settings.API_KEY:
            startup_logger.warning(
                "API_KEY_ENABLED is set without API_KEY; object endpoints will answer 503."
                " [event=api_key_not_configured]"
            )
        if not settings.STORJ_BUCKET:
            startup_logger.warning(
                "STORJ_BUCKET is not set; object endpoints will answer 503."
                " [event=storage_not_configured]"
            )
            return
        startup_logger.info(
            "Storage backend ready. [event=storage_configured]"
            " (bucket=%s, endpoint=%s, multipart_threshold=%s, public=%s)",
            settings.STORJ_BUCKET,
            settings.S3_ENDPOINT_URL,
            settings.multipart_upload_threshold,
            settings.STORJ_PUBLIC,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        logger = logging.getLogger("http")
        normalized_detail, code_override = _normalize_detail(exc.detail)
        logger.log(
            logging.WARNING if exc.status_code < 500 else logging.ERROR,
            "http_exception status=%s detail=%s method=%s path=%s request_id=%s",
            exc.status_code,
            normalized_detail,
            request.method,
            request.url.path,
            request.headers.get("X-Request-Id"),
            extra={
                "extra": {
                    "status": exc.status_code,
                    "detail": normalized_detail,
                    "method": request.method,
                    "route": request.url.path,
                    "request_id": request.headers.get("X-Request-Id"),
                }
            },
        )
        return _problem(
            request,
            exc.status_code,
            "HTTP Error",
            normalized_detail,
            _resolve_error_code(exc.status_code, code_override),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        return _problem(
            request,
            422,
            "Validation Error",
            jsonable_encoder(exc.errors()),
            _resolve_error_code(422),
        )

    @app.exception_handler(StorageError)
    async def storage_exception_handler(request: Request, exc: StorageError):
        logging.getLogger("http").error(
            "storage_error method=%s path=%s detail=%s",
            request.method,
            request.url.path,
            exc,
        )
        return _problem(request, 502, "Storage Error", str(exc), "storage_error")

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        return _problem(request, 400, "Bad Request", str(exc), _resolve_error_code(400))

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run("storjstore.main:app", host="0.0.0.0", port=8000, reload=True)
