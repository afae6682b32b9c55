import structlog
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = structlog.get_logger()


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Last-resort 500 in the same ``{success, error}`` shape the webhook routes use."""

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as exc:
            logger.exception(
                "unhandled_error",
                method=request.method,
                path=request.url.path,
                error_type=type(exc).__name__,
            )
            request_id = structlog.contextvars.get_contextvars().get("request_id")
            return JSONResponse(
                status_code=500,
                content={"success": False, "error": "Internal server error", "request_id": request_id},
            )
