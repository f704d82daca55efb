"""HTTP middleware for the instrumentation exercise service"""
import time
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from logging_config import get_logger


logger = get_logger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware to log HTTP requests"""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        """Log HTTP requests"""
        start_time = time.time()
        client_ip = request.client.host if request.client else None

        try:
            response = await call_next(request)
        except Exception as e:
            process_time = time.time() - start_time
            logger.error(
                "HTTP request failed",
                method=request.method,
                path=request.url.path,
                error=str(e),
                process_time_seconds=round(process_time, 3),
                client_ip=client_ip,
                event_type="http_request_error",
                exc_info=True
            )
            raise

        process_time = time.time() - start_time
        logger.info(
            "HTTP request completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            process_time_seconds=round(process_time, 3),
            client_ip=client_ip,
            event_type="http_request_complete"
        )
        return response
