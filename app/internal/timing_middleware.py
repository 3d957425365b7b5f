import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

class TimingMiddleware(BaseHTTPMiddleware):

    VALID_API_METHODS = ["POST", "PUT", "GET", "DELETE"]
    IRRELEVANT_PATHS = ["/", "/openapi.json", "/docs", "/redoc", "/favicon.ico"]

    async def dispatch(
        self,
        request: Request,
        call_next,
    ):
        start_time = time.perf_counter()
        response = await call_next(request)

        if self._should_log_request(
            request_method=request.method,
            request_url_path=request.url.path
        ):
            response_time_ms = (time.perf_counter() - start_time) * 1000
            logging.info(
                f"[TimingMiddleware] {request.method} {request.url.path} "
                f"{response.status_code} in {response_time_ms:.1f}ms"
            )
        return response

    # Private methods

    def _should_log_request(
        self,
        request_method: str,
        request_url_path: str,
    ) -> bool:
        return (
            request_method in self.VALID_API_METHODS
            and request_url_path not in self.IRRELEVANT_PATHS
        )
