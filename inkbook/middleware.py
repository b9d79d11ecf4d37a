import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response


class HTTPLogMiddleware(BaseHTTPMiddleware):
    """Request timing log, tagged with the caller from the auth provider headers."""

    def __init__(self, app, logger_name: str = "inkbook.http"):
        super().__init__(app)
        self._logger = logging.getLogger(logger_name)

    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        method, path = request.method, request.url.path
        user = request.headers.get("x-user-id", "-")
        self._logger.debug("http.request start method=%s path=%s user=%s", method, path, user)
        try:
            response: Response = await call_next(request)
        except Exception as e:
            dur_ms = int((time.perf_counter() - start) * 1000)
            self._logger.warning("http.request error method=%s path=%s user=%s dur_ms=%s err=%r",
                                 method, path, user, dur_ms, e)
            raise
        dur_ms = int((time.perf_counter() - start) * 1000)
        level = logging.WARNING if response.status_code >= 500 else logging.DEBUG
        self._logger.log(level, "http.request end method=%s path=%s user=%s status=%s dur_ms=%s",
                         method, path, user, response.status_code, dur_ms)
        return response
