import uuid
import time
from fastapi import Request
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware
from portal.logging.logger import _current_request


class LoggingMiddleware(BaseHTTPMiddleware):
    """Assigns a trace id to each request and logs its start, end and duration."""

    async def dispatch(self, request: Request, call_next):
        trace_id = request.headers.get("X-Trace-ID") or uuid.uuid4().hex
        request.state.trace_id = trace_id
        token = _current_request.set(request)

        with logger.contextualize(trace_id=trace_id):
            start_time = time.perf_counter()
            client = request.client.host if request.client else "unknown"
            logger.info(f"Request Started | {request.method} {request.url.path} | Client: {client}")

            try:
                response = await call_next(request)
            except Exception as e:
                elapsed = (time.perf_counter() - start_time) * 1000
                logger.error(f"Request Failed | Error: {e} | Duration: {elapsed:.2f}ms")
                raise
            finally:
                _current_request.reset(token)

            elapsed = (time.perf_counter() - start_time) * 1000
            logger.info(f"Request Finished | Status: {response.status_code} | Duration: {elapsed:.2f}ms")
            response.headers["X-Trace-ID"] = trace_id
            return response
