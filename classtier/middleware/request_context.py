import uuid

from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

from classtier.core.context import current_request


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Lưu Request hiện tại vào context để lấy lại ở service."""

    async def dispatch(self, request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        token = current_request.set(request)
        try:
            with logger.contextualize(request_id=request_id):
                response = await call_next(request)
        finally:
            current_request.reset(token)
        response.headers["X-Request-ID"] = request_id
        return response
