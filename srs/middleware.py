import uuid

import structlog


class RequestContextMiddleware:
    """Bind a request id to every log line emitted while serving a request."""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.path,
        )
        response = self.get_response(request)
        response["X-Request-ID"] = request_id
        return response
