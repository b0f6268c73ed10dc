import structlog
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from ..exceptions import Conflict, InvalidInput, NotFound, SchedulerError, StorageUnavailable

logger = structlog.get_logger()

STATUS_BY_ERROR = {
    InvalidInput: status.HTTP_400_BAD_REQUEST,
    NotFound: status.HTTP_404_NOT_FOUND,
    Conflict: status.HTTP_409_CONFLICT,
    StorageUnavailable: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def scheduler_exception_handler(exc, context):
    if not isinstance(exc, SchedulerError):
        return exception_handler(exc, context)

    status_code = STATUS_BY_ERROR.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
    log = logger.warning if status_code < 500 else logger.error
    log("scheduler_error", error=exc.code, detail=exc.detail, status=status_code)

    response = Response({"error": exc.code, "detail": exc.detail}, status=status_code)
    if exc.retryable:
        response["Retry-After"] = "1"
    return response
