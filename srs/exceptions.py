"""
Error taxonomy for the review scheduler.

InvalidInput and NotFound are terminal. Conflict is raised by the store when an
optimistic write loses a race; the review service retries it a bounded number
of times before letting it reach the caller. StorageUnavailable wraps I/O
failures of the backing store and is never retried here.
"""


class SchedulerError(Exception):
    code = "scheduler_error"
    retryable = False

    def __init__(self, detail=None):
        self.detail = detail or self.__class__.__name__
        super().__init__(self.detail)


class InvalidInput(SchedulerError):
    code = "invalid_input"


class NotFound(SchedulerError):
    code = "not_found"


class Conflict(SchedulerError):
    code = "conflict"
    retryable = True


class StorageUnavailable(SchedulerError):
    code = "storage_unavailable"


class DuplicateReview(SchedulerError):
    """A review with the same idempotency key was committed concurrently."""

    code = "duplicate_review"
