"""Domain errors raised by the scheduling services.

The HTTP layer maps each class to a status code through ``status_code``;
``code`` is a stable machine-readable identifier for clients.
"""


class SchedulingError(Exception):
    status_code = 400
    code = "scheduling_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailedError(SchedulingError):
    """Input passed shape validation but is not acceptable for the operation."""

    status_code = 422
    code = "validation_failed"


class NotFoundError(SchedulingError):
    status_code = 404
    code = "not_found"


class InvalidOccurrenceError(SchedulingError):
    """The referenced date is not a (still scheduled) occurrence of the class."""

    status_code = 422
    code = "invalid_occurrence"


class QuotaExceededError(SchedulingError):
    """The student already used this month's reschedule.

    Expected and user-facing; not a system fault.
    """

    status_code = 403
    code = "reschedule_quota_exceeded"

    def __init__(self, student_id: str, month_key: str):
        super().__init__(
            "You have already rescheduled a class this month. Please contact your teacher."
        )
        self.student_id = student_id
        self.month_key = month_key


class SlotUnavailableError(SchedulingError):
    status_code = 409
    code = "slot_unavailable"


class ConflictError(SchedulingError):
    """A concurrent request changed the same entities; the caller may retry."""

    status_code = 409
    code = "conflict"
