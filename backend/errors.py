from fastapi import status


class ServiceError(Exception):
    """Base class for errors raised by the quiz and results services.

    ``server.py`` turns these into ``{"detail": message}`` JSON responses with
    ``status_code``.
    """

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal Server Error"

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFoundError(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class InvalidUploadError(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid upload"


class AlreadyAnsweredError(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Question already answered"


class AlreadyRegisteredError(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Start number already registered"


class StartNumberTakenError(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Start number is already taken"


class InternalError(ServiceError):
    pass
