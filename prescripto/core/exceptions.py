from fastapi import HTTPException, status


class ServiceError(HTTPException):
    """A declined operation, reported to the caller as ``{success: false, message}``."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(status_code=self.status_code, detail=message)

    @property
    def message(self) -> str:
        return self.detail


class ValidationFailed(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST


class AuthenticationError(ServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Not Authorized. Login Again"):
        super().__init__(message)


class AuthorizationError(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = "Not enough permissions"):
        super().__init__(message)


class NotFound(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND


class Conflict(ServiceError):
    status_code = status.HTTP_409_CONFLICT
