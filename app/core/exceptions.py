from fastapi import status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class NotFoundError(ServiceError):
    """Missing tenant-scoped entity. Also raised on tenant mismatch so existence never leaks across tenants."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class ConflictError(ServiceError):
    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_409_CONFLICT)


class ValidationError(ServiceError):
    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_400_BAD_REQUEST)
