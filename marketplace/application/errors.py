"""Service-layer failures. Each carries the user-facing message and HTTP status."""


class ServiceError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AuthenticationRequired(ServiceError):
    status_code = 401


class PermissionDenied(ServiceError):
    status_code = 403


class NotFound(ServiceError):
    status_code = 404


class ValidationFailed(ServiceError):
    status_code = 400


class Conflict(ServiceError):
    status_code = 409
