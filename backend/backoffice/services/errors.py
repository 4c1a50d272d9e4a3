# Overview: Domain exceptions shared by the service layer and mapped to HTTP status codes by the routes.


class ServiceError(Exception):
    """Base class for expected business-rule failures."""
    status_code = 400

    def __init__(self, message: str, details: dict | None = None, code: str | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.code = code

    def to_dict(self) -> dict:
        payload = {"error": self.message}
        if self.code:
            payload["code"] = self.code
        if self.details:
            payload["details"] = self.details
        return payload


class BadRequestError(ServiceError):
    """Malformed input or a request the current state does not allow."""
    status_code = 400


class ForbiddenError(ServiceError):
    """Resource exists but the caller may not act on it."""
    status_code = 403


class NotFoundError(ServiceError):
    status_code = 404


class ConflictError(ServiceError):
    """State conflict, e.g. writing to a closed cash session."""
    status_code = 409
