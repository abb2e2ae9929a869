class ServiceError(Exception):
    """Base for failures surfaced to the HTTP caller as {"error": message}."""

    status_code = 500

    def __init__(self, message, status_code=None, **extra):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.extra = extra

    def to_dict(self):
        payload = {"error": self.message}
        payload.update(self.extra)
        return payload


class ValidationError(ServiceError):
    status_code = 400


class ForbiddenError(ServiceError):
    status_code = 403


class NotFoundError(ServiceError):
    status_code = 404


class ConflictError(ServiceError):
    status_code = 409
