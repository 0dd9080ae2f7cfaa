class ServiceError(Exception):
    status = 400

    def __init__(self, code="SERVICE_ERROR", message="Service error", details=None, status=None):
        self.code = code
        self.message = message
        self.details = details or {}
        if status is not None:
            self.status = status
        super().__init__(message)


class ValidationError(ServiceError):
    """Input rejected before anything is written."""
    status = 422

    def __init__(self, message, field=None, code="VALIDATION_ERROR", details=None):
        details = dict(details or {})
        if field:
            details.setdefault("field", field)
        super().__init__(code=code, message=message, details=details)


class AuthorizationError(ServiceError):
    status = 403

    def __init__(self, message="You are not allowed to perform this action", code="FORBIDDEN"):
        super().__init__(code=code, message=message)


class NotFoundError(ServiceError):
    status = 404

    def __init__(self, message="Resource not found", code="NOT_FOUND"):
        super().__init__(code=code, message=message)


class ConflictError(ServiceError):
    """The record changed under us, e.g. another reviewer already disposed of a request."""
    status = 409

    def __init__(self, message="This request was already processed", code="ALREADY_PROCESSED", details=None):
        super().__init__(code=code, message=message, details=details)


class BusinessRuleError(ServiceError):
    status = 400

    def __init__(self, code, message, details=None):
        super().__init__(code=code, message=message, details=details)
