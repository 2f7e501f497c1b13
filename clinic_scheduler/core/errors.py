"""Error taxonomy shared by services and routes.

Services raise these; ``main.py`` renders them as ``{error, code[, details]}``
JSON bodies. Business-rule outcomes (a conflicting block, an appointment that
is already terminal) are not errors and are returned as result objects.
"""


class ConfigurationError(RuntimeError):
    """Invalid configuration detected while the application loads."""


class SchedulingError(Exception):
    status_code = 500
    code = 'INTERNAL_ERROR'
    default_message = 'Internal server error'

    def __init__(self, message: str | None = None, details: dict | None = None, headers: dict | None = None):
        self.message = message or self.default_message
        self.details = details
        self.headers = headers
        super().__init__(self.message)

    def to_payload(self) -> dict:
        payload = {'error': self.message, 'code': self.code}
        if self.details:
            payload['details'] = self.details
        return payload


class ValidationFailed(SchedulingError):
    status_code = 400
    code = 'VALIDATION_ERROR'
    default_message = 'Invalid request'

    @classmethod
    def from_fields(cls, field_errors: dict[str, list[str]], message: str | None = None) -> 'ValidationFailed':
        return cls(message=message, details=field_errors)


class InvalidApiKey(SchedulingError):
    status_code = 401
    code = 'INVALID_API_KEY'
    default_message = 'Unauthorized'


class AuthorizationFailed(SchedulingError):
    status_code = 403
    code = 'FORBIDDEN'
    default_message = 'Not allowed to act on this resource'


class NotFoundError(SchedulingError):
    status_code = 404
    code = 'NOT_FOUND'
    default_message = 'Resource not found'


class ProfessionalInactive(SchedulingError):
    status_code = 400
    code = 'PROFESSIONAL_INACTIVE'
    default_message = 'Professional is not active'


class InvalidTransition(SchedulingError):
    status_code = 409
    code = 'INVALID_TRANSITION'
    default_message = 'Appointment status transition is not allowed'


class RateLimited(SchedulingError):
    status_code = 429
    code = 'RATE_LIMITED'
    default_message = 'Rate limit exceeded'


class BackingStoreFailure(SchedulingError):
    status_code = 500
    code = 'DB_ERROR'
    default_message = 'Database error'
