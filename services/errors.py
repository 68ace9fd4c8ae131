"""
Service Errors
Domain exceptions raised by services and mapped to HTTP status codes by the API
"""


class ServiceError(Exception):
    """Base class for domain errors"""


class NotFoundError(ServiceError, LookupError):
    """Requested entity does not exist or is not visible to the caller"""


class AccessDeniedError(ServiceError, PermissionError):
    """Caller has no access to the requested patient"""


class InvalidTransitionError(ServiceError, ValueError):
    """Dose status change not allowed, e.g. leaving taken"""


class AuthenticationError(ServiceError):
    """Bad credentials or token"""


class DelayReasonRequiredError(ServiceError, ValueError):
    """Overdue dose confirmed without saying why it was late"""


class MedicationInUseError(ServiceError, ValueError):
    """Medication has taken doses and can only be inactivated"""


class FutureIntakeTimeError(ServiceError, ValueError):
    """Intake time lies in the future"""
