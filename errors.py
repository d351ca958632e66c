# errors.py
"""
Error taxonomy shared by the session, repository and UI layers.
UI call sites catch ComplaintTrackerError and show str(exc) in a toast.
"""


class ComplaintTrackerError(Exception):
    """Base class for every error the UI knows how to present."""


class ValidationError(ComplaintTrackerError):
    """Form input rejected before any network call."""


class AuthError(ComplaintTrackerError):
    """Bad credentials, duplicate email, weak password and the like."""

    def __init__(self, message: str, code: str = ""):
        super().__init__(message)
        self.code = code


class DataError(ComplaintTrackerError):
    pass


class NotFound(DataError):
    pass


class RoleMismatch(DataError):
    pass


class Unauthenticated(ComplaintTrackerError):
    def __init__(self, message: str = "Please login first!"):
        super().__init__(message)


class PermissionDenied(ComplaintTrackerError):
    def __init__(self, message: str = "Administrator access required."):
        super().__init__(message)


class BackendUnavailable(ComplaintTrackerError):
    def __init__(self, message: str = "Something went wrong while contacting the server. Please try again."):
        super().__init__(message)
