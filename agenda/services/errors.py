# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Domain errors raised by the persona service.
The HTTP layer maps ``status_code`` and ``message`` onto the response.
"""


class AgendaError(Exception):
    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(AgendaError):
    """Missing, empty or malformed input."""
    status_code = 400


class ConflictError(AgendaError):
    """Email or phone already taken by another persona."""
    status_code = 400

    def __init__(self, message: str, field: str):
        super().__init__(message)
        self.field = field


class NotFoundError(AgendaError):
    """Persona or referenced friends do not exist."""
    status_code = 404


class InternalError(AgendaError):
    """Store inconsistency; the message is generic, details go to the log."""
    status_code = 500
