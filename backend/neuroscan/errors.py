# backend/neuroscan/errors.py


class DataAccessError(Exception):
    """Base for failures reported by the data-access layer."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self):
        return self.message


class QueryError(DataAccessError):
    """A read could not be completed (transport, auth or SQL failure)."""


class ValidationError(DataAccessError):
    """A write was rejected. The message is shown to the user as-is."""


class PatientNotFound(DataAccessError):
    def __init__(self, message: str = "Patient not found"):
        super().__init__(message)


class ScanNotFound(DataAccessError):
    def __init__(self, message: str = "Scan not found"):
        super().__init__(message)
