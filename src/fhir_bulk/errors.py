"""Errors raised by the bulk import/export pipeline."""


class BulkError(Exception):
    """Base error for this package."""


class ConfigurationError(BulkError):
    """Raised when options or settings are missing or invalid."""


class FileAccessError(BulkError):
    """Raised when an input file or directory cannot be opened or listed."""

    def __init__(self, path, reason: str = ""):
        self.path = str(path)
        self.reason = reason
        message = f"cannot access {self.path}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class ParseError(BulkError):
    """Raised when an input line cannot be parsed into a resource."""

    def __init__(self, path, line_number: int, line: str, reason: str = ""):
        self.path = str(path) if path is not None else None
        self.line_number = line_number
        self.line = line
        self.reason = reason
        location = f"{self.path}:{line_number}" if self.path else f"line {line_number}"
        message = f"invalid record at {location}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class SubmissionError(BulkError):
    """Raised when a transaction bundle could not be delivered to the store."""

    def __init__(self, batch_number: int, path=None, reason: str = "", maybe_applied: bool = True):
        self.batch_number = batch_number
        # False only when the store certainly did not commit the transaction
        self.maybe_applied = maybe_applied
        self.path = str(path) if path is not None else None
        self.reason = reason
        message = f"batch {batch_number} failed"
        if self.path:
            message = f"{message} (from {self.path})"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class ExportError(BulkError):
    """Raised when a bulk export job fails or does not finish in time."""
