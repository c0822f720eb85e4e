from __future__ import annotations


class ClinicError(Exception):
    """Base class for errors raised by the clinic services."""


class InvalidRangeError(ClinicError, ValueError):
    def __init__(self, start, end):
        super().__init__(f"start date {start} is after end date {end}")
        self.start = start
        self.end = end


class NotFoundError(ClinicError):
    pass


class PersistenceError(ClinicError):
    pass


class CsvImportError(ClinicError):
    def __init__(self, message: str, missing_headers: list[str] | None = None):
        super().__init__(message)
        self.missing_headers = missing_headers or []


class ConflictError(ClinicError):
    pass
