"""
Influx Writer Errors

Every error raised by the library derives from InfluxWriterError so callers
can catch the whole family in one place.
"""

from typing import Optional


class InfluxWriterError(Exception):
    """Base class for influx_writer errors"""
    pass


class ConfigError(InfluxWriterError):
    """Invalid client configuration (bad URL, empty database, bad config file)"""
    pass


class ValidationError(InfluxWriterError, ValueError):
    """Record cannot be expressed as valid line protocol"""
    pass


class MappingError(InfluxWriterError, TypeError):
    """Invalid @measurement class declaration"""
    pass


class WriteError(InfluxWriterError):
    """
    Write request failed

    Either the transport failed (cause is set, status is None) or the server
    answered with a non-success status (status and body are set).
    """

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        body: Optional[str] = None,
        cause: Optional[BaseException] = None
    ):
        super().__init__(message)
        self.status = status
        self.body = body
        self.cause = cause

    @property
    def is_transport_error(self) -> bool:
        """True when no HTTP response was received"""
        return self.status is None

    def __str__(self) -> str:
        message = super().__str__()
        if self.status is not None:
            return f"{message} (HTTP {self.status}: {self.body})"
        if self.cause is not None:
            return f"{message} ({type(self.cause).__name__}: {self.cause})"
        return message
