"""Exception taxonomy shared by the client transport and the coach server."""
from __future__ import annotations


class OracleError(Exception):
    """An attempt to get an answer from the coach failed."""


class OracleUnavailable(OracleError):
    """Transport failure or non-2xx status from the coach server."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class OracleTimeout(OracleError):
    """The coach did not answer within the configured timeout."""


class OracleResponseError(OracleError):
    """The coach answered, but the body was malformed or missing required fields."""


class ProtocolError(ValueError):
    """A request body sent to the coach server failed validation."""


class ConfigurationError(RuntimeError):
    """Server-side configuration is missing (e.g. no LLM API key)."""
