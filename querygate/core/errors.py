"""
Error taxonomy for the query pipeline.

ClientFault subclasses are answered locally (HTTP 400, or a dropped push tick)
without touching the database. ServerFault subclasses are forwarded to the
application's generic error handler. Nothing here is retried.
"""

from __future__ import annotations

from typing import Any


class QueryGateError(Exception):
    """Base class for all pipeline errors."""

    status_code: int = 500


class ClientFault(QueryGateError):
    """Input problem attributable to the caller."""

    status_code = 400


class ServerFault(QueryGateError):
    """Problem on our side: configuration, resolution, or the database."""

    status_code = 500


class ValidationError(ClientFault):
    """Request cannot be served: incomplete descriptor or missing input."""

    pass


class InjectionRejected(ClientFault):
    """A parameter value tripped the injection heuristic."""

    def __init__(self, name: str, value: Any, *, query: str | None = None) -> None:
        self.name = name
        self.value = value
        self.query = query
        where = f" ({query})" if query else ""
        super().__init__(
            f"SQL inject data detected in parameter '{name}': {value!r}{where}"
        )


class ConfigurationError(ServerFault):
    """Malformed query declaration; fatal at startup."""

    pass


class ResolutionError(ServerFault):
    """Dynamic statement lookup or directive expansion failed."""

    pass


class QueryExecutionError(ServerFault):
    """The database reported a failure. ``cause`` is the driver exception."""

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class NormalizationError(ServerFault):
    """Executor produced a raw result of an unexpected shape."""

    pass
