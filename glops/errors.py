"""
Error taxonomy.

Callers react differently depending on the type:
ResolutionError and ConvergenceTimeout abort the whole batch.
RemoteOperationError and InvalidInput are turned into a Failed status
for the single item being processed.
"""

from __future__ import annotations

from typing import Any, Optional


class GreenLakeError(Exception):
    """Base class for all glops exceptions."""


class InvalidInput(GreenLakeError, ValueError):
    """Raised when a request builder rejects its parameters."""


class UnknownRegion(GreenLakeError):
    """Raised when a region is not part of the configured region map."""


class RemoteOperationError(GreenLakeError):
    """
    A request returned a non-2xx status or never got a response.

    status_code is None for transport errors (DNS, TLS, timeouts).
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        body: Any = None,
        method: Optional[str] = None,
        url: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body
        self.method = method
        self.url = url


class ResolutionError(GreenLakeError):
    """The read used to find a target resource failed."""


class ConvergenceTimeout(GreenLakeError):
    """A bounded poll ran out of attempts before the condition held."""

    def __init__(self, message: str, *, resource: str, region: Optional[str], attempts: int) -> None:
        super().__init__(message)
        self.resource = resource
        self.region = region
        self.attempts = attempts
