"""
Error taxonomy for LinkTrail.

Validation and ownership errors are raised to the caller with a message that
can be shown to end users. The HTTP layer maps each class to a status code.
"""

__all__ = [
    "LinkTrailError",
    "NotFound",
    "AliasConflict",
    "Forbidden",
    "MalformedInput",
    "AllocationExhausted",
    "UpstreamUnavailable",
]


class LinkTrailError(Exception):
    """Base class for all errors raised by the service layer."""


class NotFound(LinkTrailError):
    """Unknown short ID."""


class AliasConflict(LinkTrailError):
    """The requested alias is already claimed."""


class Forbidden(LinkTrailError):
    """The caller is not allowed to see or change the link."""


class MalformedInput(LinkTrailError, ValueError):
    """Invalid URL, alias or query parameter."""


class AllocationExhausted(LinkTrailError):
    """Every short-ID candidate was already taken."""


class UpstreamUnavailable(LinkTrailError):
    """The backing store failed; no local recovery is possible."""
