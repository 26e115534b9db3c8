"""Exception hierarchy for the HACCP registers."""

from __future__ import annotations


class HaccpError(Exception):
    """Base class for every error raised by this package."""


class ValidationError(HaccpError):
    """A write was blocked: missing fields or unregistered ingredient lots.

    ``failures`` holds the offending ``(ingredient name, lot code)`` pairs
    when the cause is a traceability check.
    """

    def __init__(
        self, message: str, failures: list[tuple[str, str]] | None = None
    ) -> None:
        super().__init__(message)
        self.failures = list(failures or [])


class NotConnectedError(HaccpError):
    """The remote store session is missing or expired."""


class RemoteIOError(HaccpError):
    """A remote store read, write, list or download failed."""


class RenderError(HaccpError):
    """An image could not be decoded or drawn."""


class LedgerSchemaError(HaccpError):
    """The ledger header or a row does not fit the ledger layout."""
