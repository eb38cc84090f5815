"""Fatal error taxonomy.

Every exception here aborts the current operation and propagates to the
caller.  Non-fatal restore problems are data (``PartialRestoreWarning``),
never exceptions.
"""

from __future__ import annotations


class MapSessionError(Exception):
    """Base class for all fatal session errors."""


class MissingMapView(MapSessionError, ValueError):
    """The operation needs a live map view and none was supplied."""

    def __init__(self, action: str = "access the map session") -> None:
        super().__init__(f"Map view is required to {action}")


class Unauthenticated(MapSessionError, PermissionError):
    """The payload store has no valid session or user."""

    def __init__(self, detail: str = "User not authenticated") -> None:
        super().__init__(detail)


class InvalidPayload(MapSessionError, ValueError):
    """A fetched document is not a session payload."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Item is not a valid workspace session: {reason}")


class StoreOperationFailed(MapSessionError, RuntimeError):
    """A create / update / delete / search / fetch call reported failure."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)
