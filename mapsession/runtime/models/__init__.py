"""Data models for the session runtime."""

from mapsession.runtime.models.enums import BasemapSource, LayerKind, RestorePart, RestoreStep
from mapsession.runtime.models.payload import (
    FORMAT_VERSION,
    BasemapLayerInfo,
    BasemapSnapshot,
    LayerConfig,
    SessionPayload,
    SessionState,
    parse_payload,
)
from mapsession.runtime.models.report import PartialRestoreWarning, RestoreReport
from mapsession.runtime.models.workspace import ItemSummary, WorkspaceRecord

__all__ = [
    "FORMAT_VERSION",
    # Payload
    "BasemapLayerInfo",
    "BasemapSource",
    "BasemapSnapshot",
    # Store
    "ItemSummary",
    "LayerConfig",
    # Enums
    "LayerKind",
    # Report
    "PartialRestoreWarning",
    "RestorePart",
    "RestoreReport",
    "RestoreStep",
    "SessionPayload",
    "SessionState",
    # Workspace
    "WorkspaceRecord",
    "parse_payload",
]
