"""Shared enumerations used across the session runtime."""

from __future__ import annotations

from enum import StrEnum

# -- Layers ------------------------------------------------------------------


class LayerKind(StrEnum):
    """Closed set of layer kinds known to the codecs.

    Operational layers use ``FEATURE`` / ``MAP_IMAGE``; basemap layers use
    ``TILE`` / ``VECTOR_TILE`` / ``WEB_TILE`` / ``MAP_IMAGE``.  Anything the
    host reports outside this set collapses to ``OTHER``.
    """

    FEATURE = "feature"
    MAP_IMAGE = "map-image"
    TILE = "tile"
    VECTOR_TILE = "vector-tile"
    WEB_TILE = "web-tile"
    OTHER = "other"

    @classmethod
    def coerce(cls, value: object) -> LayerKind:
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value))
        except ValueError:
            return cls.OTHER


# -- Restore -----------------------------------------------------------------


class RestoreStep(StrEnum):
    """Forward-only pipeline stages of a session restore."""

    FETCHING = "fetching"
    VALIDATING = "validating"
    RESTORING_BASEMAP = "restoring_basemap"
    RESTORING_CAMERA = "restoring_camera"
    RECONCILING_LAYERS = "reconciling_layers"
    DONE = "done"


class RestorePart(StrEnum):
    """Sub-part of the map a non-fatal restore warning refers to."""

    BASEMAP = "basemap"
    CAMERA = "camera"
    LAYER = "layer"


class BasemapSource(StrEnum):
    """Rung of the basemap fallback ladder that produced a basemap."""

    CATALOG = "catalog"
    WELL_KNOWN = "well_known"
    LAYERS = "layers"
