"""Codecs between live host objects and portable snapshots."""

from mapsession.runtime.codecs.basemap import (
    BasemapRestore,
    restore_basemap,
    serialize_basemap_layer_info,
    snapshot_basemap,
)
from mapsession.runtime.codecs.layers import (
    LayerNotRestored,
    extract_layer_configs,
    restore_layer_config,
)

__all__ = [
    "BasemapRestore",
    "LayerNotRestored",
    "extract_layer_configs",
    "restore_basemap",
    "restore_layer_config",
    "serialize_basemap_layer_info",
    "snapshot_basemap",
]
