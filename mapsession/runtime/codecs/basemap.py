"""Basemap codec.

Capture turns a live basemap into a ``BasemapSnapshot``; restore walks a
fallback ladder to rebuild one:

1. ``external_catalog_id`` -- bind a basemap to the catalog item and load it.
2. ``well_known_id`` (then the session's ``basemap_id``) -- resolve through
   the host's well-known basemap registry.
3. ``base_layers`` -- rebuild every sublayer from its descriptor and
   assemble a new basemap.  At least one base layer must survive.

The ladder stops at the first rung that yields a basemap.  A ladder that
yields nothing is not an error: the caller keeps the current basemap and
reports the collected reasons.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from mapsession.runtime.fold import partition
from mapsession.runtime.host import LayerSpec, MapToolkit, construct_layer, layer_url
from mapsession.runtime.models.enums import BasemapSource, LayerKind
from mapsession.runtime.models.payload import BasemapLayerInfo, BasemapSnapshot

_REBUILDABLE_KINDS = frozenset({LayerKind.TILE, LayerKind.VECTOR_TILE, LayerKind.WEB_TILE, LayerKind.MAP_IMAGE})


# ---------------------------------------------------------------------------
# Capture
# ---------------------------------------------------------------------------


def serialize_basemap_layer_info(layer: Any) -> BasemapLayerInfo | None:
    """Describe one basemap sublayer.  ``None`` when it has no address."""
    kind = LayerKind.coerce(getattr(layer, "type", None))
    url = layer_url(layer)

    style_url = None
    if kind == LayerKind.VECTOR_TILE:
        style_info = getattr(layer, "current_style_info", None)
        style_url = getattr(style_info, "style_url", None) or url
        url = url or style_url

    if not url:
        return None

    return BasemapLayerInfo(
        url=url,
        kind=kind,
        title=getattr(layer, "title", None),
        opacity=getattr(layer, "opacity", None),
        visible=getattr(layer, "visible", None),
        style_url=style_url,
    )


def snapshot_basemap(basemap: Any) -> BasemapSnapshot:
    """Capture a live basemap.  Sublayers that fail to serialize are omitted."""
    base = partition(getattr(basemap, "base_layers", None) or [], serialize_basemap_layer_info)
    reference = partition(getattr(basemap, "reference_layers", None) or [], serialize_basemap_layer_info)

    for layer, reason in base.failed + reference.failed:
        logger.warning("Basemap sublayer {} omitted from snapshot: {}", getattr(layer, "id", None), reason)

    portal_item = getattr(basemap, "portal_item", None)
    return BasemapSnapshot(
        well_known_id=getattr(basemap, "id", None) or None,
        external_catalog_id=getattr(portal_item, "id", None) or None,
        title=getattr(basemap, "title", None) or "",
        base_layers=base.ok,
        reference_layers=reference.ok,
    )


# ---------------------------------------------------------------------------
# Restore
# ---------------------------------------------------------------------------


@dataclass
class BasemapRestore:
    """Result of walking the fallback ladder."""

    basemap: Any = None
    source: BasemapSource | None = None
    failures: list[str] = field(default_factory=list)
    """One reason per rung that was attempted and failed."""

    @property
    def restored(self) -> bool:
        return self.basemap is not None


def deserialize_basemap_layer_info(info: BasemapLayerInfo, toolkit: MapToolkit) -> Any:
    """Build a host layer from a descriptor.  Unknown kinds build as tiles."""
    kind = info.kind if info.kind in _REBUILDABLE_KINDS else LayerKind.TILE
    spec = LayerSpec(
        kind=kind,
        url=info.url,
        title=info.title,
        opacity=info.opacity,
        visible=info.visible,
        style_url=info.style_url if kind == LayerKind.VECTOR_TILE else None,
    )
    return construct_layer(toolkit, spec)


def rebuild_basemap(snapshot: BasemapSnapshot, toolkit: MapToolkit) -> Any:
    """Assemble a basemap from the snapshot's sublayer descriptors.

    Raises ``LookupError`` when no base layer could be rebuilt.
    """
    base = partition(snapshot.base_layers, lambda info: deserialize_basemap_layer_info(info, toolkit))
    reference = partition(snapshot.reference_layers, lambda info: deserialize_basemap_layer_info(info, toolkit))

    for info, reason in base.failed + reference.failed:
        logger.warning("Basemap sublayer {} could not be rebuilt: {}", info.url, reason)

    if not base.ok:
        msg = f"none of {len(snapshot.base_layers)} base layer(s) could be rebuilt"
        raise LookupError(msg)

    return toolkit.create_basemap(
        title=snapshot.title,
        base_layers=base.ok,
        reference_layers=reference.ok,
    )


async def restore_basemap(
    snapshot: BasemapSnapshot | None,
    toolkit: MapToolkit,
    *,
    basemap_id: str | None = None,
) -> BasemapRestore:
    """Walk the fallback ladder and return the first basemap produced.

    ``basemap_id`` is the session-level well-known id; it is tried after the
    snapshot's own well-known id.
    """
    outcome = BasemapRestore()

    # 1. Catalog item.
    if snapshot is not None and snapshot.external_catalog_id:
        item_id = snapshot.external_catalog_id
        try:
            basemap = await toolkit.basemap_from_catalog(item_id)
        except Exception as exc:  # noqa: BLE001
            outcome.failures.append(f"catalog item '{item_id}': {exc}")
        else:
            if basemap is not None:
                outcome.basemap, outcome.source = basemap, BasemapSource.CATALOG
                return outcome
            outcome.failures.append(f"catalog item '{item_id}' produced no basemap")

    # 2. Well-known registry.
    candidates = [snapshot.well_known_id if snapshot is not None else None, basemap_id]
    for well_known_id in dict.fromkeys(c for c in candidates if c):
        try:
            basemap = toolkit.basemap_from_id(well_known_id)
        except Exception as exc:  # noqa: BLE001
            outcome.failures.append(f"well-known id '{well_known_id}': {exc}")
            continue
        if basemap is None:
            outcome.failures.append(f"well-known id '{well_known_id}' is not registered")
            continue
        outcome.basemap, outcome.source = basemap, BasemapSource.WELL_KNOWN
        return outcome

    # 3. Sublayer descriptors.
    if snapshot is not None and snapshot.base_layers:
        try:
            outcome.basemap = rebuild_basemap(snapshot, toolkit)
        except Exception as exc:  # noqa: BLE001
            outcome.failures.append(f"layer rebuild: {exc}")
        else:
            outcome.source = BasemapSource.LAYERS

    return outcome
