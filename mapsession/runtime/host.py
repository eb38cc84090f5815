"""Protocols for the host map engine.

The runtime never imports a mapping SDK.  It reads and mutates whatever
object graph the host hands it through the structural types below, and asks
the host's ``MapToolkit`` to construct new layers and basemaps.

Optional layer capabilities (``url``, ``renderer``, ``labeling_info``,
``definition_expression``, ``current_style_info``, ``load``) are discovered
by attribute presence, so they are not part of ``LiveLayer`` itself.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel

from mapsession.runtime.models.enums import LayerKind


@runtime_checkable
class LiveLayer(Protocol):
    id: str
    title: str | None
    type: str
    visible: bool
    opacity: float


@runtime_checkable
class LiveBasemap(Protocol):
    id: str | None
    title: str | None
    portal_item: Any
    base_layers: Sequence[Any]
    reference_layers: Sequence[Any]


@runtime_checkable
class LiveMap(Protocol):
    basemap: Any
    layers: Sequence[Any]
    """Operational layers, index 0 at the bottom of the draw stack."""

    def add(self, layer: Any) -> None: ...

    def remove(self, layer: Any) -> None: ...

    def reorder(self, layer: Any, index: int) -> None: ...


@runtime_checkable
class LiveView(Protocol):
    map: LiveMap
    extent: Any
    zoom: float | None

    async def go_to(self, target: Any, *, animate: bool = False) -> None: ...


class LayerSpec(BaseModel):
    """Everything a layer factory needs to build a layer."""

    kind: LayerKind
    url: str
    id: str | None = None
    title: str | None = None
    opacity: float | None = None
    visible: bool | None = None
    style_url: str | None = None


LayerFactory = Callable[[LayerSpec], Any]
"""Builds an (unloaded) host layer from a ``LayerSpec``."""


@runtime_checkable
class MapToolkit(Protocol):
    """Host services used to rebuild map state.

    ``layer_factories`` is the kind-indexed construction table; a kind with
    no entry cannot be constructed.
    """

    layer_factories: Mapping[LayerKind, LayerFactory]

    def basemap_from_id(self, basemap_id: str) -> Any | None:
        """Resolve a well-known basemap id.  ``None`` when unknown."""
        ...

    async def basemap_from_catalog(self, item_id: str) -> Any:
        """Build a basemap bound to a catalog item and load it."""
        ...

    def create_basemap(self, *, title: str, base_layers: list[Any], reference_layers: list[Any]) -> Any: ...

    def extent_from_json(self, data: dict[str, Any]) -> Any: ...

    def renderer_from_json(self, data: Any) -> Any: ...

    def label_from_json(self, data: Any) -> Any: ...


def construct_layer(toolkit: MapToolkit, spec: LayerSpec) -> Any:
    """Build a layer through the toolkit's construction table.

    Raises ``LookupError`` when the toolkit has no factory for the kind.
    """
    factory = toolkit.layer_factories.get(spec.kind)
    if factory is None:
        msg = f"No layer factory for kind '{spec.kind}'"
        raise LookupError(msg)
    return factory(spec)


def layer_url(layer: Any) -> str | None:
    """The layer's service URL, or ``None`` when it exposes none."""
    return getattr(layer, "url", None) or None
