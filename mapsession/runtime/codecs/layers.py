"""Layer codec for operational (non-basemap) layers.

Capture records identity, visibility, opacity and whatever optional
capabilities a layer exposes (URL, filter, renderer, labels).  Restore finds
or builds the live layer for a ``LayerConfig`` and applies the captured
properties in a fixed order: renderer, visibility, opacity, definition
expression, labeling info.  Repositioning by ``order`` is the caller's job.
"""

from __future__ import annotations

from collections.abc import Collection, Iterable
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from mapsession.runtime.fold import partition
from mapsession.runtime.host import LayerSpec, LiveMap, MapToolkit, construct_layer, layer_url
from mapsession.runtime.models.enums import LayerKind
from mapsession.runtime.models.payload import LayerConfig

RECONSTRUCTIBLE_KINDS = frozenset({LayerKind.FEATURE, LayerKind.MAP_IMAGE})
"""Kinds that can be rebuilt from nothing but a URL."""


# ---------------------------------------------------------------------------
# Capture
# ---------------------------------------------------------------------------


def _to_json(value: Any) -> Any:
    to_json = getattr(value, "to_json", None)
    return to_json() if callable(to_json) else value


def extract_layer_config(layer: Any, order: int) -> LayerConfig:
    fields: dict[str, Any] = {
        "id": layer.id,
        "kind": LayerKind.coerce(getattr(layer, "type", None)),
        "title": getattr(layer, "title", None),
        "visible": getattr(layer, "visible", None),
        "opacity": getattr(layer, "opacity", None),
        "url": layer_url(layer),
        "definition_expression": getattr(layer, "definition_expression", None),
        "order": order,
    }

    renderer = getattr(layer, "renderer", None)
    if renderer is not None and callable(getattr(renderer, "to_json", None)):
        fields["renderer"] = renderer.to_json()

    labeling_info = getattr(layer, "labeling_info", None)
    if isinstance(labeling_info, list | tuple):
        try:
            fields["labeling_info"] = [_to_json(rule) for rule in labeling_info]
        except Exception as exc:  # noqa: BLE001
            logger.warning("Labeling info of layer {} not captured: {}", layer.id, exc)

    return LayerConfig(**fields)


def extract_layer_configs(layers: Iterable[Any]) -> list[LayerConfig]:
    """Capture every layer in display order; ``order`` is the list index.

    A layer that fails to serialize is logged and left out.
    """
    result = partition(list(enumerate(layers)), lambda pair: extract_layer_config(pair[1], pair[0]))
    for (_, layer), reason in result.failed:
        logger.warning("Failed to extract layer config for {}: {}", getattr(layer, "id", None), reason)
    return result.ok


# ---------------------------------------------------------------------------
# Restore
# ---------------------------------------------------------------------------


class LayerNotRestored(LookupError):
    """No live layer could be found or built for a config."""

    def __init__(self, layer_id: str, reason: str) -> None:
        self.layer_id = layer_id
        self.reason = reason
        super().__init__(f"Layer '{layer_id}' not restored: {reason}")


@dataclass
class ResolvedLayer:
    layer: Any
    created: bool = False
    failures: list[str] = field(default_factory=list)
    """Properties that could not be applied; the layer itself is on the map."""


def find_layer(
    live_map: LiveMap,
    cfg: LayerConfig,
    *,
    claimed: Collection[int] = (),
) -> Any | None:
    """Find the live layer for a config, by id first and then by url.

    ``claimed`` holds ``id()`` values of layers already taken by earlier
    configs; those are skipped.
    """
    candidates = [layer for layer in live_map.layers if id(layer) not in claimed]
    for layer in candidates:
        if layer.id == cfg.id:
            return layer
    if cfg.url:
        for layer in candidates:
            if layer_url(layer) == cfg.url:
                return layer
    return None


async def build_layer(live_map: LiveMap, cfg: LayerConfig, toolkit: MapToolkit) -> Any:
    """Construct, attach and load a new layer for ``cfg``.

    Raises ``LayerNotRestored`` when the config cannot be rebuilt.  A layer
    that fails to load is detached again before the error propagates.
    """
    if not cfg.url:
        raise LayerNotRestored(cfg.id, "no matching layer and no url to rebuild from")
    if cfg.kind not in RECONSTRUCTIBLE_KINDS:
        raise LayerNotRestored(cfg.id, f"kind '{cfg.kind}' cannot be rebuilt from a url")

    spec = LayerSpec(kind=cfg.kind, url=cfg.url, id=cfg.id, title=cfg.title)
    try:
        layer = construct_layer(toolkit, spec)
    except Exception as exc:  # noqa: BLE001
        raise LayerNotRestored(cfg.id, f"construction failed: {exc}") from exc

    live_map.add(layer)
    load = getattr(layer, "load", None)
    if callable(load):
        try:
            await load()
        except Exception as exc:
            live_map.remove(layer)
            raise LayerNotRestored(cfg.id, f"load failed: {exc}") from exc
    return layer


def apply_layer_config(layer: Any, cfg: LayerConfig, toolkit: MapToolkit) -> list[str]:
    """Copy captured properties onto a live layer in the fixed order.

    A renderer that cannot be rebuilt does not stop the remaining
    properties; its reason is returned.  Label failures are dropped.
    """
    failures: list[str] = []

    if cfg.renderer is not None and hasattr(layer, "renderer"):
        try:
            layer.renderer = toolkit.renderer_from_json(cfg.renderer)
        except Exception as exc:  # noqa: BLE001
            failures.append(f"renderer not applied: {exc}")

    layer.visible = cfg.visible
    layer.opacity = cfg.opacity

    if cfg.definition_expression is not None and hasattr(layer, "definition_expression"):
        layer.definition_expression = cfg.definition_expression

    if cfg.labeling_info is not None and hasattr(layer, "labeling_info"):
        try:
            layer.labeling_info = [toolkit.label_from_json(rule) for rule in cfg.labeling_info]
        except Exception as exc:  # noqa: BLE001
            logger.debug("Labeling info not applied to layer {}: {}", cfg.id, exc)

    return failures


async def restore_layer_config(
    live_map: LiveMap,
    cfg: LayerConfig,
    toolkit: MapToolkit,
    *,
    claimed: Collection[int] = (),
) -> ResolvedLayer:
    """Resolve (or rebuild) the live layer for ``cfg`` and apply its state.

    Raises ``LayerNotRestored`` when no layer can be found or built.
    """
    layer = find_layer(live_map, cfg, claimed=claimed)
    created = False
    if layer is None:
        layer = await build_layer(live_map, cfg, toolkit)
        created = True

    failures = apply_layer_config(layer, cfg, toolkit)
    return ResolvedLayer(layer=layer, created=created, failures=failures)
