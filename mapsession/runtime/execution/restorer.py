"""Session restorer -- reconciles a payload against the live map.

Pipeline (forward only, no retries)::

    Validating -> RestoringBasemap -> RestoringCamera -> ReconcilingLayers -> Done

Validation is the only step that can fail the restore.  Every later step
is best-effort: a failure is recorded as a ``PartialRestoreWarning`` on the
report (and logged), and the pipeline moves on to the next step.

Layer reconciliation removes live layers that match no incoming config by
id or url, then restores the configs one at a time in payload order so the
final z-order is deterministic.  A live layer claimed by an earlier config
is not offered to later ones.
"""

from __future__ import annotations

import logging
from typing import Any

from mapsession.runtime.codecs.basemap import restore_basemap
from mapsession.runtime.codecs.layers import restore_layer_config
from mapsession.runtime.errors import InvalidPayload, MissingMapView
from mapsession.runtime.fold import apartition
from mapsession.runtime.host import MapToolkit, layer_url
from mapsession.runtime.models.enums import RestorePart, RestoreStep
from mapsession.runtime.models.payload import LayerConfig, SessionPayload, SessionState
from mapsession.runtime.models.report import RestoreReport

logger = logging.getLogger(__name__)


def _warn(report: RestoreReport, part: RestorePart, reason: str, target: str | None = None) -> None:
    warning = report.warn(part, reason, target=target)
    logger.warning("Partial restore -- %s", warning)


# ---------------------------------------------------------------------------
# Steps
# ---------------------------------------------------------------------------


async def _restore_basemap(state: SessionState, live_map: Any, toolkit: MapToolkit, report: RestoreReport) -> None:
    if state.basemap_snapshot is None and not state.basemap_id:
        # Nothing captured: keep whatever basemap is shown.
        return

    outcome = await restore_basemap(state.basemap_snapshot, toolkit, basemap_id=state.basemap_id)
    target = state.basemap_id or (state.basemap_snapshot.title if state.basemap_snapshot else None)
    if not outcome.restored:
        reason = "; ".join(outcome.failures) or "snapshot has nothing to restore from"
        _warn(report, RestorePart.BASEMAP, reason, target)
        return

    try:
        live_map.basemap = outcome.basemap
    except Exception as exc:  # noqa: BLE001
        _warn(report, RestorePart.BASEMAP, f"could not attach basemap: {exc}", target)
        return

    report.basemap_restored = True
    logger.debug("Basemap restored from %s", outcome.source)


async def _restore_camera(state: SessionState, view: Any, toolkit: MapToolkit, report: RestoreReport) -> None:
    failures: list[str] = []

    if state.extent is not None:
        try:
            await view.go_to(toolkit.extent_from_json(state.extent), animate=False)
        except Exception as exc:  # noqa: BLE001
            failures.append(f"extent: {exc}")
        else:
            report.camera_restored = True

    if not report.camera_restored and state.zoom is not None:
        try:
            await view.go_to({"zoom": state.zoom}, animate=False)
        except Exception as exc:  # noqa: BLE001
            failures.append(f"zoom: {exc}")
        else:
            report.camera_restored = True

    if not report.camera_restored and failures:
        _warn(report, RestorePart.CAMERA, "; ".join(failures))

    if state.rotation is not None and hasattr(view, "rotation"):
        try:
            view.rotation = state.rotation
        except Exception as exc:  # noqa: BLE001
            _warn(report, RestorePart.CAMERA, f"rotation: {exc}")


def _remove_stale_layers(configs: list[LayerConfig], live_map: Any, report: RestoreReport) -> None:
    ids = {cfg.id for cfg in configs}
    urls = {cfg.url for cfg in configs if cfg.url}

    for layer in list(live_map.layers):
        if layer.id in ids or layer_url(layer) in urls:
            continue
        try:
            live_map.remove(layer)
        except Exception as exc:  # noqa: BLE001
            _warn(report, RestorePart.LAYER, f"could not remove stale layer: {exc}", layer.id)
        else:
            report.removed_layers.append(layer.id)


async def _reconcile_layers(state: SessionState, live_map: Any, toolkit: MapToolkit, report: RestoreReport) -> None:
    _remove_stale_layers(state.layers, live_map, report)

    claimed: set[int] = set()

    async def restore_one(cfg: LayerConfig) -> str:
        resolved = await restore_layer_config(live_map, cfg, toolkit, claimed=claimed)
        claimed.add(id(resolved.layer))
        for reason in resolved.failures:
            _warn(report, RestorePart.LAYER, reason, cfg.id)
        if cfg.order is not None:
            try:
                live_map.reorder(resolved.layer, cfg.order)
            except Exception as exc:  # noqa: BLE001
                _warn(report, RestorePart.LAYER, f"could not move to position {cfg.order}: {exc}", cfg.id)
        return cfg.id

    result = await apartition(state.layers, restore_one)
    report.restored_layers.extend(result.ok)
    for cfg, reason in result.failed:
        report.missing_layers.append(cfg.id)
        _warn(report, RestorePart.LAYER, reason, cfg.id)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def restore_session(
    payload: SessionPayload,
    view: Any,
    toolkit: MapToolkit,
    *,
    report: RestoreReport | None = None,
) -> RestoreReport:
    """Restore ``payload`` onto the live ``view``.

    Raises ``MissingMapView`` or ``InvalidPayload`` before touching the map;
    everything after validation degrades into warnings on the returned
    report.
    """
    report = report if report is not None else RestoreReport()

    report.enter(RestoreStep.VALIDATING)
    if view is None:
        raise MissingMapView("load session")
    if not payload.schema_marker:
        raise InvalidPayload("schema marker missing or false")

    state = payload.session
    live_map = view.map

    report.enter(RestoreStep.RESTORING_BASEMAP)
    await _restore_basemap(state, live_map, toolkit, report)

    report.enter(RestoreStep.RESTORING_CAMERA)
    await _restore_camera(state, view, toolkit, report)

    report.enter(RestoreStep.RECONCILING_LAYERS)
    await _reconcile_layers(state, live_map, toolkit, report)

    report.enter(RestoreStep.DONE)
    logger.info(
        "Session restored: %d layer(s) restored, %d removed, %d missing, %d warning(s)",
        len(report.restored_layers),
        len(report.removed_layers),
        len(report.missing_layers),
        len(report.warnings),
    )
    return report
