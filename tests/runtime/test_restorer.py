"""Restore pipeline tests against the in-memory host map."""

from __future__ import annotations

import pytest

from mapsession.runtime.errors import InvalidPayload, MissingMapView
from mapsession.runtime.execution.builder import build_payload
from mapsession.runtime.execution.restorer import restore_session
from mapsession.runtime.models.enums import LayerKind, RestorePart, RestoreStep
from mapsession.runtime.models.payload import LayerConfig, SessionPayload, SessionState
from mapsession.runtime.models.workspace import WorkspaceRecord
from tests.fakes import EXTENT, FakeBasemap, FakeLayer, FakeMap, FakeToolkit, FakeView


def _snapshot(view) -> SessionPayload:
    return build_payload(WorkspaceRecord(label="snapshot"), view)


def _layer_state(live_map: FakeMap) -> list[tuple]:
    return [(layer.id, layer.url, layer.visible, layer.opacity) for layer in live_map.layers]


# ---------------------------------------------------------------------------
# Round trip
# ---------------------------------------------------------------------------


async def test_round_trip_onto_unchanged_map(view, toolkit) -> None:
    payload = _snapshot(view)
    before = _layer_state(view.map)

    report = await restore_session(payload, view, toolkit)

    assert report.complete
    assert report.step == RestoreStep.DONE
    assert report.steps == [
        RestoreStep.VALIDATING,
        RestoreStep.RESTORING_BASEMAP,
        RestoreStep.RESTORING_CAMERA,
        RestoreStep.RECONCILING_LAYERS,
        RestoreStep.DONE,
    ]
    assert _layer_state(view.map) == before
    assert view.map.basemap.id == "topo"
    assert view.extent.to_json() == EXTENT
    assert report.restored_layers == ["a", "b"]
    assert report.removed_layers == []
    assert toolkit.built == []


async def test_round_trip_onto_fresh_map(view, toolkit) -> None:
    payload = _snapshot(view)
    fresh = FakeView(FakeMap(basemap=FakeBasemap("streets")))

    report = await restore_session(payload, fresh, toolkit)

    assert report.complete
    assert _layer_state(fresh.map) == _layer_state(view.map)
    assert fresh.map.basemap.id == "topo"
    assert fresh.rotation == 15
    assert [spec.id for spec in toolkit.built] == ["a", "b"]


async def test_restore_twice_does_not_duplicate_layers(view, toolkit) -> None:
    payload = _snapshot(view)
    view.map.remove(view.map.get("b"))

    await restore_session(payload, view, toolkit)
    first = _layer_state(view.map)
    await restore_session(payload, view, toolkit)

    assert _layer_state(view.map) == first
    assert view.map.layer_ids == ["a", "b"]
    assert len(toolkit.built) == 1


async def test_saved_state_is_restored_after_edits(view, toolkit) -> None:
    payload = _snapshot(view)
    b = view.map.get("b")
    view.map.remove(b)
    view.map.add(FakeLayer("c", url="u3"))
    view.map.basemap = FakeBasemap("streets")
    view.map.get("a").visible = False

    report = await restore_session(payload, view, toolkit)

    assert view.map.layer_ids == ["a", "b"]
    assert view.map.basemap.id == "topo"
    assert _layer_state(view.map) == [("a", "u1", True, 1.0), ("b", "u2", False, 0.5)]
    assert report.removed_layers == ["c"]
    assert report.complete


async def test_layers_are_repositioned_by_order(toolkit) -> None:
    live_map = FakeMap([FakeLayer("b", url="u2"), FakeLayer("a", url="u1")])
    view = FakeView(live_map)
    payload = SessionPayload(
        session=SessionState(
            layers=[
                LayerConfig(id="a", url="u1", order=0),
                LayerConfig(id="b", url="u2", order=1),
            ]
        )
    )

    await restore_session(payload, view, toolkit)

    assert live_map.layer_ids == ["a", "b"]


async def test_layer_is_matched_by_url_when_id_changed(toolkit) -> None:
    renamed = FakeLayer("layer-17", url="https://svc/parcels")
    view = FakeView(FakeMap([renamed]))
    payload = SessionPayload(
        session=SessionState(layers=[LayerConfig(id="parcels", url="https://svc/parcels", opacity=0.3, order=0)])
    )

    report = await restore_session(payload, view, toolkit)

    assert view.map.layers == [renamed]
    assert renamed.opacity == 0.3
    assert report.removed_layers == []
    assert toolkit.built == []


async def test_duplicate_ids_claim_distinct_layers(toolkit) -> None:
    first = FakeLayer("dup", url="https://svc/1")
    second = FakeLayer("dup", url="https://svc/2")
    view = FakeView(FakeMap([first, second]))
    payload = SessionPayload(
        session=SessionState(
            layers=[
                LayerConfig(id="dup", url="https://svc/1", opacity=0.1, order=0),
                LayerConfig(id="dup", url="https://svc/2", opacity=0.2, order=1),
            ]
        )
    )

    await restore_session(payload, view, toolkit)

    assert view.map.layers == [first, second]
    assert (first.opacity, second.opacity) == (0.1, 0.2)


# ---------------------------------------------------------------------------
# Degradation
# ---------------------------------------------------------------------------


async def test_unreachable_layer_yields_one_warning(view) -> None:
    payload = _snapshot(view)
    view.map.remove(view.map.get("b"))
    toolkit = FakeToolkit(unreachable={"u2"})

    report = await restore_session(payload, view, toolkit)

    assert view.map.layer_ids == ["a"]
    assert report.missing_layers == ["b"]
    assert len(report.warnings) == 1
    warning = report.warnings[0]
    assert warning.part == RestorePart.LAYER
    assert warning.target == "b"
    assert "load failed" in warning.reason
    assert report.step == RestoreStep.DONE


async def test_config_without_url_is_reported_missing(toolkit) -> None:
    view = FakeView(FakeMap())
    payload = SessionPayload(session=SessionState(layers=[LayerConfig(id="sketch", kind=LayerKind.OTHER)]))

    report = await restore_session(payload, view, toolkit)

    assert report.missing_layers == ["sketch"]
    assert [w.target for w in report.warnings_for(RestorePart.LAYER)] == ["sketch"]


async def test_unrestorable_basemap_keeps_current_one(view) -> None:
    payload = _snapshot(view)
    current = FakeBasemap("streets")
    view.map.basemap = current
    toolkit = FakeToolkit(well_known=(), kinds=(LayerKind.FEATURE,))

    report = await restore_session(payload, view, toolkit)

    assert view.map.basemap is current
    assert not report.basemap_restored
    assert len(report.warnings_for(RestorePart.BASEMAP)) == 1
    assert report.restored_layers == ["a", "b"]


async def test_basemap_is_rebuilt_from_layers(view) -> None:
    payload = _snapshot(view)
    toolkit = FakeToolkit(well_known=())

    report = await restore_session(payload, view, toolkit)

    assert report.basemap_restored
    assert view.map.basemap.title == "Topographic"
    assert [layer.url for layer in view.map.basemap.base_layers] == ["https://tiles.example/topo"]
    assert report.warnings_for(RestorePart.BASEMAP) == []


async def test_payload_without_basemap_leaves_it_alone(toolkit) -> None:
    current = FakeBasemap("streets")
    view = FakeView(FakeMap(basemap=current))

    report = await restore_session(SessionPayload(), view, toolkit)

    assert view.map.basemap is current
    assert toolkit.calls == []
    assert report.complete


async def test_camera_falls_back_to_zoom(live_map, toolkit) -> None:
    view = FakeView(live_map, fail_extent=True)
    payload = SessionPayload(session=SessionState(extent=EXTENT, zoom=12))

    report = await restore_session(payload, view, toolkit)

    assert report.camera_restored
    assert view.zoom == 12
    assert report.warnings_for(RestorePart.CAMERA) == []


async def test_camera_failure_is_a_warning(live_map, toolkit) -> None:
    view = FakeView(live_map, fail_extent=True, fail_zoom=True)
    payload = SessionPayload(session=SessionState(extent=EXTENT, zoom=12))

    report = await restore_session(payload, view, toolkit)

    assert not report.camera_restored
    [warning] = report.warnings_for(RestorePart.CAMERA)
    assert "extent" in warning.reason
    assert "zoom" in warning.reason


async def test_rotation_is_restored(live_map, toolkit) -> None:
    view = FakeView(live_map, rotation=0)

    await restore_session(SessionPayload(session=SessionState(rotation=45)), view, toolkit)

    assert view.rotation == 45


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


async def test_missing_view_is_fatal(toolkit) -> None:
    with pytest.raises(MissingMapView):
        await restore_session(SessionPayload(), None, toolkit)


async def test_false_schema_marker_leaves_map_untouched(view, toolkit) -> None:
    payload = _snapshot(view).model_copy(update={"schema_marker": False})
    view.map.add(FakeLayer("c", url="u3"))
    mutations = view.map.mutations

    with pytest.raises(InvalidPayload):
        await restore_session(payload, view, toolkit)

    assert view.map.mutations == mutations
    assert view.map.layer_ids == ["a", "b", "c"]
    assert view.moves == []


async def test_renderer_failure_still_applies_other_properties(live_map) -> None:
    class BadRenderers(FakeToolkit):
        def renderer_from_json(self, data):
            msg = "unsupported renderer type"
            raise ValueError(msg)

    view = FakeView(live_map)
    payload = SessionPayload(
        session=SessionState(
            layers=[
                LayerConfig(id="b", url="u2", order=0),
                LayerConfig(id="a", url="u1", visible=False, opacity=0.3, renderer={"type": "heatmap"}, order=1),
            ]
        )
    )

    report = await restore_session(payload, view, BadRenderers())

    a = live_map.get("a")
    assert (a.visible, a.opacity) == (False, 0.3)
    assert live_map.layer_ids == ["b", "a"]
    assert report.restored_layers == ["b", "a"]
    assert report.missing_layers == []
    [warning] = report.warnings_for(RestorePart.LAYER)
    assert warning.target == "a"
    assert "renderer" in warning.reason
