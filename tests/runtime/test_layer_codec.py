"""Unit tests for operational layer capture and restore."""

from __future__ import annotations

import pytest

from mapsession.runtime.codecs.layers import (
    LayerNotRestored,
    apply_layer_config,
    extract_layer_config,
    extract_layer_configs,
    find_layer,
    restore_layer_config,
)
from mapsession.runtime.models.enums import LayerKind
from mapsession.runtime.models.payload import LayerConfig
from tests.fakes import FakeJson, FakeLayer, FakeMap, FakeSublayer, FakeToolkit

# ---------------------------------------------------------------------------
# Capture
# ---------------------------------------------------------------------------


def test_extract_feature_layer() -> None:
    layer = FakeLayer(
        "parcels",
        url="https://svc/parcels/0",
        title="Parcels",
        visible=False,
        opacity=0.4,
        definition_expression="zoning = 'R1'",
        renderer=FakeJson({"type": "simple"}),
        labeling_info=[FakeJson({"labelExpression": "[name]"})],
    )

    cfg = extract_layer_config(layer, 3)

    assert cfg.id == "parcels"
    assert cfg.kind == LayerKind.FEATURE
    assert cfg.visible is False
    assert cfg.opacity == 0.4
    assert cfg.definition_expression == "zoning = 'R1'"
    assert cfg.renderer == {"type": "simple"}
    assert cfg.labeling_info == [{"labelExpression": "[name]"}]
    assert cfg.order == 3


def test_extract_layer_without_optional_capabilities() -> None:
    cfg = extract_layer_config(FakeSublayer(id="hillshade", type="tile", url="https://t/hs"), 0)

    assert cfg.kind == LayerKind.TILE
    assert cfg.url == "https://t/hs"
    assert cfg.renderer is None
    assert cfg.labeling_info is None
    assert cfg.definition_expression is None


def test_renderer_without_to_json_is_not_captured() -> None:
    cfg = extract_layer_config(FakeLayer("x", renderer=object()), 0)
    assert cfg.renderer is None


def test_extract_layer_configs_uses_list_index_as_order() -> None:
    configs = extract_layer_configs([FakeLayer("a"), FakeLayer("b"), FakeLayer("c")])
    assert [(c.id, c.order) for c in configs] == [("a", 0), ("b", 1), ("c", 2)]


def test_extract_layer_configs_skips_broken_layers() -> None:
    class NoId:
        type = "feature"

    configs = extract_layer_configs([FakeLayer("a"), NoId(), FakeLayer("c")])
    assert [(c.id, c.order) for c in configs] == [("a", 0), ("c", 2)]


# ---------------------------------------------------------------------------
# Matching
# ---------------------------------------------------------------------------


def test_find_layer_prefers_id_over_url() -> None:
    by_url = FakeLayer("other", url="https://svc/a")
    by_id = FakeLayer("a", url="https://svc/elsewhere")
    live_map = FakeMap([by_url, by_id])

    found = find_layer(live_map, LayerConfig(id="a", url="https://svc/a"))
    assert found is by_id


def test_find_layer_falls_back_to_url() -> None:
    layer = FakeLayer("renamed", url="https://svc/a")
    assert find_layer(FakeMap([layer]), LayerConfig(id="a", url="https://svc/a")) is layer


def test_find_layer_skips_claimed_layers() -> None:
    first = FakeLayer("dup", url="https://svc/1")
    second = FakeLayer("dup", url="https://svc/2")
    live_map = FakeMap([first, second])

    found = find_layer(live_map, LayerConfig(id="dup"), claimed={id(first)})
    assert found is second
    assert find_layer(live_map, LayerConfig(id="dup"), claimed={id(first), id(second)}) is None


# ---------------------------------------------------------------------------
# Restore
# ---------------------------------------------------------------------------


def test_apply_layer_config_sets_properties() -> None:
    layer = FakeLayer("a", renderer=FakeJson({}), labeling_info=[])
    cfg = LayerConfig(
        id="a",
        visible=False,
        opacity=0.25,
        definition_expression="pop > 1000",
        renderer={"type": "class-breaks"},
        labeling_info=[{"labelExpression": "[pop]"}],
    )

    apply_layer_config(layer, cfg, FakeToolkit())

    assert layer.visible is False
    assert layer.opacity == 0.25
    assert layer.definition_expression == "pop > 1000"
    assert layer.renderer == FakeJson({"type": "class-breaks"})
    assert layer.labeling_info == [FakeJson({"labelExpression": "[pop]"})]


def test_apply_layer_config_ignores_label_failures() -> None:
    class BadLabels(FakeToolkit):
        def label_from_json(self, data):
            msg = "unsupported label class"
            raise ValueError(msg)

    layer = FakeLayer("a", labeling_info=[])
    apply_layer_config(layer, LayerConfig(id="a", opacity=0.5, labeling_info=[{"x": 1}]), BadLabels())

    assert layer.labeling_info == []
    assert layer.opacity == 0.5


async def test_restore_existing_layer_is_not_rebuilt() -> None:
    layer = FakeLayer("a", url="https://svc/a", visible=True)
    live_map = FakeMap([layer])
    toolkit = FakeToolkit()

    resolved = await restore_layer_config(live_map, LayerConfig(id="a", visible=False), toolkit)

    assert resolved.layer is layer
    assert resolved.created is False
    assert layer.visible is False
    assert toolkit.built == []
    assert live_map.mutations == 0


async def test_restore_rebuilds_missing_layer_from_url() -> None:
    live_map = FakeMap()
    toolkit = FakeToolkit()
    cfg = LayerConfig(id="c", kind=LayerKind.MAP_IMAGE, url="https://svc/c", title="C", opacity=0.6)

    resolved = await restore_layer_config(live_map, cfg, toolkit)

    assert resolved.created is True
    assert live_map.layer_ids == ["c"]
    assert resolved.layer.load_count == 1
    assert resolved.layer.opacity == 0.6
    assert toolkit.built[0].kind == LayerKind.MAP_IMAGE


async def test_restore_without_url_fails() -> None:
    with pytest.raises(LayerNotRestored, match="no url"):
        await restore_layer_config(FakeMap(), LayerConfig(id="gone"), FakeToolkit())


async def test_restore_unreconstructible_kind_fails() -> None:
    cfg = LayerConfig(id="t", kind=LayerKind.VECTOR_TILE, url="https://vt/x")
    with pytest.raises(LayerNotRestored, match="cannot be rebuilt"):
        await restore_layer_config(FakeMap(), cfg, FakeToolkit())


async def test_restore_missing_factory_fails() -> None:
    cfg = LayerConfig(id="f", kind=LayerKind.FEATURE, url="https://svc/f")
    with pytest.raises(LayerNotRestored, match="construction failed"):
        await restore_layer_config(FakeMap(), cfg, FakeToolkit(kinds=(LayerKind.TILE,)))


async def test_layer_that_fails_to_load_is_detached() -> None:
    live_map = FakeMap()
    toolkit = FakeToolkit(unreachable={"https://down/0"})
    cfg = LayerConfig(id="down", kind=LayerKind.FEATURE, url="https://down/0")

    with pytest.raises(LayerNotRestored, match="load failed") as exc_info:
        await restore_layer_config(live_map, cfg, toolkit)

    assert exc_info.value.layer_id == "down"
    assert live_map.layers == []


def test_apply_layer_config_reports_renderer_failure() -> None:
    class BadRenderers(FakeToolkit):
        def renderer_from_json(self, data):
            msg = "unsupported renderer type"
            raise ValueError(msg)

    layer = FakeLayer("a", renderer=FakeJson({"type": "simple"}))
    cfg = LayerConfig(id="a", visible=False, opacity=0.3, definition_expression="x > 1", renderer={"type": "heatmap"})

    failures = apply_layer_config(layer, cfg, BadRenderers())

    assert len(failures) == 1
    assert "unsupported renderer type" in failures[0]
    assert layer.renderer == FakeJson({"type": "simple"})
    assert (layer.visible, layer.opacity, layer.definition_expression) == (False, 0.3, "x > 1")


def test_empty_labeling_info_clears_existing_labels() -> None:
    layer = FakeLayer("a", labeling_info=[FakeJson({"labelExpression": "[name]"})])

    apply_layer_config(layer, LayerConfig(id="a", labeling_info=[]), FakeToolkit())

    assert layer.labeling_info == []


def test_absent_labeling_info_keeps_existing_labels() -> None:
    rule = FakeJson({"labelExpression": "[name]"})
    layer = FakeLayer("a", labeling_info=[rule])

    apply_layer_config(layer, LayerConfig(id="a"), FakeToolkit())

    assert layer.labeling_info == [rule]
