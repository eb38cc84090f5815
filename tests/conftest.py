"""Shared fixtures: an in-memory host map and a local payload store.

No network, portal or Docker is required.  Tests that need a real S3
endpoint are marked with ``@pytest.mark.s3`` and skip without one.
"""

from __future__ import annotations

import pytest

from mapsession.runtime.managers.sessions import SessionManager
from mapsession.runtime.settings import get_settings
from mapsession.runtime.store.local import LocalPayloadStore
from tests.fakes import EXTENT, FakeLayer, FakeMap, FakeToolkit, FakeView, topo_basemap


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    """Settings are cached per process; never leak env overrides between tests."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def toolkit() -> FakeToolkit:
    return FakeToolkit()


@pytest.fixture
def live_map() -> FakeMap:
    """Two operational layers over the topo basemap (the concrete scenario)."""
    return FakeMap(
        layers=[
            FakeLayer("a", url="u1", title="Parcels", visible=True, opacity=1.0),
            FakeLayer("b", url="u2", title="Roads", visible=False, opacity=0.5),
        ],
        basemap=topo_basemap(),
    )


@pytest.fixture
def view(live_map: FakeMap) -> FakeView:
    return FakeView(live_map, extent=EXTENT, zoom=7, rotation=15)


@pytest.fixture
def store(tmp_path) -> LocalPayloadStore:
    return LocalPayloadStore(tmp_path, owner="alice")


@pytest.fixture
def manager(store: LocalPayloadStore, toolkit: FakeToolkit) -> SessionManager:
    return SessionManager(store, toolkit)
