"""Session payload builder.

Reads the live view (extent, zoom, rotation), the basemap and the
operational layer list, and assembles a ``SessionPayload``.  Nothing here
talks to the payload store.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from mapsession.runtime.codecs.basemap import snapshot_basemap
from mapsession.runtime.codecs.layers import extract_layer_configs
from mapsession.runtime.errors import MissingMapView
from mapsession.runtime.models.payload import SessionPayload, SessionState
from mapsession.runtime.models.workspace import WorkspaceRecord


def _serialize_extent(extent: Any) -> dict | None:
    if extent is None:
        return None
    to_json = getattr(extent, "to_json", None)
    return to_json() if callable(to_json) else extent


def capture_session_state(view: Any) -> SessionState:
    """Capture the map state currently shown by ``view``."""
    live_map = view.map
    basemap = getattr(live_map, "basemap", None)

    snapshot = snapshot_basemap(basemap) if basemap is not None else None
    return SessionState(
        basemap_id=getattr(basemap, "id", None) or None,
        basemap_snapshot=snapshot,
        extent=_serialize_extent(getattr(view, "extent", None)),
        zoom=getattr(view, "zoom", None),
        rotation=getattr(view, "rotation", None),
        layers=extract_layer_configs(live_map.layers),
    )


def build_payload(
    record: WorkspaceRecord,
    view: Any,
    previous_created_at: datetime | None = None,
    *,
    updating: bool = False,
    now: datetime | None = None,
) -> SessionPayload:
    """Assemble a payload for ``record`` from the live view.

    On the update path (``updating`` or a ``previous_created_at``) the
    previous creation time is carried forward and ``modified_at`` is
    stamped.  On the create path ``created_at`` is now and ``modified_at``
    stays absent.

    Raises ``MissingMapView`` when ``view`` is ``None``.
    """
    if view is None:
        raise MissingMapView("save session")

    now = now or datetime.now(UTC)
    return SessionPayload(
        created_at=previous_created_at or now,
        modified_at=now if updating or previous_created_at is not None else None,
        session=capture_session_state(view),
        record=record.model_copy(),
    )
