"""Session payload wire models.

The persisted document is plain JSON.  Wire keys are camelCase and a few
fields keep the names older documents were written with (``workspace`` for
the schema marker, ``mapSession`` for the state, ``data`` for the record,
``type`` for layer kinds), so those documents stay loadable.

Every model ignores unknown keys and treats an explicit ``null`` exactly
like an absent key.
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from mapsession.runtime.errors import InvalidPayload
from mapsession.runtime.models.enums import LayerKind
from mapsession.runtime.models.workspace import WorkspaceRecord

FORMAT_VERSION = "1.0"
"""Semantic version of the payload shape written by this package."""

SCHEMA_MARKER_KEY = "workspace"
"""Wire key of the boolean that identifies a document as a session payload."""


class WireModel(BaseModel):
    """Base for all persisted models: camelCase aliases, lenient reads."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        # null means "not captured", same as a missing key.
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def _coerce_kind(value: Any) -> LayerKind:
    return LayerKind.coerce(value)


def _clamp_opacity(value: Any) -> Any:
    if isinstance(value, int | float):
        return min(max(float(value), 0.0), 1.0)
    return value


# -- Basemap -----------------------------------------------------------------


class BasemapLayerInfo(WireModel):
    """Portable description of one basemap sublayer."""

    url: str = Field(min_length=1)
    kind: LayerKind = Field(default=LayerKind.OTHER, alias="type")
    title: str | None = None
    opacity: float = 1.0
    visible: bool = True
    style_url: str | None = None
    """Style document URL; only meaningful for vector-tile layers."""

    _kind = field_validator("kind", mode="before")(_coerce_kind)
    _clamp = field_validator("opacity", mode="before")(_clamp_opacity)


class BasemapSnapshot(WireModel):
    """Captured basemap: identifiers plus its base and reference sublayers."""

    well_known_id: str | None = Field(default=None, alias="id")
    external_catalog_id: str | None = Field(default=None, alias="portalItemId")
    title: str = ""
    base_layers: list[BasemapLayerInfo] = Field(default_factory=list)
    reference_layers: list[BasemapLayerInfo] = Field(default_factory=list)

    @field_validator("base_layers", "reference_layers", mode="before")
    @classmethod
    def _drop_unaddressed(cls, value: Any) -> Any:
        # A sublayer without a URL can never be rebuilt; skip it on read too.
        if isinstance(value, list):
            return [v for v in value if not isinstance(v, dict) or v.get("url")]
        return value


# -- Operational layers --------------------------------------------------------


class LayerConfig(WireModel):
    """Captured state of one operational layer."""

    id: str
    kind: LayerKind = Field(default=LayerKind.OTHER, alias="type")
    title: str | None = None
    url: str | None = None
    visible: bool = True
    opacity: float = 1.0
    definition_expression: str | None = None
    labeling_info: list[Any] | None = None
    renderer: Any = None
    order: int | None = None
    """Index in the map's layer list, bottom-to-top (0 is drawn first)."""

    _kind = field_validator("kind", mode="before")(_coerce_kind)
    _clamp = field_validator("opacity", mode="before")(_clamp_opacity)

    @field_validator("url", mode="before")
    @classmethod
    def _blank_url_is_absent(cls, value: Any) -> Any:
        return value or None


# -- Session -----------------------------------------------------------------


class SessionState(WireModel):
    """Map state captured from a live view."""

    basemap_id: str | None = None
    basemap_snapshot: BasemapSnapshot | None = None
    extent: dict[str, Any] | None = None
    zoom: float | None = None
    rotation: float | None = None
    layers: list[LayerConfig] = Field(default_factory=list)


class SessionPayload(WireModel):
    """Versioned root document stored in the payload store."""

    schema_marker: bool = Field(default=True, alias=SCHEMA_MARKER_KEY)
    format_version: str = Field(default=FORMAT_VERSION, alias="version")
    created_at: datetime | None = Field(default=None, alias="created")
    modified_at: datetime | None = Field(default=None, alias="modified")
    session: SessionState = Field(default_factory=SessionState, alias="mapSession")
    record: WorkspaceRecord = Field(default_factory=WorkspaceRecord, alias="data")

    def to_json(self) -> str:
        return json.dumps(self.to_wire())


def parse_payload(text: str) -> SessionPayload:
    """Parse raw document text into a payload.

    Raises ``InvalidPayload`` unless the text is a JSON object carrying a
    truthy schema marker and a well-formed body.
    """
    try:
        raw = json.loads(text)
    except (TypeError, json.JSONDecodeError) as exc:
        raise InvalidPayload(f"not valid JSON ({exc})") from None

    if not isinstance(raw, dict):
        raise InvalidPayload("document is not a JSON object")
    if not raw.get(SCHEMA_MARKER_KEY):
        raise InvalidPayload("schema marker missing or false")

    try:
        payload = SessionPayload.model_validate(raw)
    except ValidationError as exc:
        raise InvalidPayload(f"{exc.error_count()} shape error(s): {exc.errors()[0]['msg']}") from None

    # Strings such as "false" are truthy above but validate to False.
    if not payload.schema_marker:
        raise InvalidPayload("schema marker missing or false")
    return payload


def read_created_at(text: str) -> datetime | None:
    """Best-effort read of the ``created`` timestamp from a stored document."""
    try:
        return parse_payload(text).created_at
    except InvalidPayload:
        return None
