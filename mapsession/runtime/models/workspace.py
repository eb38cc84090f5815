"""Workspace record model.

A workspace record is the caller-owned description of a saved session: the
store-assigned item id and the user's title.  Extra fields are carried
through untouched.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class WorkspaceRecord(BaseModel):
    """Caller-owned record embedded verbatim in every payload."""

    model_config = ConfigDict(extra="allow")

    id: str = ""
    label: str = ""


class ItemSummary(BaseModel):
    """Search hit returned by a payload store."""

    id: str
    title: str = ""
