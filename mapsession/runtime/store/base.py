"""Payload store interface.

A payload store keeps named JSON documents (session payloads) addressed by
an opaque item id.  The interface is async so it can front both a local
filesystem and a remote content portal.

Store calls never raise for a reported failure on create / update / delete:
they return a ``StoreResult`` and the caller decides.  ``fetch_raw`` raises
``FileNotFoundError`` for an unknown item.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, Field

from mapsession.runtime.models.workspace import ItemSummary
from mapsession.runtime.store.query import DEFAULT_ITEM_TYPE, SearchSort, matches, parse_terms


class StoreResult(BaseModel):
    """Outcome of a mutating store call."""

    success: bool
    item_id: str | None = None
    error: str | None = None

    @classmethod
    def ok(cls, item_id: str | None = None) -> StoreResult:
        return cls(success=True, item_id=item_id)

    @classmethod
    def failed(cls, error: str) -> StoreResult:
        return cls(success=False, error=error)


@runtime_checkable
class PayloadStore(Protocol):
    """Async protocol for creating, reading and searching stored items."""

    async def current_user(self) -> str | None:
        """Username the store acts as, or ``None`` when not authenticated."""
        ...

    async def create(self, title: str, tags: list[str], text: str) -> StoreResult:
        """Create a new item.  ``StoreResult.item_id`` carries the new id."""
        ...

    async def update(self, item_id: str, title: str, tags: list[str], text: str) -> StoreResult:
        """Replace an item's title, tags and document text."""
        ...

    async def fetch_raw(self, item_id: str) -> str:
        """Return the item's document text.  Raises ``FileNotFoundError``."""
        ...

    async def search(self, query: str, sort: SearchSort, limit: int) -> list[ItemSummary]:
        """Return items matching a rendered ``ItemQuery``."""
        ...

    async def delete(self, item_id: str) -> StoreResult:
        """Delete an item."""
        ...


class ItemMetadata(BaseModel):
    """Metadata kept next to each stored document by self-hosted stores."""

    id: str
    title: str = ""
    tags: list[str] = Field(default_factory=list)
    type: str = DEFAULT_ITEM_TYPE
    owner: str
    created: datetime
    modified: datetime


def select_items(items: list[ItemMetadata], query: str, sort: SearchSort, limit: int) -> list[ItemSummary]:
    """Evaluate a rendered query over item metadata, sorted and truncated."""
    terms = parse_terms(query)
    hits = [m for m in items if matches(terms, tags=m.tags, item_type=m.type, owner=m.owner)]
    hits.sort(key=lambda m: getattr(m, sort.field, m.modified), reverse=sort.order == "desc")
    return [ItemSummary(id=m.id, title=m.title) for m in hits[:limit]]
