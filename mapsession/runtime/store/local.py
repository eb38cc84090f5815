"""Local filesystem payload store.

Stores each item as two JSON files under a data root with an optional
namespace prefix::

    {data_root}/{prefix}/items/{item_id}/item.json   (metadata)
    {data_root}/{prefix}/items/{item_id}/data.json   (document text)

When prefix is None, the path collapses to::

    {data_root}/items/{item_id}/...

Uses ``anyio.to_thread.run_sync`` for non-blocking file I/O.  Writes are
atomic: data is written to a temporary file in the same directory, then
renamed to the target path.
"""

from __future__ import annotations

import contextlib
import os
import shutil
import tempfile
import uuid
from datetime import UTC, datetime
from functools import partial
from pathlib import Path

from anyio import to_thread
from pydantic import ValidationError

from mapsession.runtime.models.workspace import ItemSummary
from mapsession.runtime.store.base import ItemMetadata, StoreResult, select_items
from mapsession.runtime.store.query import DEFAULT_ITEM_TYPE, SearchSort


class LocalPayloadStore:
    """Local filesystem implementation of the PayloadStore protocol.

    Every item is owned by ``owner``; there is no real authentication, so
    ``current_user`` returns the owner (``None`` when it is unset).
    """

    def __init__(
        self,
        data_root: str | Path,
        prefix: str | None = None,
        *,
        owner: str | None = "local",
        item_type: str = DEFAULT_ITEM_TYPE,
    ) -> None:
        base = Path(data_root)
        if prefix:
            base = base / prefix
        self._base = base / "items"
        self._owner = owner
        self._item_type = item_type

    def _item_dir(self, item_id: str) -> Path:
        return self._base / item_id

    async def current_user(self) -> str | None:
        return self._owner

    # -- Write -----------------------------------------------------------------

    async def create(self, title: str, tags: list[str], text: str) -> StoreResult:
        if self._owner is None:
            return StoreResult.failed("No owner configured for local store")
        now = datetime.now(UTC)
        meta = ItemMetadata(
            id=uuid.uuid4().hex,
            title=title,
            tags=tags,
            type=self._item_type,
            owner=self._owner,
            created=now,
            modified=now,
        )
        await to_thread.run_sync(partial(self._write_item, meta, text))
        return StoreResult.ok(meta.id)

    async def update(self, item_id: str, title: str, tags: list[str], text: str) -> StoreResult:
        try:
            meta = await to_thread.run_sync(partial(self._read_metadata, item_id))
        except FileNotFoundError:
            return StoreResult.failed(f"Item '{item_id}' not found")
        if meta.owner != self._owner:
            return StoreResult.failed(f"Item '{item_id}' is not owned by '{self._owner}'")

        meta = meta.model_copy(update={"title": title, "tags": tags, "modified": datetime.now(UTC)})
        await to_thread.run_sync(partial(self._write_item, meta, text))
        return StoreResult.ok(item_id)

    def _write_item(self, meta: ItemMetadata, text: str) -> None:
        item_dir = self._item_dir(meta.id)
        _atomic_write(item_dir / "data.json", text)
        _atomic_write(item_dir / "item.json", meta.model_dump_json(indent=2))

    # -- Read ------------------------------------------------------------------

    async def fetch_raw(self, item_id: str) -> str:
        path = self._item_dir(item_id) / "data.json"
        return await to_thread.run_sync(partial(_read_file, path))

    def _read_metadata(self, item_id: str) -> ItemMetadata:
        raw = _read_file(self._item_dir(item_id) / "item.json")
        return ItemMetadata.model_validate_json(raw)

    async def search(self, query: str, sort: SearchSort, limit: int) -> list[ItemSummary]:
        items = await to_thread.run_sync(self._scan)
        return select_items(items, query, sort, limit)

    def _scan(self) -> list[ItemMetadata]:
        if not self._base.exists():
            return []
        items = []
        for path in self._base.glob("*/item.json"):
            # Skip half-deleted or foreign directories.
            with contextlib.suppress(OSError, ValidationError):
                items.append(ItemMetadata.model_validate_json(_read_file(path)))
        return items

    # -- Delete ----------------------------------------------------------------

    async def delete(self, item_id: str) -> StoreResult:
        try:
            meta = await to_thread.run_sync(partial(self._read_metadata, item_id))
        except FileNotFoundError:
            return StoreResult.failed(f"Item '{item_id}' not found")
        if meta.owner != self._owner:
            return StoreResult.failed(f"Item '{item_id}' is not owned by '{self._owner}'")
        await to_thread.run_sync(partial(_rmtree, self._item_dir(item_id)))
        return StoreResult.ok(item_id)


# -- Sync helpers (run in thread pool) -----------------------------------------


def _atomic_write(path: Path, data: str) -> None:
    """Write data atomically: temp file + rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(data)
        os.replace(tmp_path, path)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp_path)
        raise


def _read_file(path: Path) -> str:
    """Read file contents.  Raises ``FileNotFoundError`` if missing."""
    return path.read_text(encoding="utf-8")


def _rmtree(path: Path) -> None:
    """Remove directory tree.  No-op if path doesn't exist."""
    if path.exists():
        shutil.rmtree(path)
