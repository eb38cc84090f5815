"""Session manager -- the five operations exposed to a UI or CLI.

save / update / list / load / delete each run as an independent unit of
work.  The manager holds references to the payload store and the host
toolkit and nothing else; the live view is passed per call.

Fatal conditions raise (``MissingMapView``, ``Unauthenticated``,
``InvalidPayload``, ``StoreOperationFailed``, ``ValueError`` for a missing
item id).  Restore problems below that level are reported on the
``RestoreReport`` and never raise.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from loguru import logger

from mapsession.runtime.errors import MissingMapView, StoreOperationFailed, Unauthenticated
from mapsession.runtime.execution.builder import build_payload
from mapsession.runtime.execution.restorer import restore_session
from mapsession.runtime.models.enums import RestoreStep
from mapsession.runtime.models.payload import SessionPayload, parse_payload, read_created_at
from mapsession.runtime.models.report import RestoreReport
from mapsession.runtime.models.workspace import WorkspaceRecord
from mapsession.runtime.store import create_store
from mapsession.runtime.store.query import DEFAULT_ITEM_TYPE, DEFAULT_TAGS, ItemQuery, SearchSort

if TYPE_CHECKING:
    from mapsession.runtime.host import MapToolkit
    from mapsession.runtime.settings import MapSessionSettings
    from mapsession.runtime.store.base import PayloadStore, StoreResult


class SessionManager:
    """Saves, lists, loads and deletes map sessions in a payload store."""

    def __init__(
        self,
        store: PayloadStore,
        toolkit: MapToolkit | None = None,
        *,
        tags: list[str] | None = None,
        item_type: str = DEFAULT_ITEM_TYPE,
        search_limit: int = 100,
        sort: SearchSort | None = None,
    ) -> None:
        self._store = store
        self._toolkit = toolkit
        self._tags = list(tags) if tags is not None else list(DEFAULT_TAGS)
        self._item_type = item_type
        self._search_limit = search_limit
        self._sort = sort or SearchSort()

    @classmethod
    def from_settings(cls, settings: MapSessionSettings, toolkit: MapToolkit | None = None) -> SessionManager:
        """Build a manager with the configured store backend, tags and limits."""
        return cls(
            create_store(settings),
            toolkit,
            tags=settings.tag_list,
            item_type=settings.item_type,
            search_limit=settings.search_limit,
        )

    # -- Helpers ---------------------------------------------------------------

    async def _ensure_user(self) -> str:
        username = await self._store.current_user()
        if not username:
            raise Unauthenticated
        return username

    @staticmethod
    def _check(result: StoreResult, default_error: str) -> StoreResult:
        if not result.success:
            raise StoreOperationFailed(result.error or default_error)
        return result

    async def _fetch(self, item_id: str) -> str:
        try:
            return await self._store.fetch_raw(item_id)
        except FileNotFoundError:
            raise StoreOperationFailed(f"Item '{item_id}' not found") from None

    # -- Save ------------------------------------------------------------------

    async def save_session(self, record: WorkspaceRecord, view: Any) -> WorkspaceRecord:
        """Store the live map state as a new item.  Returns the record with its new id."""
        if view is None:
            raise MissingMapView("save session")
        await self._ensure_user()

        payload = build_payload(record, view)
        result = self._check(
            await self._store.create(record.label, self._tags, payload.to_json()),
            "Failed to save workspace session",
        )
        if not result.item_id:
            raise StoreOperationFailed("Store did not return an item id")

        logger.info("Session saved: {} ({} layers)", result.item_id, len(payload.session.layers))
        return record.model_copy(update={"id": result.item_id})

    # -- Update ----------------------------------------------------------------

    async def update_session(self, record: WorkspaceRecord, view: Any) -> WorkspaceRecord:
        """Overwrite an existing item, keeping its original creation time."""
        if view is None:
            raise MissingMapView("update session")
        if not record.id:
            msg = "Item ID is required to update session"
            raise ValueError(msg)
        await self._ensure_user()

        previous_created_at = read_created_at(await self._fetch(record.id))
        if previous_created_at is None:
            logger.warning("Stored item {} has no readable creation time; using now", record.id)

        payload = build_payload(record, view, previous_created_at, updating=True)
        self._check(
            await self._store.update(record.id, record.label, self._tags, payload.to_json()),
            "Failed to update workspace session",
        )
        logger.info("Session updated: {}", record.id)
        return record.model_copy()

    # -- List ------------------------------------------------------------------

    async def list_sessions(self) -> list[WorkspaceRecord]:
        """List the current user's saved sessions, most recently modified first."""
        username = await self._ensure_user()
        query = ItemQuery(tags=self._tags, item_type=self._item_type, owner=username)
        items = await self._store.search(query.render(), self._sort, self._search_limit)
        return [WorkspaceRecord(id=item.id, label=item.title) for item in items]

    # -- Load ------------------------------------------------------------------

    async def load_session_with_report(self, item_id: str, view: Any) -> tuple[SessionPayload, RestoreReport]:
        """Fetch an item and restore it onto ``view``; also return the report."""
        if view is None:
            raise MissingMapView("load session")
        if self._toolkit is None:
            msg = "SessionManager needs a MapToolkit to load sessions"
            raise RuntimeError(msg)
        await self._ensure_user()

        report = RestoreReport()
        report.enter(RestoreStep.FETCHING)
        payload = parse_payload(await self._fetch(item_id))
        await restore_session(payload, view, self._toolkit, report=report)
        return payload, report

    async def load_session(self, item_id: str, view: Any) -> SessionPayload:
        """Fetch an item and restore it onto ``view``.  Returns the payload."""
        payload, _ = await self.load_session_with_report(item_id, view)
        return payload

    # -- Fetch (no restore) ----------------------------------------------------

    async def fetch_session(self, item_id: str) -> SessionPayload:
        """Fetch and validate an item without touching any map."""
        await self._ensure_user()
        return parse_payload(await self._fetch(item_id))

    # -- Delete ----------------------------------------------------------------

    async def delete_session(self, item_id: str) -> None:
        await self._ensure_user()
        self._check(await self._store.delete(item_id), "Failed to delete workspace session")
        logger.info("Session deleted: {}", item_id)

    # -- Lifecycle -------------------------------------------------------------

    async def aclose(self) -> None:
        """Release store resources (HTTP clients) if the store holds any."""
        close = getattr(self._store, "aclose", None)
        if callable(close):
            await close()
