"""Portal payload store.

Talks to an ArcGIS-style sharing REST API.  Items are "Application
Configuration" items owned by the signed-in user; the session payload is
the item's text data.

Endpoints (relative to ``{portal_url}/sharing/rest``)::

    GET  community/self                               -> current user
    POST content/users/{user}/addItem                 -> create
    POST content/users/{user}/items/{id}/update       -> update
    GET  content/items/{id}/data                      -> fetch
    POST search                                       -> search
    POST content/users/{user}/items/{id}/delete       -> delete

Every request is form-encoded with ``f=json`` and the session token.  The
portal reports most failures inside a 200 response as ``{"error": {...}}``.
"""

from __future__ import annotations

from typing import Any

import httpx
from loguru import logger

from mapsession.runtime.context import PortalSession
from mapsession.runtime.errors import StoreOperationFailed
from mapsession.runtime.models.workspace import ItemSummary
from mapsession.runtime.store.base import StoreResult
from mapsession.runtime.store.query import DEFAULT_ITEM_TYPE, SearchSort

_NOT_FOUND_CODES = frozenset({400, 404})


def _error_message(data: Any, default: str) -> str:
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return default


class PortalPayloadStore:
    """Portal implementation of the PayloadStore protocol.

    The ``httpx.AsyncClient`` is created lazily unless one is supplied (tests
    pass a client with a ``MockTransport``).  Call ``aclose`` when done.
    """

    def __init__(
        self,
        session: PortalSession,
        *,
        item_type: str = DEFAULT_ITEM_TYPE,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._session = session
        self._item_type = item_type
        self._timeout = timeout
        self._client = client
        self._username = session.username

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()

    # -- Transport -------------------------------------------------------------

    def _url(self, path: str) -> str:
        return f"{self._session.sharing_url}/{path}"

    def _params(self, **extra: str) -> dict[str, str]:
        params = {"f": "json", **extra}
        token = self._session.token_value()
        if token:
            params["token"] = token
        return params

    async def _post(self, path: str, **form: str) -> Any:
        resp = await self.client.post(self._url(path), data=self._params(**form))
        resp.raise_for_status()
        return resp.json()

    async def _mutate(self, path: str, default_error: str, **form: str) -> StoreResult:
        try:
            data = await self._post(path, **form)
        except (httpx.HTTPError, ValueError) as e:
            return StoreResult.failed(f"{default_error}: {e}")
        if not isinstance(data, dict) or not data.get("success"):
            return StoreResult.failed(_error_message(data, default_error))
        return StoreResult.ok(data.get("id") or data.get("itemId"))

    # -- Identity --------------------------------------------------------------

    async def current_user(self) -> str | None:
        if self._username:
            return self._username
        if not self._session.token_value():
            return None
        try:
            resp = await self.client.get(self._url("community/self"), params=self._params())
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Portal user lookup failed: {}", e)
            return None
        self._username = data.get("username") if isinstance(data, dict) else None
        return self._username

    async def _require_user(self) -> str:
        username = await self.current_user()
        if not username:
            raise StoreOperationFailed("Portal user is not known")
        return username

    # -- Write -----------------------------------------------------------------

    async def create(self, title: str, tags: list[str], text: str) -> StoreResult:
        username = await self._require_user()
        return await self._mutate(
            f"content/users/{username}/addItem",
            "Failed to save workspace session",
            title=title,
            type=self._item_type,
            tags=",".join(tags),
            text=text,
        )

    async def update(self, item_id: str, title: str, tags: list[str], text: str) -> StoreResult:
        username = await self._require_user()
        result = await self._mutate(
            f"content/users/{username}/items/{item_id}/update",
            "Failed to update workspace session",
            title=title,
            tags=",".join(tags),
            text=text,
        )
        if result.success and result.item_id is None:
            result.item_id = item_id
        return result

    # -- Read ------------------------------------------------------------------

    async def fetch_raw(self, item_id: str) -> str:
        try:
            resp = await self.client.get(self._url(f"content/items/{item_id}/data"), params=self._params())
        except httpx.HTTPError as e:
            raise StoreOperationFailed(f"Failed to fetch item '{item_id}': {e}") from e
        if resp.status_code == 404:
            msg = f"Item not found: {item_id}"
            raise FileNotFoundError(msg)
        if resp.is_error:
            raise StoreOperationFailed(f"Failed to fetch item '{item_id}': HTTP {resp.status_code}")

        text = resp.text
        try:
            data = resp.json()
        except ValueError:
            return text
        if isinstance(data, dict) and isinstance(data.get("error"), dict):
            if data["error"].get("code") in _NOT_FOUND_CODES:
                msg = f"Item not found: {item_id}"
                raise FileNotFoundError(msg)
            raise StoreOperationFailed(_error_message(data, f"Failed to fetch item '{item_id}'"))
        return text

    async def search(self, query: str, sort: SearchSort, limit: int) -> list[ItemSummary]:
        try:
            data = await self._post(
                "search",
                q=query,
                num=str(limit),
                sortField=sort.field,
                sortOrder=sort.order,
            )
        except (httpx.HTTPError, ValueError) as e:
            raise StoreOperationFailed(f"Failed to list workspace sessions: {e}") from e
        if isinstance(data, dict) and "error" in data:
            raise StoreOperationFailed(_error_message(data, "Failed to list workspace sessions"))

        results = (data.get("results") or []) if isinstance(data, dict) else []
        return [ItemSummary(id=item["id"], title=item.get("title") or "") for item in results]

    # -- Delete ----------------------------------------------------------------

    async def delete(self, item_id: str) -> StoreResult:
        username = await self._require_user()
        result = await self._mutate(
            f"content/users/{username}/items/{item_id}/delete",
            "Failed to delete workspace session",
        )
        if result.success and result.item_id is None:
            result.item_id = item_id
        return result
