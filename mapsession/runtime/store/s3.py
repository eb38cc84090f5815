"""S3 payload store.

Stores items as JSON objects in S3 with optional namespace prefix::

    s3://{bucket}/{prefix}/items/{item_id}/item.json
    s3://{bucket}/{prefix}/items/{item_id}/data.json

When prefix is None, the keys collapse to ``items/{item_id}/...``.

Uses ``anyio.to_thread.run_sync`` to run boto3 calls in the thread pool,
matching the same async pattern as LocalPayloadStore.
"""

from __future__ import annotations

import contextlib
import uuid
from datetime import UTC, datetime
from functools import partial
from typing import Any

import boto3
from anyio import to_thread
from botocore.config import Config
from botocore.exceptions import ClientError
from pydantic import ValidationError

from mapsession.runtime.errors import StoreOperationFailed
from mapsession.runtime.models.workspace import ItemSummary
from mapsession.runtime.store.base import ItemMetadata, StoreResult, select_items
from mapsession.runtime.store.query import DEFAULT_ITEM_TYPE, SearchSort

_MISSING_CODES = frozenset({"NoSuchKey", "404"})


def _create_s3_client(
    endpoint_url: str | None,
    access_key: str | None,
    secret_key: str | None,
    region: str | None = None,
    path_style: bool = False,
) -> Any:
    """Create a boto3 S3 client.

    Args:
        endpoint_url: S3 endpoint URL (``None`` for AWS).
        access_key: AWS access key ID.
        secret_key: AWS secret access key.
        region: AWS region name (optional, some endpoints require it).
        path_style: Use path-style addressing instead of virtual-hosted.
            Required by MinIO and some S3-compatible services.
    """
    config = Config(
        request_checksum_calculation="when_required",
        response_checksum_validation="when_required",
        s3={"addressing_style": "path" if path_style else "auto"},
    )

    return boto3.client(
        "s3",
        endpoint_url=endpoint_url,
        aws_access_key_id=access_key,
        aws_secret_access_key=secret_key,
        region_name=region,
        config=config,
    )


class S3PayloadStore:
    """S3 implementation of the PayloadStore protocol.

    Layout::

        s3://{bucket}/{key_prefix}items/{item_id}/item.json

    Where ``key_prefix`` is ``{prefix}/`` if prefix is set, or empty string.
    """

    def __init__(
        self,
        bucket: str,
        endpoint_url: str | None = None,
        access_key: str | None = None,
        secret_key: str | None = None,
        prefix: str | None = None,
        region: str | None = None,
        path_style: bool = False,
        *,
        owner: str | None = "local",
        item_type: str = DEFAULT_ITEM_TYPE,
        client: Any = None,
    ) -> None:
        self._bucket = bucket
        self._client = client or _create_s3_client(
            endpoint_url, access_key, secret_key, region=region, path_style=path_style
        )
        self._key_prefix = f"{prefix}/items/" if prefix else "items/"
        self._owner = owner
        self._item_type = item_type

    def _object_key(self, item_id: str, name: str) -> str:
        return f"{self._key_prefix}{item_id}/{name}"

    async def current_user(self) -> str | None:
        return self._owner

    # -- Write -----------------------------------------------------------------

    async def create(self, title: str, tags: list[str], text: str) -> StoreResult:
        if self._owner is None:
            return StoreResult.failed("No owner configured for S3 store")
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
        try:
            await to_thread.run_sync(partial(self._put_item, meta, text))
        except ClientError as e:
            return StoreResult.failed(str(e))
        return StoreResult.ok(meta.id)

    async def update(self, item_id: str, title: str, tags: list[str], text: str) -> StoreResult:
        try:
            meta = await to_thread.run_sync(partial(self._get_metadata, item_id))
        except FileNotFoundError:
            return StoreResult.failed(f"Item '{item_id}' not found")
        except (ClientError, ValidationError) as e:
            return StoreResult.failed(f"Failed to read item '{item_id}': {e}")
        if meta.owner != self._owner:
            return StoreResult.failed(f"Item '{item_id}' is not owned by '{self._owner}'")

        meta = meta.model_copy(update={"title": title, "tags": tags, "modified": datetime.now(UTC)})
        try:
            await to_thread.run_sync(partial(self._put_item, meta, text))
        except ClientError as e:
            return StoreResult.failed(str(e))
        return StoreResult.ok(item_id)

    def _put_object(self, key: str, body: str) -> None:
        self._client.put_object(
            Bucket=self._bucket,
            Key=key,
            Body=body.encode("utf-8"),
            ContentType="application/json",
        )

    def _put_item(self, meta: ItemMetadata, text: str) -> None:
        self._put_object(self._object_key(meta.id, "data.json"), text)
        self._put_object(self._object_key(meta.id, "item.json"), meta.model_dump_json())

    # -- Read ------------------------------------------------------------------

    async def fetch_raw(self, item_id: str) -> str:
        key = self._object_key(item_id, "data.json")
        try:
            return await to_thread.run_sync(partial(self._get_object_body, key))
        except ClientError as e:
            raise StoreOperationFailed(f"Failed to fetch item '{item_id}': {e}") from e

    def _get_object_body(self, key: str) -> str:
        """Get object and read body in the same thread.

        Reading the streaming body must happen in the same thread as
        get_object to avoid issues with chunked transfer encoding.
        """
        try:
            resp = self._client.get_object(Bucket=self._bucket, Key=key)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in _MISSING_CODES:
                msg = f"Item not found: {key}"
                raise FileNotFoundError(msg) from None
            raise
        return resp["Body"].read().decode("utf-8")

    def _get_metadata(self, item_id: str) -> ItemMetadata:
        body = self._get_object_body(self._object_key(item_id, "item.json"))
        return ItemMetadata.model_validate_json(body)

    async def search(self, query: str, sort: SearchSort, limit: int) -> list[ItemSummary]:
        try:
            items = await to_thread.run_sync(self._scan)
        except ClientError as e:
            raise StoreOperationFailed(f"Failed to list workspace sessions: {e}") from e
        return select_items(items, query, sort, limit)

    def _scan(self) -> list[ItemMetadata]:
        paginator = self._client.get_paginator("list_objects_v2")
        items = []
        for page in paginator.paginate(Bucket=self._bucket, Prefix=self._key_prefix):
            for obj in page.get("Contents", []):
                if not obj["Key"].endswith("/item.json"):
                    continue
                # Skip objects deleted mid-scan and foreign metadata.
                with contextlib.suppress(FileNotFoundError, ValidationError):
                    items.append(ItemMetadata.model_validate_json(self._get_object_body(obj["Key"])))
        return items

    # -- Delete ----------------------------------------------------------------

    async def delete(self, item_id: str) -> StoreResult:
        try:
            meta = await to_thread.run_sync(partial(self._get_metadata, item_id))
        except FileNotFoundError:
            return StoreResult.failed(f"Item '{item_id}' not found")
        except (ClientError, ValidationError) as e:
            return StoreResult.failed(f"Failed to read item '{item_id}': {e}")
        if meta.owner != self._owner:
            return StoreResult.failed(f"Item '{item_id}' is not owned by '{self._owner}'")

        # S3 delete is idempotent -- no error if key doesn't exist.
        try:
            for name in ("data.json", "item.json"):
                key = self._object_key(item_id, name)
                await to_thread.run_sync(partial(self._client.delete_object, Bucket=self._bucket, Key=key))
        except ClientError as e:
            return StoreResult.failed(str(e))
        return StoreResult.ok(item_id)
