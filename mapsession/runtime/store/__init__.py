"""Payload store implementations."""

from __future__ import annotations

from typing import TYPE_CHECKING

from mapsession.runtime.store.base import PayloadStore, StoreResult
from mapsession.runtime.store.local import LocalPayloadStore
from mapsession.runtime.store.query import ItemQuery, SearchSort

if TYPE_CHECKING:
    from mapsession.runtime.settings import MapSessionSettings

__all__ = [
    "ItemQuery",
    "LocalPayloadStore",
    "PayloadStore",
    "SearchSort",
    "StoreResult",
    "create_store",
]


def create_store(settings: MapSessionSettings) -> PayloadStore:
    """Create the payload store backend selected by configuration."""
    if settings.store == "portal":
        from mapsession.runtime.store.portal import PortalPayloadStore

        return PortalPayloadStore(
            settings.portal_session(),
            item_type=settings.item_type,
            timeout=settings.request_timeout,
        )

    if settings.store == "s3":
        from mapsession.runtime.store.s3 import S3PayloadStore

        if not settings.s3_bucket:
            msg = "MAPSESSION_S3_BUCKET is required for the s3 store"
            raise ValueError(msg)
        return S3PayloadStore(
            bucket=settings.s3_bucket,
            endpoint_url=settings.s3_endpoint,
            access_key=settings.s3_access_key,
            secret_key=settings.s3_secret_key.get_secret_value() if settings.s3_secret_key else None,
            prefix=settings.data_prefix,
            region=settings.s3_region,
            path_style=settings.s3_path_style,
            owner=settings.owner,
            item_type=settings.item_type,
        )

    return LocalPayloadStore(
        settings.data_root,
        prefix=settings.data_prefix,
        owner=settings.owner,
        item_type=settings.item_type,
    )
