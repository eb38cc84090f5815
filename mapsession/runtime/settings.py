"""Runtime configuration loaded from MAPSESSION_* environment variables."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from mapsession.runtime.context import PortalSession
from mapsession.runtime.store.query import DEFAULT_ITEM_TYPE, DEFAULT_TAGS, split_tags


class MapSessionSettings(BaseSettings):
    """Map session runtime settings.

    All fields are read from environment variables with the ``MAPSESSION_``
    prefix.  For example, ``MAPSESSION_LOG_LEVEL=DEBUG`` maps to ``log_level``.
    """

    model_config = SettingsConfigDict(
        env_prefix="MAPSESSION_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # -- Logging ---------------------------------------------------------------
    log_level: str = "INFO"

    # -- Store -----------------------------------------------------------------
    store: Literal["local", "portal", "s3"] = "local"

    # Portal (only when store = "portal")
    portal_url: str | None = None
    token: SecretStr | None = None
    username: str | None = None
    """Portal username; looked up from the token when unset."""
    request_timeout: float = 30.0

    # Local / S3
    data_root: str = "./data"
    data_prefix: str | None = None
    """Optional namespace prefix inserted into all item paths / keys."""

    owner: str | None = "local"
    """Owner recorded on items by self-hosted stores."""

    s3_endpoint: str | None = None
    s3_bucket: str | None = None
    s3_region: str | None = None
    s3_access_key: str | None = None
    s3_secret_key: SecretStr | None = None
    s3_path_style: bool = False
    """Use path-style addressing (required by MinIO and some S3-compatible services)."""

    # -- Items -----------------------------------------------------------------
    tags: str = ",".join(DEFAULT_TAGS)
    """Comma separated tags written on save and required on list."""

    item_type: str = DEFAULT_ITEM_TYPE
    search_limit: int = 100

    # -- Helpers ---------------------------------------------------------------

    @property
    def tag_list(self) -> list[str]:
        return split_tags(self.tags)

    def portal_session(self) -> PortalSession:
        """Build the explicit portal handle.  Raises ``ValueError`` without a URL."""
        if not self.portal_url:
            msg = "MAPSESSION_PORTAL_URL is required for the portal store"
            raise ValueError(msg)
        return PortalSession(portal_url=self.portal_url, token=self.token, username=self.username)


@lru_cache(maxsize=1)
def get_settings() -> MapSessionSettings:
    """Return a cached settings instance.

    Call ``get_settings.cache_clear()`` in tests to force a re-read after
    overriding env vars.
    """
    return MapSessionSettings()
