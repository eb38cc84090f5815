"""Explicit portal session handle.

Operations that talk to a remote portal receive this object instead of
reaching for any process-global session.
"""

from __future__ import annotations

from pydantic import BaseModel, SecretStr


class PortalSession(BaseModel):
    """Portal address plus the credentials attached to every request."""

    portal_url: str
    token: SecretStr | None = None
    username: str | None = None
    """Known username; when unset it is looked up from the portal."""

    @property
    def sharing_url(self) -> str:
        return f"{self.portal_url.rstrip('/')}/sharing/rest"

    def token_value(self) -> str | None:
        return self.token.get_secret_value() if self.token else None
