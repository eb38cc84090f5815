"""Item search queries.

Queries are rendered to the portal search syntax, a boolean AND of terms::

    tags:"ExB-session" AND tags:"workspace" AND type:"Application Configuration" AND owner:alice

Stores without a search engine parse the rendered string back into terms
and match item metadata against them.
"""

from __future__ import annotations

import re
from typing import Literal

from pydantic import BaseModel, Field

DEFAULT_TAGS = ("ExB-session", "workspace", "map-config")
DEFAULT_ITEM_TYPE = "Application Configuration"

_TERM_RE = re.compile(r'(\w+):(?:"([^"]*)"|(\S+))')


class SearchSort(BaseModel):
    field: str = "modified"
    order: Literal["asc", "desc"] = "desc"


class ItemQuery(BaseModel):
    """Tag, item-type and owner terms, all of which must match."""

    tags: list[str] = Field(default_factory=lambda: list(DEFAULT_TAGS))
    item_type: str = DEFAULT_ITEM_TYPE
    owner: str

    def render(self) -> str:
        terms = [f'tags:"{tag}"' for tag in self.tags]
        terms.append(f'type:"{self.item_type}"')
        terms.append(f"owner:{self.owner}")
        return " AND ".join(terms)


def split_tags(tags: str) -> list[str]:
    """Split a comma separated tag string, dropping blanks."""
    return [t.strip() for t in tags.split(",") if t.strip()]


def parse_terms(query: str) -> list[tuple[str, str]]:
    """Parse a rendered query into ``(field, value)`` pairs."""
    terms = []
    for clause in query.split(" AND "):
        match = _TERM_RE.fullmatch(clause.strip())
        if match is None:
            msg = f"Unsupported query clause: {clause!r}"
            raise ValueError(msg)
        field, quoted, bare = match.groups()
        terms.append((field, quoted if quoted is not None else bare))
    return terms


def matches(terms: list[tuple[str, str]], *, tags: list[str], item_type: str, owner: str) -> bool:
    """True when item metadata satisfies every term."""
    for field, value in terms:
        if field == "tags" and value not in tags:
            return False
        if field == "type" and value != item_type:
            return False
        if field == "owner" and value != owner:
            return False
        if field not in ("tags", "type", "owner"):
            return False
    return True
