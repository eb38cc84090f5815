"""Best-effort iteration.

``partition`` runs a step over every item and folds the results into the
values that were produced plus a side list of ``(item, reason)`` failures.
A step returning ``None`` skips the item without recording a failure.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from typing import Generic, TypeVar

T = TypeVar("T")
R = TypeVar("R")


@dataclass
class Partition(Generic[T, R]):
    ok: list[R] = field(default_factory=list)
    failed: list[tuple[T, str]] = field(default_factory=list)


def partition(items: Iterable[T], step: Callable[[T], R | None]) -> Partition[T, R]:
    result: Partition[T, R] = Partition()
    for item in items:
        try:
            value = step(item)
        except Exception as exc:  # noqa: BLE001
            result.failed.append((item, _reason(exc)))
            continue
        if value is not None:
            result.ok.append(value)
    return result


async def apartition(items: Iterable[T], step: Callable[[T], Awaitable[R | None]]) -> Partition[T, R]:
    """Async variant of ``partition``.  Items are processed one at a time."""
    result: Partition[T, R] = Partition()
    for item in items:
        try:
            value = await step(item)
        except Exception as exc:  # noqa: BLE001
            result.failed.append((item, _reason(exc)))
            continue
        if value is not None:
            result.ok.append(value)
    return result


def _reason(exc: Exception) -> str:
    return str(exc) or type(exc).__name__
