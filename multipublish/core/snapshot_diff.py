"""Structural comparison of two keyed snapshots."""

from __future__ import annotations

from typing import Hashable, Mapping, TypeVar

K = TypeVar("K", bound=Hashable)

_MISSING = object()


def changed_keys(current: Mapping[K, object], baseline: Mapping[K, object]) -> list[K]:
    """Return keys of ``current`` whose value differs from ``baseline``.

    A key absent from ``baseline`` counts as changed. Keys only present in
    ``baseline`` are never reported. Order follows ``current``.
    """
    return [key for key, value in current.items() if baseline.get(key, _MISSING) != value]


__all__ = ["changed_keys"]
