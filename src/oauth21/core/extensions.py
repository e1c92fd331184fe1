from __future__ import annotations

__all__ = ["select_from_group"]

from importlib.metadata import EntryPoint, entry_points

from cachetools import LRUCache, cached


@cached(cache=LRUCache(maxsize=1024))
def select_from_group(*, group: str, name: str | None = None) -> list[EntryPoint]:
    """Select the installed entry points of a group, optionally by name."""
    selected = entry_points().select(group=group)
    if name is not None:
        selected = selected.select(name=name)
    return sorted(selected, key=lambda entry_point: entry_point.name)
