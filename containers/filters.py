"""Include/exclude selection of containers by name or host."""
from __future__ import annotations

from typing import AbstractSet, Iterable, List, Optional, Set

from .runtime import ContainerInfo


def parse_names(value: Optional[str]) -> Set[str]:
    """Split a comma separated option value, dropping empty entries."""

    if not value:
        return set()
    return {part.strip() for part in value.split(",") if part.strip()}


def filter_hosts(containers: Iterable[ContainerInfo], hosts: AbstractSet[str], *, include: bool) -> List[ContainerInfo]:
    items = list(containers)
    if not hosts:
        return items
    return [item for item in items if (item.host in hosts) == include]


def filter_containers(
    containers: Iterable[ContainerInfo], names: AbstractSet[str], *, include: bool
) -> List[ContainerInfo]:
    items = list(containers)
    if not names:
        return items
    return [item for item in items if (item.name in names) == include]


def select(
    containers: Iterable[ContainerInfo],
    *,
    include_containers: AbstractSet[str] = frozenset(),
    exclude_containers: AbstractSet[str] = frozenset(),
    include_hosts: AbstractSet[str] = frozenset(),
    exclude_hosts: AbstractSet[str] = frozenset(),
) -> List[ContainerInfo]:
    if include_containers and exclude_containers:
        raise ValueError("containers can only be included or excluded, not both")
    if include_hosts and exclude_hosts:
        raise ValueError("hosts can only be included or excluded, not both")
    items = filter_hosts(containers, exclude_hosts, include=False)
    items = filter_hosts(items, include_hosts, include=True)
    items = filter_containers(items, exclude_containers, include=False)
    return filter_containers(items, include_containers, include=True)


__all__ = ["filter_containers", "filter_hosts", "parse_names", "select"]
