from __future__ import annotations

import heapq
from dataclasses import dataclass
from typing import Mapping, Optional

from apigraph.domain.models import PathEntry


ROOT_PATH = "/"


@dataclass(frozen=True)
class ResolvedResource:
    key: str
    path_part: str
    parent_key: Optional[str]
    ancestors: tuple[str, ...]  # root-first, ends with key itself
    path: str
    depth: int


@dataclass(frozen=True)
class ResourceTree:
    resources: dict[str, ResolvedResource]
    order: tuple[str, ...]  # parents always before children
    children: dict[Optional[str], tuple[str, ...]]  # None is the implicit root

    def path_for(self, resource_key: Optional[str]) -> str:
        if resource_key is None:
            return ROOT_PATH
        return self.resources[resource_key].path

    def ancestors_of(self, resource_key: Optional[str]) -> tuple[str, ...]:
        if resource_key is None:
            return ()
        return self.resources[resource_key].ancestors


def find_parent_cycles(resources: Mapping[str, PathEntry]) -> list[tuple[str, ...]]:
    """
    Return every cycle in the child -> parent relation, each exactly once.

    Each cycle is rotated to start at its smallest key. Chains ending at a
    missing parent are not cycles; the dangling reference is reported elsewhere.
    """
    state: dict[str, int] = {}  # 1 = on current walk, 2 = done
    cycles: list[tuple[str, ...]] = []

    for start in sorted(resources):
        if state.get(start):
            continue
        walk: list[str] = []
        node: Optional[str] = start
        while node is not None and node in resources and not state.get(node):
            state[node] = 1
            walk.append(node)
            node = resources[node].parent_key

        if node is not None and state.get(node) == 1:
            loop = walk[walk.index(node):]
            i = loop.index(min(loop))
            cycles.append(tuple(loop[i:] + loop[:i]))

        for n in walk:
            state[n] = 2

    return cycles


def resolve_resource_tree(resources: Mapping[str, PathEntry]) -> ResourceTree:
    """
    Resolve ancestor chains and a creation order for validated path entries.

    Entries form a forest under the implicit root. Ordering is Kahn's
    algorithm with a min-heap on key, so unchanged input always yields the
    same order no matter how the mapping was built.
    """
    children_lists: dict[Optional[str], list[str]] = {}
    for key in sorted(resources):
        parent = resources[key].parent_key
        children_lists.setdefault(parent, []).append(key)

    ready = list(children_lists.get(None, []))
    heapq.heapify(ready)
    order: list[str] = []
    resolved: dict[str, ResolvedResource] = {}

    while ready:
        key = heapq.heappop(ready)
        entry = resources[key]
        parent = resolved.get(entry.parent_key) if entry.parent_key is not None else None

        ancestors = (parent.ancestors if parent else ()) + (key,)
        base = parent.path if parent else ""
        resolved[key] = ResolvedResource(
            key=key,
            path_part=entry.path_part,
            parent_key=entry.parent_key,
            ancestors=ancestors,
            path=f"{base}/{entry.path_part}",
            depth=len(ancestors),
        )
        order.append(key)

        for child in children_lists.get(key, []):
            heapq.heappush(ready, child)

    if len(order) != len(resources):
        unreachable = sorted(set(resources) - set(order))
        raise ValueError(f"resources not reachable from root: {', '.join(unreachable)}")

    return ResourceTree(
        resources=resolved,
        order=tuple(order),
        children={k: tuple(v) for k, v in children_lists.items()},
    )
