# Copyright (c) 2025.
# This file is part of SubGraph-JIT, released under the MIT License.
"""
Disjoint-set forest (union-find) over variable ids.

Used by the graph splitter to run Kruskal's algorithm: a binary factor joins
the spanning tree only when its two variables are still in different sets.
Keys are added lazily the first time they are looked up, so the forest never
needs to be told the full key set in advance.
"""

from __future__ import annotations
from typing import Dict, Hashable, Set


class DisjointSetForest:
    """Union-find with path compression and union by rank."""

    def __init__(self) -> None:
        self._parent: Dict[Hashable, Hashable] = {}
        self._rank: Dict[Hashable, int] = {}

    def __len__(self) -> int:
        return len(self._parent)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._parent

    def find(self, key: Hashable) -> Hashable:
        """Return the representative of ``key``'s set, creating a singleton if needed."""
        if key not in self._parent:
            self._parent[key] = key
            self._rank[key] = 0
            return key

        root = key
        while self._parent[root] != root:
            root = self._parent[root]

        # Path compression
        while self._parent[key] != root:
            self._parent[key], key = root, self._parent[key]
        return root

    def merge(self, a: Hashable, b: Hashable) -> Hashable:
        """Union the sets containing ``a`` and ``b`` and return the new root."""
        root_a = self.find(a)
        root_b = self.find(b)
        if root_a == root_b:
            return root_a

        if self._rank[root_a] < self._rank[root_b]:
            root_a, root_b = root_b, root_a
        self._parent[root_b] = root_a
        if self._rank[root_a] == self._rank[root_b]:
            self._rank[root_a] += 1
        return root_a

    def same_set(self, a: Hashable, b: Hashable) -> bool:
        return self.find(a) == self.find(b)

    def sets(self) -> Dict[Hashable, Set[Hashable]]:
        """Current partition as ``root -> members``."""
        out: Dict[Hashable, Set[Hashable]] = {}
        for key in list(self._parent):
            out.setdefault(self.find(key), set()).add(key)
        return out
