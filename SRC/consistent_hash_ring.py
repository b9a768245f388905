"""Consistent hashing ring over a pluggable hash adapter.
- Each node occupies `replica_count` positions, hashed from "<i>^_^<node>"
- Sorted position array for O(log N) lookups via bisect, ordered by the adapter's comparator
- A key belongs to the first position strictly after its hash, wrapping to the head of the ring
- Position collisions are last-write-wins
"""
from __future__ import annotations

from functools import cmp_to_key
from typing import Any, Dict, FrozenSet, Iterable, List, Tuple, Union
import bisect
import logging
import threading

from hash_adapters import HashAdapter
from ring_errors import DuplicateNode, EmptyRing, InvalidNodeIdentifier, UnknownNode

log = logging.getLogger(__name__)

# Part of the placement contract: changing it moves every key.
REPLICA_SEPARATOR = "^_^"


def replica_seed(node: str, replica_idx: int) -> bytes:
    return f"{replica_idx}{REPLICA_SEPARATOR}{node}".encode("utf-8")


class ConsistentHasher:
    """Consistent hashing ring with a fixed number of replicas per node.

    The ring is built by adding nodes and is then queried with
    `get_node_for_key`. Nodes cannot be removed. Writers are expected to be
    serialized by the caller; lookups on a populated ring may run in parallel.
    """
    def __init__(self, adapter: HashAdapter, replica_count: int):
        if isinstance(replica_count, bool) or not isinstance(replica_count, int):
            raise ValueError(f"replica_count must be an int, got {type(replica_count).__name__}")
        if replica_count < 0:
            raise ValueError(f"replica_count must be >= 0, got {replica_count}")
        self._adapter = adapter
        self._replicas = replica_count
        self._sort_key = cmp_to_key(adapter.compare)
        self._lock = threading.RLock()
        self._nodes: Dict[str, None] = {}
        # parallel arrays, ascending under adapter.compare
        self._sorted_keys: List[Any] = []
        self._positions: List[Any] = []
        self._owners: List[str] = []
        self._positions_per_node: Dict[str, List[Any]] = {}

    def _check_node(self, node: Any) -> None:
        if not isinstance(node, str):
            raise InvalidNodeIdentifier(
                f"Expecting a string node identifier, got {type(node).__name__}", node=node
            )
        if not node:
            raise InvalidNodeIdentifier("Node identifier must not be empty", node=node)

    @staticmethod
    def _locate(sorted_keys: List[Any], key: Any) -> Tuple[int, bool]:
        # bisect_left leaves sorted_keys[idx] >= key, so "not key < it" means equal
        idx = bisect.bisect_left(sorted_keys, key)
        return idx, idx < len(sorted_keys) and not key < sorted_keys[idx]

    def _node_positions(self, node: str) -> List[Any]:
        """Replica positions of `node` in ring order; a later replica replaces an equal earlier one."""
        keys: List[Any] = []
        positions: List[Any] = []
        for i in range(self._replicas):
            pos = self._adapter.hash(replica_seed(node, i))
            key = self._sort_key(pos)
            idx, hit = self._locate(keys, key)
            if hit:
                log.debug("replica collision node=%s replica=%d", node, i)
                keys[idx] = key
                positions[idx] = pos
            else:
                keys.insert(idx, key)
                positions.insert(idx, pos)
        return positions

    def _take_over(self, idx: int, pos: Any, node: str) -> None:
        prev = self._owners[idx]
        self._positions_per_node[prev] = [
            p for p in self._positions_per_node[prev] if self._adapter.compare(p, pos) != 0
        ]
        log.debug("position collision node=%s takes over from node=%s", node, prev)

    def add_node(self, node: str) -> "ConsistentHasher":
        """Place `node` on the ring. Returns the ring for chaining.

        A position already held by another node is taken over by `node` and
        dropped from the previous owner's positions.
        """
        self._check_node(node)
        with self._lock:
            if node in self._nodes:
                raise DuplicateNode(f"Node {node} already added", node=node)
            positions = self._node_positions(node)
            for pos in positions:
                key = self._sort_key(pos)
                idx, hit = self._locate(self._sorted_keys, key)
                if hit:
                    self._take_over(idx, pos, node)
                    self._sorted_keys[idx] = key
                    self._positions[idx] = pos
                    self._owners[idx] = node
                else:
                    self._sorted_keys.insert(idx, key)
                    self._positions.insert(idx, pos)
                    self._owners.insert(idx, node)
            self._positions_per_node[node] = positions
            self._nodes[node] = None
        log.debug("added node=%s positions=%d", node, len(positions))
        return self

    def add_nodes(self, nodes: Iterable[str]) -> "ConsistentHasher":
        """Add nodes in order. Not atomic: nodes added before a failure stay."""
        for node in nodes:
            self.add_node(node)
        return self

    def get_node_for_key(self, key: Union[str, bytes]) -> str:
        data = key.encode("utf-8") if isinstance(key, str) else key
        tok = self._adapter.hash(data)
        with self._lock:
            if not self._positions:
                raise EmptyRing("No positions on the ring, add a node with replica_count >= 1")
            idx = bisect.bisect_right(self._sorted_keys, self._sort_key(tok)) % len(self._positions)
            return self._owners[idx]

    def all_nodes(self) -> FrozenSet[str]:
        with self._lock:
            return frozenset(self._nodes)

    def positions_of(self, node: str) -> Tuple[Any, ...]:
        with self._lock:
            try:
                return tuple(self._positions_per_node[node])
            except (KeyError, TypeError):
                raise UnknownNode(f"No such node has been added: {node!r}", node=node) from None

    def all_positions(self) -> List[Tuple[Any, str]]:
        """(position, owner) pairs in ascending ring order.

        Pairs rather than a dict, since hash values need not be hashable.
        """
        with self._lock:
            return list(zip(self._positions, self._owners))

    def adapter(self) -> HashAdapter:
        return self._adapter

    def replica_count(self) -> int:
        return self._replicas

    def size(self) -> int:
        with self._lock:
            return len(self._nodes)

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {"nodes": len(self._nodes), "positions": len(self._positions), "replicas": self._replicas}

    def __len__(self) -> int:
        return self.size()

    def __contains__(self, node: object) -> bool:
        with self._lock:
            try:
                return node in self._nodes
            except TypeError:
                return False

    def __repr__(self) -> str:
        return f"ConsistentHasher(adapter={self._adapter!r}, replica_count={self._replicas}, nodes={self.size()})"
