# Overview: In-memory storage location tree; cycle detection and capacity/stock roll-ups.

"""
Location tree (pure logic, no database access).

Nodes are held in an arena keyed by id and linked by parent id. The
services build a LocationTree from the active rows of storage_locations and
ask it structural questions before mutating anything.

Every traversal tracks visited ids, so rows that already form a loop (a
hand-edited database, say) end the walk instead of hanging the request.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Mapping

from .errors import ValidationError

ROLLUP_UNBOUNDED = "unbounded"
ROLLUP_CAPPED_ONLY = "capped_only"
ROLLUP_POLICIES = (ROLLUP_UNBOUNDED, ROLLUP_CAPPED_ONLY)


@dataclass
class LocationNode:
    id: int
    parent_id: int | None
    capacity: int | None = None
    children: list[int] = field(default_factory=list)

    @property
    def is_leaf(self) -> bool:
        return not self.children


class LocationTree:
    def __init__(self, rows: Iterable[tuple[int, int | None, int | None]] = ()):
        self._nodes: dict[int, LocationNode] = {}
        for loc_id, parent_id, capacity in rows:
            self._nodes[loc_id] = LocationNode(id=loc_id, parent_id=parent_id, capacity=capacity)

        # Children lists are only built for parents that are themselves present,
        # so a dangling parent id makes the node behave like a root.
        for node in self._nodes.values():
            if node.parent_id is not None and node.parent_id in self._nodes:
                self._nodes[node.parent_id].children.append(node.id)

    @classmethod
    def from_locations(cls, locations) -> "LocationTree":
        return cls((loc.id, loc.parent_id, loc.capacity) for loc in locations)

    def __contains__(self, location_id) -> bool:
        return location_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def get(self, location_id: int) -> LocationNode:
        try:
            return self._nodes[location_id]
        except KeyError:
            raise ValidationError(f"Location {location_id} not found")

    def roots(self) -> list[int]:
        return [
            n.id for n in self._nodes.values()
            if n.parent_id is None or n.parent_id not in self._nodes
        ]

    def children(self, location_id: int) -> list[int]:
        return list(self.get(location_id).children)

    def is_leaf(self, location_id: int) -> bool:
        return self.get(location_id).is_leaf

    def ancestors(self, location_id: int) -> list[int]:
        """Parent chain from the direct parent up to the root."""
        chain: list[int] = []
        visited = {location_id}
        current = self.get(location_id).parent_id
        while current is not None and current in self._nodes and current not in visited:
            chain.append(current)
            visited.add(current)
            current = self._nodes[current].parent_id
        return chain

    def descendants(self, location_id: int) -> list[int]:
        """All nodes below location_id, depth-first, excluding location_id."""
        out: list[int] = []
        visited = {location_id}
        stack = list(reversed(self.get(location_id).children))
        while stack:
            current = stack.pop()
            if current in visited:
                continue
            visited.add(current)
            out.append(current)
            stack.extend(reversed(self._nodes[current].children))
        return out

    def leaf_descendants(self, location_id: int) -> list[int]:
        """Leaves under location_id, or [location_id] when it is a leaf itself."""
        node = self.get(location_id)
        if node.is_leaf:
            return [location_id]
        return [d for d in self.descendants(location_id) if self._nodes[d].is_leaf]

    def would_create_cycle(self, location_id: int, new_parent_id: int | None) -> bool:
        """
        True when new_parent_id is location_id or lies below it.

        Walks up from new_parent_id looking for location_id; the walk is
        bounded by the visited set.
        """
        if new_parent_id is None:
            return False
        if new_parent_id == location_id:
            return True
        visited: set[int] = set()
        current: int | None = new_parent_id
        while current is not None and current in self._nodes and current not in visited:
            if current == location_id:
                return True
            visited.add(current)
            current = self._nodes[current].parent_id
        return False

    def aggregate_capacity(self, location_id: int, policy: str = ROLLUP_UNBOUNDED) -> int | None:
        """
        Leaf: its own capacity. Inner node: combine leaf capacities.

        unbounded   -> None as soon as one leaf has no capacity
        capped_only -> sum of capped leaves, None only if no leaf is capped
        """
        if policy not in ROLLUP_POLICIES:
            raise ValidationError(f"Unknown capacity roll-up policy: {policy}")

        node = self.get(location_id)
        if node.is_leaf:
            return node.capacity

        capacities = [self._nodes[leaf].capacity for leaf in self.leaf_descendants(location_id)]
        capped = [c for c in capacities if c is not None]

        if policy == ROLLUP_UNBOUNDED:
            if len(capped) != len(capacities):
                return None
            return sum(capped)

        if not capped:
            return None
        return sum(capped)

    def aggregate_stock(self, location_id: int, quantities: Mapping[int, int]) -> int:
        """Sum of quantities on the leaves under location_id (keyed by location id)."""
        return sum(quantities.get(leaf, 0) for leaf in self.leaf_descendants(location_id))


def utilization_percent(stock: int, capacity: int | None) -> int | None:
    """Stock as a percentage of capacity, rounded half up. None without a positive capacity."""
    if not capacity:
        return None
    return (stock * 100 + capacity // 2) // capacity
