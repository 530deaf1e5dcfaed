from __future__ import annotations

import math
from dataclasses import dataclass, field

from .mapping_errors import MappingError

Coord = tuple[float, float]


def euclidean_distance(a: Coord, b: Coord) -> float:
    return math.hypot(float(b[0]) - float(a[0]), float(b[1]) - float(a[1]))


@dataclass(frozen=True)
class Node:
    id: str
    coord: Coord


@dataclass(frozen=True)
class Link:
    id: str
    from_node: str
    to_node: str
    length: float
    freespeed: float
    capacity: float = 9999.0
    permlanes: float = 1.0
    modes: frozenset[str] = field(default_factory=frozenset)

    @property
    def travel_time(self) -> float:
        return self.length / max(1e-9, float(self.freespeed))


class Network:
    """Mutable node/link container with in/out link indexes.

    Not thread safe: mutate only from a single thread.
    """

    def __init__(self) -> None:
        self.nodes: dict[str, Node] = {}
        self.links: dict[str, Link] = {}
        self._out_links: dict[str, list[str]] = {}
        self._in_links: dict[str, list[str]] = {}

    def add_node(self, node: Node) -> Node:
        existing = self.nodes.get(node.id)
        if existing is not None:
            return existing
        self.nodes[node.id] = node
        self._out_links.setdefault(node.id, [])
        self._in_links.setdefault(node.id, [])
        return node

    def add_link(self, link: Link) -> Link:
        if link.id in self.links:
            raise MappingError(
                reason_code="network_link_duplicate",
                message=f"link {link.id!r} is already part of the network",
                details={"link_id": link.id},
            )
        for node_id in (link.from_node, link.to_node):
            if node_id not in self.nodes:
                raise MappingError(
                    reason_code="network_node_unknown",
                    message=f"link {link.id!r} references unknown node {node_id!r}",
                    details={"link_id": link.id, "node_id": node_id},
                )
        self.links[link.id] = link
        self._out_links[link.from_node].append(link.id)
        self._in_links[link.to_node].append(link.id)
        return link

    def out_links(self, node_id: str) -> tuple[Link, ...]:
        return tuple(self.links[link_id] for link_id in self._out_links.get(node_id, ()))

    def in_links(self, node_id: str) -> tuple[Link, ...]:
        return tuple(self.links[link_id] for link_id in self._in_links.get(node_id, ()))

    def link_vector(self, link: Link) -> Coord:
        start = self.nodes[link.from_node].coord
        end = self.nodes[link.to_node].coord
        return (end[0] - start[0], end[1] - start[1])
