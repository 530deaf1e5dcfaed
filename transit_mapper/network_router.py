from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Protocol

from .link_candidates import LinkCandidate
from .network import Link, Network, euclidean_distance
from .schedule import TransitLine, TransitRoute, TransitRouteStop
from .settings import settings
from .shortest_path import Adjacency, PathNotFoundError, dijkstra_shortest_path


@dataclass(frozen=True)
class NetworkPath:
    cost: float
    link_ids: tuple[str, ...]


class PathOracle(Protocol):
    def minimal_travel_cost(
        self,
        stop_a: TransitRouteStop,
        stop_b: TransitRouteStop,
        line: TransitLine,
        route: TransitRoute,
    ) -> float: ...

    def least_cost_path(
        self,
        candidate_a: LinkCandidate,
        candidate_b: LinkCandidate,
        line: TransitLine,
        route: TransitRoute,
    ) -> NetworkPath | None: ...


class NetworkPathOracle:
    """Least-cost paths on a ``Network``, one adjacency view per transport mode.

    ``network_modes`` maps a schedule transport mode to the network modes its
    vehicles may use (``{"bus": {"car", "bus"}}``). Modes absent from the map
    only use links carrying that exact mode.

    Instances cache adjacency views and are meant to be used by one worker.
    """

    def __init__(
        self,
        network: Network,
        *,
        travel_cost_type: str | None = None,
        network_modes: Mapping[str, set[str] | frozenset[str]] | None = None,
    ) -> None:
        self._network = network
        self._travel_cost_type = travel_cost_type or settings.travel_cost_type
        self._network_modes = {mode: frozenset(allowed) for mode, allowed in (network_modes or {}).items()}
        self._adjacency_by_mode: dict[str, Adjacency] = {}

    def link_cost(self, link: Link) -> float:
        if self._travel_cost_type == "link_length":
            return float(link.length)
        return link.travel_time

    def candidate_for_link(self, link_id: str) -> LinkCandidate:
        link = self._network.links[link_id]
        return LinkCandidate.from_link(self._network, link, cost=self.link_cost(link))

    def _adjacency(self, transport_mode: str) -> Adjacency:
        cached = self._adjacency_by_mode.get(transport_mode)
        if cached is not None:
            return cached
        allowed = self._network_modes.get(transport_mode, frozenset({transport_mode}))
        adjacency: Adjacency = {}
        for link in self._network.links.values():
            if link.modes and not (link.modes & allowed):
                continue
            adjacency.setdefault(link.from_node, []).append((link.to_node, self.link_cost(link), link.id))
        self._adjacency_by_mode[transport_mode] = adjacency
        return adjacency

    def minimal_travel_cost(
        self,
        stop_a: TransitRouteStop,
        stop_b: TransitRouteStop,
        line: TransitLine,
        route: TransitRoute,
    ) -> float:
        if self._travel_cost_type == "link_length":
            return euclidean_distance(stop_a.facility.coord, stop_b.facility.coord)
        departure = stop_a.departure_offset_s
        if departure is None:
            departure = stop_a.arrival_offset_s
        arrival = stop_b.arrival_offset_s
        if arrival is None:
            arrival = stop_b.departure_offset_s
        if departure is None or arrival is None:
            return 0.0
        return max(0.0, float(arrival) - float(departure))

    def least_cost_path(
        self,
        candidate_a: LinkCandidate,
        candidate_b: LinkCandidate,
        line: TransitLine,
        route: TransitRoute,
    ) -> NetworkPath | None:
        try:
            result = dijkstra_shortest_path(
                adjacency=self._adjacency(route.transport_mode),
                start=candidate_a.to_node,
                goal=candidate_b.from_node,
            )
        except PathNotFoundError:
            return None
        return NetworkPath(cost=result.cost, link_ids=tuple(str(link_id) for link_id in result.edges))
