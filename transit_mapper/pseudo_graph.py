from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from .link_candidates import LinkCandidate
from .network import Coord, Link, euclidean_distance
from .schedule import TransitRouteStop
from .settings import settings
from .shortest_path import Adjacency, PathNotFoundError, PathResult, dijkstra_shortest_path

ARTIFICIAL_LINK_PREFIX = "pt_"


def _escape_node_id(node_id: str) -> str:
    # "_" separates the endpoints, so it never appears inside an encoded node id.
    return node_id.replace("%", "%25").replace("_", "%5F")


def artificial_link_id(from_node: str, to_node: str) -> str:
    return f"{ARTIFICIAL_LINK_PREFIX}{_escape_node_id(from_node)}_{_escape_node_id(to_node)}"


@dataclass(frozen=True)
class PseudoRouteStop:
    """Node of the pseudo graph: one link candidate for the stop at ``layer``."""

    layer: int
    stop: TransitRouteStop | None
    candidate: LinkCandidate | None
    role: str = "stop"  # stop | source | destination

    @property
    def is_dummy(self) -> bool:
        return self.role != "stop"

    @property
    def link_id(self) -> str | None:
        return self.candidate.link_id if self.candidate is not None else None


SOURCE = PseudoRouteStop(layer=-1, stop=None, candidate=None, role="source")
DESTINATION = PseudoRouteStop(layer=-1, stop=None, candidate=None, role="destination")


@dataclass(frozen=True, eq=False)
class ArtificialLink:
    id: str
    from_node: str
    to_node: str
    from_coord: Coord
    to_coord: Coord
    length: float
    freespeed: float
    capacity: float
    permlanes: float
    modes: frozenset[str] = field(default_factory=frozenset)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ArtificialLink):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    @classmethod
    def between(cls, from_candidate: LinkCandidate, to_candidate: LinkCandidate) -> "ArtificialLink":
        from_node = from_candidate.to_node
        to_node = to_candidate.from_node
        return cls(
            id=artificial_link_id(from_node, to_node),
            from_node=from_node,
            to_node=to_node,
            from_coord=from_candidate.to_coord,
            to_coord=to_candidate.from_coord,
            length=euclidean_distance(from_candidate.to_coord, to_candidate.from_coord),
            freespeed=float(settings.artificial_link_freespeed),
            capacity=float(settings.artificial_link_capacity),
            permlanes=float(settings.artificial_link_permlanes),
            modes=frozenset({settings.artificial_link_mode}),
        )

    def to_link(self) -> Link:
        return Link(
            id=self.id,
            from_node=self.from_node,
            to_node=self.to_node,
            length=self.length,
            freespeed=self.freespeed,
            capacity=self.capacity,
            permlanes=self.permlanes,
            modes=self.modes,
        )


@dataclass(frozen=True)
class PseudoEdge:
    from_stop: PseudoRouteStop
    to_stop: PseudoRouteStop
    weight: float
    links: tuple[str, ...] | None

    @property
    def is_artificial(self) -> bool:
        return self.links is None

    @property
    def is_dummy(self) -> bool:
        return self.from_stop.is_dummy or self.to_stop.is_dummy

    def artificial_link(self) -> ArtificialLink:
        if self.from_stop.candidate is None or self.to_stop.candidate is None:
            raise ValueError("dummy edges have no artificial link")
        return ArtificialLink.between(self.from_stop.candidate, self.to_stop.candidate)


class PseudoGraph:
    """Layered graph of (stop, link candidate) nodes for a single route.

    Layer ``i`` holds the candidates of the i-th route stop. Edges only run
    from layer ``i`` to ``i + 1``; SOURCE feeds the first layer and the last
    layer drains into DESTINATION. The least-cost SOURCE to DESTINATION path
    therefore picks exactly one candidate per stop.
    """

    def __init__(self) -> None:
        self._adjacency: Adjacency = {}
        self._edges: list[PseudoEdge] = []
        self._path: PathResult | None = None
        self._solved = False

    @property
    def edges(self) -> tuple[PseudoEdge, ...]:
        return tuple(self._edges)

    def _link(self, edge: PseudoEdge) -> None:
        self._adjacency.setdefault(edge.from_stop, []).append((edge.to_stop, edge.weight, edge))
        self._edges.append(edge)
        self._solved = False
        self._path = None

    def add_edge(
        self,
        layer: int,
        from_stop: TransitRouteStop,
        from_candidate: LinkCandidate,
        to_stop: TransitRouteStop,
        to_candidate: LinkCandidate,
        weight: float,
        links: Sequence[str] | None,
    ) -> PseudoEdge:
        edge = PseudoEdge(
            from_stop=PseudoRouteStop(layer=layer, stop=from_stop, candidate=from_candidate),
            to_stop=PseudoRouteStop(layer=layer + 1, stop=to_stop, candidate=to_candidate),
            weight=float(weight),
            links=tuple(links) if links is not None else None,
        )
        self._link(edge)
        return edge

    def add_dummy_edges(
        self,
        route_stops: Sequence[TransitRouteStop],
        first_candidates: Sequence[LinkCandidate],
        last_candidates: Sequence[LinkCandidate],
    ) -> None:
        if not route_stops:
            return
        last_layer = len(route_stops) - 1
        for candidate in first_candidates:
            first = PseudoRouteStop(layer=0, stop=route_stops[0], candidate=candidate)
            self._link(PseudoEdge(from_stop=SOURCE, to_stop=first, weight=0.0, links=()))
        for candidate in last_candidates:
            last = PseudoRouteStop(layer=last_layer, stop=route_stops[-1], candidate=candidate)
            self._link(PseudoEdge(from_stop=last, to_stop=DESTINATION, weight=0.0, links=()))

    def _solve(self) -> PathResult | None:
        if not self._solved:
            try:
                # Artificial weights can be negative, so do not settle on first pop.
                self._path = dijkstra_shortest_path(
                    adjacency=self._adjacency,
                    start=SOURCE,
                    goal=DESTINATION,
                    stop_at_goal=False,
                )
            except PathNotFoundError:
                self._path = None
            self._solved = True
        return self._path

    def get_least_cost_stop_sequence(self) -> list[PseudoRouteStop] | None:
        path = self._solve()
        if path is None:
            return None
        return [node for node in path.nodes if isinstance(node, PseudoRouteStop) and not node.is_dummy]

    def get_least_cost(self) -> float | None:
        path = self._solve()
        return None if path is None else path.cost

    def get_path_edges(self) -> tuple[PseudoEdge, ...]:
        path = self._solve()
        if path is None:
            return ()
        return tuple(edge for edge in path.edges if not edge.is_dummy)

    def get_artificial_network_links(self) -> set[ArtificialLink]:
        return {edge.artificial_link() for edge in self.get_path_edges() if edge.is_artificial}

    def get_network_link_ids(self) -> list[str]:
        link_ids: list[str] = []
        for edge in self.get_path_edges():
            if edge.links:
                link_ids.extend(edge.links)
        return link_ids
