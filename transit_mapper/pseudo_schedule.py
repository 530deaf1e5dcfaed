from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from threading import Lock

from .pseudo_graph import PseudoEdge, PseudoRouteStop

RouteKey = tuple[str, str]


@dataclass(frozen=True)
class PseudoRoute:
    line_id: str
    route_id: str
    stops: tuple[PseudoRouteStop, ...]
    edges: tuple[PseudoEdge, ...]
    network_link_ids: tuple[str, ...]

    @property
    def key(self) -> RouteKey:
        return (self.line_id, self.route_id)

    def link_sequence(self) -> list[str]:
        """Stop links joined by network paths or artificial links, in travel order."""
        sequence: list[str] = []
        for index, stop in enumerate(self.stops):
            if index > 0 and index - 1 < len(self.edges):
                edge = self.edges[index - 1]
                if edge.is_artificial:
                    sequence.append(edge.artificial_link().id)
                else:
                    sequence.extend(edge.links or ())
            if stop.link_id is not None:
                sequence.append(stop.link_id)
        deduped: list[str] = []
        for link_id in sequence:
            if deduped and deduped[-1] == link_id:
                continue
            deduped.append(link_id)
        return deduped


class PseudoSchedule:
    def __init__(self) -> None:
        self._lock = Lock()
        self._routes: dict[RouteKey, PseudoRoute] = {}

    def add_pseudo_route(
        self,
        line_id: str,
        route_id: str,
        stops: Sequence[PseudoRouteStop],
        edges: Sequence[PseudoEdge],
        network_link_ids: Sequence[str],
    ) -> PseudoRoute:
        route = PseudoRoute(
            line_id=str(line_id),
            route_id=str(route_id),
            stops=tuple(stops),
            edges=tuple(edges),
            network_link_ids=tuple(network_link_ids),
        )
        with self._lock:
            self._routes[route.key] = route
        return route

    def merge(self, other: "PseudoSchedule") -> None:
        if other is self:
            return
        with other._lock:
            incoming = dict(other._routes)
        with self._lock:
            self._routes.update(incoming)

    def get(self, line_id: str, route_id: str) -> PseudoRoute | None:
        with self._lock:
            return self._routes.get((str(line_id), str(route_id)))

    def routes(self) -> list[PseudoRoute]:
        with self._lock:
            return [self._routes[key] for key in sorted(self._routes)]

    def route_link_ids(self) -> dict[RouteKey, list[str]]:
        return {route.key: route.link_sequence() for route in self.routes()}

    def __len__(self) -> int:
        with self._lock:
            return len(self._routes)

    def __iter__(self) -> Iterator[PseudoRoute]:
        return iter(self.routes())
