from __future__ import annotations

import logging
import threading
from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass

from .lanes import Lanes, ensure_turn_lanes
from .link_candidates import CandidateProvider
from .logging_utils import log_event
from .mapping_errors import MappingError
from .network import Network, Node
from .network_router import PathOracle
from .pseudo_graph import ArtificialLink, PseudoGraph
from .pseudo_schedule import PseudoRoute, PseudoSchedule
from .schedule import TransitLine, TransitRoute
from .settings import settings

SAME_LINK_COST_MULTIPLIER = 4.0


class Progress:
    def __init__(self, total: int, *, step_pct: float | None = None) -> None:
        self._lock = threading.Lock()
        self._total = max(0, int(total))
        self._count = 0
        self._step_pct = float(step_pct if step_pct is not None else settings.progress_log_step_pct)
        self._next_pct = self._step_pct

    @property
    def count(self) -> int:
        with self._lock:
            return self._count

    def update(self) -> None:
        with self._lock:
            self._count += 1
            if self._total <= 0:
                return
            pct = 100.0 * self._count / self._total
            if pct + 1e-9 < self._next_pct:
                return
            while self._next_pct <= pct + 1e-9:
                self._next_pct += self._step_pct
            count, total = self._count, self._total
        log_event("pseudo_routing_progress", routes_done=count, routes_total=total, pct=round(pct, 1))


class LineQueue:
    """Work queue of transit lines shared by all pseudo-routing workers.

    Also owns the run-wide one-time warning flags and the abort signal that
    stops workers from claiming further lines after a fatal error.
    """

    def __init__(self, lines: Iterable[TransitLine] = ()) -> None:
        self._lock = threading.Lock()
        self._lines: deque[TransitLine] = deque(lines)
        self._warned: set[str] = set()
        self._aborted = threading.Event()
        self._error: BaseException | None = None

    def add(self, line: TransitLine) -> None:
        with self._lock:
            self._lines.append(line)

    def poll(self) -> TransitLine | None:
        if self._aborted.is_set():
            return None
        with self._lock:
            if not self._lines:
                return None
            return self._lines.popleft()

    def __len__(self) -> int:
        with self._lock:
            return len(self._lines)

    def claim_warning(self, key: str) -> bool:
        """True for the first caller per ``key``, False afterwards."""
        with self._lock:
            if key in self._warned:
                return False
            self._warned.add(key)
            return True

    def abort(self, error: BaseException | None = None) -> None:
        """Stop handing out lines; the first ``error`` reported is kept."""
        with self._lock:
            if error is not None and self._error is None:
                self._error = error
        self._aborted.set()

    @property
    def aborted(self) -> bool:
        return self._aborted.is_set()

    @property
    def error(self) -> BaseException | None:
        with self._lock:
            return self._error


@dataclass(frozen=True)
class RouteMapped:
    pseudo_route: PseudoRoute
    artificial_links: frozenset[ArtificialLink]


@dataclass(frozen=True)
class NoPathFound:
    line_id: str
    route_id: str
    from_stop: str
    to_stop: str

    def to_error(self) -> MappingError:
        if not self.from_stop and not self.to_stop:
            return MappingError(
                reason_code="route_without_stops",
                message=f"transit route {self.route_id} on line {self.line_id} has no stops",
                details={"line_id": self.line_id, "route_id": self.route_id},
            )
        return MappingError(
            reason_code="pseudo_graph_no_path",
            message=(
                f"PseudoGraph has no path from SOURCE to DESTINATION for transit route {self.route_id} "
                f'on line {self.line_id} from "{self.from_stop}" to "{self.to_stop}"'
            ),
            details={
                "line_id": self.line_id,
                "route_id": self.route_id,
                "from_stop": self.from_stop,
                "to_stop": self.to_stop,
            },
        )


RouteOutcome = RouteMapped | NoPathFound


class PseudoRouter:
    """Picks the least-cost link candidate per stop for every queued route.

    Each worker owns one router. Results accumulate in the router's own
    pseudo schedule and artificial link set and are merged by the caller
    once every worker has finished.
    """

    def __init__(
        self,
        candidate_provider: CandidateProvider,
        path_oracle: PathOracle,
        queue: LineQueue,
        *,
        max_travel_cost_factor: float | None = None,
        progress: Progress | None = None,
    ) -> None:
        self._candidates = candidate_provider
        self._oracle = path_oracle
        self._queue = queue
        self._progress = progress
        factor = settings.max_travel_cost_factor if max_travel_cost_factor is None else max_travel_cost_factor
        self._max_travel_cost_factor = max(1.0, float(factor))
        self._pseudo_schedule = PseudoSchedule()
        self._artificial_links: set[ArtificialLink] = set()

    @property
    def pseudo_schedule(self) -> PseudoSchedule:
        return self._pseudo_schedule

    @property
    def artificial_links(self) -> frozenset[ArtificialLink]:
        return frozenset(self._artificial_links)

    def build_pseudo_graph(self, line: TransitLine, route: TransitRoute) -> PseudoGraph:
        graph = PseudoGraph()
        stops = route.stops
        for i in range(len(stops) - 1):
            current_candidates = self._candidates.candidates_for(stops[i], line, route)
            next_candidates = self._candidates.candidates_for(stops[i + 1], line, route)

            min_travel_cost = float(self._oracle.minimal_travel_cost(stops[i], stops[i + 1], line, route))
            max_allowed_travel_cost = min_travel_cost * self._max_travel_cost_factor

            if min_travel_cost == 0 and self._queue.claim_warning("zero_min_travel_cost"):
                log_event(
                    "zero_min_travel_cost",
                    level=logging.WARNING,
                    line_id=line.id,
                    route_id=route.id,
                    from_stop=stops[i].name,
                    to_stop=stops[i + 1].name,
                    note=(
                        "stops share a coordinate or have identical times; "
                        "further messages are suppressed"
                    ),
                )

            for current in current_candidates:
                for nxt in next_candidates:
                    use_existing = False
                    path_cost = 2 * max_allowed_travel_cost
                    path_links: tuple[str, ...] | None = None

                    # Loop links need no network path.
                    if not current.is_loop_link and not nxt.is_loop_link:
                        path = self._oracle.least_cost_path(current, nxt, line, route)
                        if path is not None:
                            path_cost = float(path.cost)
                            path_links = tuple(path.link_ids)
                            if current.link_id == nxt.link_id:
                                path_cost *= SAME_LINK_COST_MULTIPLIER
                        use_existing = path_cost < max_allowed_travel_cost

                    if use_existing:
                        weight = path_cost + 0.5 * current.cost + 0.5 * nxt.cost
                        graph.add_edge(i, stops[i], current, stops[i + 1], nxt, weight, path_links)
                    else:
                        weight = max_allowed_travel_cost - 0.5 * current.cost - 0.5 * nxt.cost
                        graph.add_edge(i, stops[i], current, stops[i + 1], nxt, weight, None)

        if stops:
            graph.add_dummy_edges(
                stops,
                self._candidates.candidates_for(stops[0], line, route),
                self._candidates.candidates_for(stops[-1], line, route),
            )
        return graph

    def process_one_route(self, line: TransitLine, route: TransitRoute) -> RouteOutcome:
        graph = self.build_pseudo_graph(line, route)
        sequence = graph.get_least_cost_stop_sequence()
        if not sequence:
            return NoPathFound(
                line_id=line.id,
                route_id=route.id,
                from_stop=route.stops[0].name if route.stops else "",
                to_stop=route.stops[-1].name if route.stops else "",
            )
        artificial = graph.get_artificial_network_links()
        self._artificial_links.update(artificial)
        pseudo_route = self._pseudo_schedule.add_pseudo_route(
            line.id,
            route.id,
            sequence,
            graph.get_path_edges(),
            graph.get_network_link_ids(),
        )
        if self._progress is not None:
            self._progress.update()
        return RouteMapped(pseudo_route=pseudo_route, artificial_links=frozenset(artificial))

    def run(self) -> None:
        try:
            while (line := self._queue.poll()) is not None:
                for route in line.routes:
                    outcome = self.process_one_route(line, route)
                    if isinstance(outcome, NoPathFound):
                        error = outcome.to_error()
                        log_event(
                            "pseudo_graph_no_path",
                            level=logging.ERROR,
                            reason_code=error.reason_code,
                            **(error.details or {}),
                        )
                        raise error
        except BaseException as exc:
            # Any failure ends the run for every worker sharing the queue.
            self._queue.abort(exc)
            raise

    def commit_artificial_links(self, network: Network, lanes: Lanes | None = None) -> list[str]:
        """Insert accumulated artificial links missing from ``network``.

        Not thread safe; call after every worker has finished.
        """
        inserted: list[str] = []
        for link in sorted(self._artificial_links, key=lambda item: item.id):
            if link.id in network.links:
                continue
            network.add_node(Node(id=link.from_node, coord=link.from_coord))
            network.add_node(Node(id=link.to_node, coord=link.to_coord))
            network.add_link(link.to_link())
            inserted.append(link.id)
            if lanes is not None:
                ensure_turn_lanes(network, lanes, link.from_node)
        if inserted:
            log_event("artificial_links_committed", count=len(inserted))
        return inserted
