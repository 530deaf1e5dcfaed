from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field

from .lanes import Lanes
from .link_candidates import CandidateProvider
from .logging_utils import log_event
from .network import Network
from .network_router import PathOracle
from .pseudo_graph import ArtificialLink
from .pseudo_router import LineQueue, Progress, PseudoRouter
from .pseudo_schedule import PseudoSchedule
from .schedule import TransitLine, count_routes
from .settings import settings

# Oracles may cache per-mode state, so each worker gets its own instance.
OracleFactory = Callable[[], PathOracle]


@dataclass
class MappingResult:
    pseudo_schedule: PseudoSchedule
    artificial_links: set[ArtificialLink] = field(default_factory=set)
    inserted_link_ids: list[str] = field(default_factory=list)
    duration_s: float = 0.0

    def route_link_ids(self) -> dict[tuple[str, str], list[str]]:
        return self.pseudo_schedule.route_link_ids()


def run_pseudo_routing(
    lines: Sequence[TransitLine],
    candidate_provider: CandidateProvider,
    oracle_factory: OracleFactory,
    *,
    num_threads: int | None = None,
    max_travel_cost_factor: float | None = None,
) -> list[PseudoRouter]:
    """Run one pseudo router per worker over a shared queue of ``lines``.

    Returns the routers once every worker has stopped. The error that aborted
    the queue first is re-raised after the others have finished.
    """
    workers = max(1, int(num_threads if num_threads is not None else settings.num_threads))
    queue = LineQueue(lines)
    progress = Progress(count_routes(list(lines)))
    routers = [
        PseudoRouter(
            candidate_provider,
            oracle_factory(),
            queue,
            max_travel_cost_factor=max_travel_cost_factor,
            progress=progress,
        )
        for _ in range(workers)
    ]
    log_event("pseudo_routing_started", lines=len(lines), workers=workers)
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="pseudo-router") as executor:
        futures = [executor.submit(router.run) for router in routers]
        wait(futures)
    if queue.error is not None:
        raise queue.error
    for future in futures:
        exc = future.exception()
        if exc is not None:
            raise exc
    return routers


def map_schedule(
    lines: Sequence[TransitLine],
    network: Network,
    candidate_provider: CandidateProvider,
    oracle_factory: OracleFactory,
    *,
    lanes: Lanes | None = None,
    num_threads: int | None = None,
    max_travel_cost_factor: float | None = None,
) -> MappingResult:
    started = time.monotonic()
    routers = run_pseudo_routing(
        lines,
        candidate_provider,
        oracle_factory,
        num_threads=num_threads,
        max_travel_cost_factor=max_travel_cost_factor,
    )

    result = MappingResult(pseudo_schedule=PseudoSchedule())
    for router in routers:
        result.pseudo_schedule.merge(router.pseudo_schedule)
        result.artificial_links.update(router.artificial_links)
    for router in routers:
        result.inserted_link_ids.extend(router.commit_artificial_links(network, lanes))
    result.duration_s = round(time.monotonic() - started, 6)

    log_event(
        "pseudo_routing_finished",
        routes=len(result.pseudo_schedule),
        artificial_links=len(result.artificial_links),
        inserted_links=len(result.inserted_link_ids),
        duration_s=result.duration_s,
    )
    return result
