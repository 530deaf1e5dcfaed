from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from .lanes import Lane, Lanes
from .logging_utils import log_event
from .network import Network
from .settings import settings


@dataclass(frozen=True)
class ConsistencyReport:
    wrong_routes: int
    missing_links: int
    missing_connections: int
    checked_connections: int

    def as_dict(self) -> dict[str, int]:
        return {
            "wrong_routes": self.wrong_routes,
            "missing_links": self.missing_links,
            "missing_connections": self.missing_connections,
            "checked_connections": self.checked_connections,
        }


def check_consistency(
    network: Network,
    route_links: Mapping[tuple[str, str], Sequence[str]],
    lanes: Lanes | None = None,
) -> ConsistencyReport:
    """Verify mapped routes against the network and lane topology.

    A link missing from the network counts once per occurrence. When ``lanes``
    is given, a link with lane assignments that has no lane towards the next
    link of the route gets a single repair lane.
    """
    wrong_routes = 0
    missing_links = 0
    missing_connections = 0
    checked = 0
    for (line_id, route_id), link_ids in route_links.items():
        problem = False
        for index, link_id in enumerate(link_ids):
            if link_id not in network.links:
                log_event(
                    "route_link_missing",
                    level=logging.ERROR,
                    line_id=line_id,
                    route_id=route_id,
                    link_id=link_id,
                )
                missing_links += 1
                problem = True
            if lanes is None or index >= len(link_ids) - 1:
                continue
            assignment = lanes.get(link_id)
            if assignment is None:
                continue
            checked += 1
            next_link_id = link_ids[index + 1]
            if assignment.connects_to(next_link_id):
                continue
            log_event(
                "route_lane_connection_missing",
                level=logging.ERROR,
                line_id=line_id,
                route_id=route_id,
                link_id=link_id,
                next_link_id=next_link_id,
            )
            assignment.add_lane(
                Lane(
                    id=f"{link_id}_{next_link_id}",
                    to_link_ids=[next_link_id],
                    capacity_vph=float(settings.lane_capacity_per_lane_vph),
                    starts_at_meter_from_link_end=float(settings.repair_lane_starts_at_meter_from_link_end),
                    represented_lanes=1.0,
                )
            )
            missing_connections += 1
            problem = True
        if problem:
            wrong_routes += 1
    return ConsistencyReport(
        wrong_routes=wrong_routes,
        missing_links=missing_links,
        missing_connections=missing_connections,
        checked_connections=checked,
    )
