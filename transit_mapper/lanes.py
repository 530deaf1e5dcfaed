from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, field

from .network import Link, Network
from .settings import settings


@dataclass
class Lane:
    id: str
    to_link_ids: list[str] = field(default_factory=list)
    alignment: int = 0
    capacity_vph: float = 1800.0
    starts_at_meter_from_link_end: float = 0.0
    represented_lanes: float = 1.0


@dataclass
class LanesToLinkAssignment:
    link_id: str
    lanes: dict[str, Lane] = field(default_factory=dict)

    def add_lane(self, lane: Lane) -> Lane:
        self.lanes.setdefault(lane.id, lane)
        return self.lanes[lane.id]

    def connects_to(self, link_id: str) -> bool:
        return any(link_id in lane.to_link_ids for lane in self.lanes.values())


class Lanes:
    """Lane assignments keyed by inbound link id."""

    def __init__(self) -> None:
        self.assignments: dict[str, LanesToLinkAssignment] = {}

    def get(self, link_id: str) -> LanesToLinkAssignment | None:
        return self.assignments.get(link_id)

    def get_or_create(self, link_id: str) -> LanesToLinkAssignment:
        assignment = self.assignments.get(link_id)
        if assignment is None:
            assignment = LanesToLinkAssignment(link_id=link_id)
            self.assignments[link_id] = assignment
        return assignment

    def __contains__(self, link_id: object) -> bool:
        return link_id in self.assignments


def turning_angle(network: Network, in_link: Link, out_link: Link) -> float:
    """Signed angle in degrees between two link directions, in (-180, 180]."""
    x1, y1 = network.link_vector(in_link)
    x2, y2 = network.link_vector(out_link)
    dot = x1 * x2 + y1 * y2
    det = x1 * y2 - y1 * x2
    angle = math.degrees(math.atan2(det, dot))
    if angle <= -180.0:
        angle = 180.0
    return angle


def alignment_range(count: int) -> range:
    if count % 2 == 0:
        return range(-count // 2, count // 2)
    return range(-(count - 1) // 2, (count - 1) // 2 + 1)


def order_to_links(
    network: Network,
    in_link: Link,
    restrictions: Mapping[str, int] | None = None,
) -> dict[str, int]:
    """Alignment index per outbound link of ``in_link``'s downstream node.

    Outbound links are sorted by turning angle and numbered with a contiguous
    range centred on zero. With ``restrictions`` only links mapped to a
    non-zero value are ordered.
    """
    angles: list[tuple[str, float]] = []
    for out_link in network.out_links(in_link.to_node):
        if restrictions is not None and not restrictions.get(out_link.id):
            continue
        angles.append((out_link.id, turning_angle(network, in_link, out_link)))
    angles.sort(key=lambda item: item[1])
    return {link_id: index for (link_id, _angle), index in zip(angles, alignment_range(len(angles)))}


def lane_id_for(in_link: Link, out_link: Link) -> str:
    return f"{in_link.from_node}-{in_link.to_node}-{out_link.to_node}"


def ensure_turn_lanes(network: Network, lanes: Lanes, node_id: str) -> list[str]:
    """Give every inbound link at ``node_id`` a lane towards every outbound link.

    Nothing happens unless at least one inbound link already carries a lane
    assignment. Returns the ids of lanes created.
    """
    in_links = network.in_links(node_id)
    if not any(link.id in lanes for link in in_links):
        return []
    created: list[str] = []
    for in_link in in_links:
        assignment = lanes.get_or_create(in_link.id)
        order = order_to_links(network, in_link)
        for out_link in network.out_links(in_link.to_node):
            lane_id = lane_id_for(in_link, out_link)
            if lane_id in assignment.lanes:
                continue
            assignment.add_lane(
                Lane(
                    id=lane_id,
                    to_link_ids=[out_link.id],
                    alignment=order.get(out_link.id, 0),
                    capacity_vph=float(settings.lane_capacity_per_lane_vph) * float(out_link.permlanes),
                    starts_at_meter_from_link_end=float(settings.lane_starts_at_meter_from_link_end),
                    represented_lanes=float(out_link.permlanes),
                )
            )
            created.append(lane_id)
    return created
