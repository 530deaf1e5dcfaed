from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Protocol

from .network import Coord, Link, Network
from .schedule import TransitLine, TransitRoute, TransitRouteStop


@dataclass(frozen=True, eq=False)
class LinkCandidate:
    """A network link proposed to serve one stop.

    Two candidates are equal when they point at the same network link.
    """

    link_id: str
    from_node: str
    to_node: str
    from_coord: Coord
    to_coord: Coord
    cost: float
    is_loop_link: bool = False

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LinkCandidate):
            return NotImplemented
        return self.link_id == other.link_id

    def __hash__(self) -> int:
        return hash(self.link_id)

    @classmethod
    def from_link(cls, network: Network, link: Link, *, cost: float) -> "LinkCandidate":
        return cls(
            link_id=link.id,
            from_node=link.from_node,
            to_node=link.to_node,
            from_coord=network.nodes[link.from_node].coord,
            to_coord=network.nodes[link.to_node].coord,
            cost=float(cost),
            is_loop_link=link.from_node == link.to_node,
        )


class CandidateProvider(Protocol):
    def candidates_for(
        self,
        stop: TransitRouteStop,
        line: TransitLine,
        route: TransitRoute,
    ) -> Sequence[LinkCandidate]: ...


class FacilityCandidateProvider:
    """Candidates looked up by stop facility id, in insertion order."""

    def __init__(self, candidates_by_facility: Mapping[str, Sequence[LinkCandidate]]) -> None:
        self._candidates: dict[str, tuple[LinkCandidate, ...]] = {}
        for facility_id, candidates in candidates_by_facility.items():
            unique: dict[str, LinkCandidate] = {}
            for candidate in candidates:
                unique.setdefault(candidate.link_id, candidate)
            self._candidates[str(facility_id)] = tuple(unique.values())

    def candidates_for(
        self,
        stop: TransitRouteStop,
        line: TransitLine,
        route: TransitRoute,
    ) -> tuple[LinkCandidate, ...]:
        return self._candidates.get(stop.facility.id, ())
