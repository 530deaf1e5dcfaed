from __future__ import annotations

from dataclasses import replace

from pydantic import BaseModel, Field, model_validator

from .lanes import Lane, Lanes
from .link_candidates import FacilityCandidateProvider, LinkCandidate
from .network import Link, Network, Node
from .network_router import NetworkPathOracle
from .schedule import StopFacility, TransitLine, TransitRoute, TransitRouteStop


class NodePayload(BaseModel):
    id: str
    x: float
    y: float


class LinkPayload(BaseModel):
    id: str
    from_node: str
    to_node: str
    length: float = Field(..., ge=0.0)
    freespeed: float = Field(..., gt=0.0)
    capacity: float = Field(default=9999.0, gt=0.0)
    permlanes: float = Field(default=1.0, gt=0.0)
    modes: list[str] = Field(default_factory=list)


class NetworkPayload(BaseModel):
    nodes: list[NodePayload] = Field(default_factory=list)
    links: list[LinkPayload] = Field(default_factory=list)

    @model_validator(mode="after")
    def links_reference_known_nodes(self) -> "NetworkPayload":
        node_ids = {node.id for node in self.nodes}
        for link in self.links:
            for node_id in (link.from_node, link.to_node):
                if node_id not in node_ids:
                    raise ValueError(f"link {link.id!r} references unknown node {node_id!r}")
        return self


class StopFacilityPayload(BaseModel):
    id: str
    name: str = ""
    x: float
    y: float


class RouteStopPayload(BaseModel):
    facility_id: str
    arrival_offset_s: float | None = None
    departure_offset_s: float | None = None


class RoutePayload(BaseModel):
    id: str
    transport_mode: str = "bus"
    stops: list[RouteStopPayload] = Field(default_factory=list)


class LinePayload(BaseModel):
    id: str
    routes: list[RoutePayload] = Field(default_factory=list)


class CandidatePayload(BaseModel):
    link_id: str
    # Defaults to the link's travel cost under the configured cost type.
    cost: float | None = None


class LanePayload(BaseModel):
    id: str
    to_link_ids: list[str] = Field(default_factory=list)
    alignment: int = 0
    capacity_vph: float = Field(default=1800.0, gt=0.0)
    starts_at_meter_from_link_end: float = Field(default=0.0, ge=0.0)
    represented_lanes: float = Field(default=1.0, gt=0.0)


class LaneAssignmentPayload(BaseModel):
    link_id: str
    lanes: list[LanePayload] = Field(default_factory=list)


class MappingProblem(BaseModel):
    """A network, an unmapped schedule and the link candidates of each stop facility."""

    network: NetworkPayload
    stop_facilities: list[StopFacilityPayload] = Field(default_factory=list)
    lines: list[LinePayload] = Field(default_factory=list)
    candidates: dict[str, list[CandidatePayload]] = Field(default_factory=dict)
    network_modes: dict[str, list[str]] = Field(default_factory=dict)
    lanes: list[LaneAssignmentPayload] | None = None

    @model_validator(mode="after")
    def references_resolve(self) -> "MappingProblem":
        facility_ids = {facility.id for facility in self.stop_facilities}
        link_ids = {link.id for link in self.network.links}
        for line in self.lines:
            for route in line.routes:
                for stop in route.stops:
                    if stop.facility_id not in facility_ids:
                        raise ValueError(
                            f"route {route.id!r} on line {line.id!r} references unknown stop facility "
                            f"{stop.facility_id!r}"
                        )
        for facility_id, rows in self.candidates.items():
            if facility_id not in facility_ids:
                raise ValueError(f"candidates given for unknown stop facility {facility_id!r}")
            for row in rows:
                if row.link_id not in link_ids:
                    raise ValueError(f"candidate link {row.link_id!r} of {facility_id!r} is not in the network")
        return self

    def to_network(self) -> Network:
        network = Network()
        for node in self.network.nodes:
            network.add_node(Node(id=node.id, coord=(node.x, node.y)))
        for link in self.network.links:
            network.add_link(
                Link(
                    id=link.id,
                    from_node=link.from_node,
                    to_node=link.to_node,
                    length=link.length,
                    freespeed=link.freespeed,
                    capacity=link.capacity,
                    permlanes=link.permlanes,
                    modes=frozenset(link.modes),
                )
            )
        return network

    def to_lines(self) -> list[TransitLine]:
        facilities = {
            facility.id: StopFacility(id=facility.id, name=facility.name or facility.id, coord=(facility.x, facility.y))
            for facility in self.stop_facilities
        }
        return [
            TransitLine(
                id=line.id,
                routes=tuple(
                    TransitRoute(
                        id=route.id,
                        transport_mode=route.transport_mode,
                        stops=tuple(
                            TransitRouteStop(
                                facility=facilities[stop.facility_id],
                                arrival_offset_s=stop.arrival_offset_s,
                                departure_offset_s=stop.departure_offset_s,
                            )
                            for stop in route.stops
                        ),
                    )
                    for route in line.routes
                ),
            )
            for line in self.lines
        ]

    def to_lanes(self) -> Lanes | None:
        if self.lanes is None:
            return None
        lanes = Lanes()
        for row in self.lanes:
            assignment = lanes.get_or_create(row.link_id)
            for lane in row.lanes:
                assignment.add_lane(Lane(**lane.model_dump()))
        return lanes

    def oracle_factory(self, network: Network, *, travel_cost_type: str | None = None):
        modes = {mode: set(allowed) for mode, allowed in self.network_modes.items()}

        def _factory() -> NetworkPathOracle:
            return NetworkPathOracle(network, travel_cost_type=travel_cost_type, network_modes=modes)

        return _factory

    def to_candidate_provider(self, oracle: NetworkPathOracle) -> FacilityCandidateProvider:
        by_facility: dict[str, list[LinkCandidate]] = {}
        for facility_id, rows in self.candidates.items():
            resolved: list[LinkCandidate] = []
            for row in rows:
                candidate = oracle.candidate_for_link(row.link_id)
                if row.cost is not None:
                    candidate = replace(candidate, cost=float(row.cost))
                resolved.append(candidate)
            by_facility[facility_id] = resolved
        return FacilityCandidateProvider(by_facility)
