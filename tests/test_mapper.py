from __future__ import annotations

import pytest

from transit_mapper.link_candidates import FacilityCandidateProvider
from transit_mapper.mapper import map_schedule, run_pseudo_routing
from transit_mapper.mapping_errors import MappingError
from transit_mapper.network import Link, Network, Node
from transit_mapper.network_router import NetworkPathOracle
from transit_mapper.schedule import StopFacility, TransitLine, TransitRoute, TransitRouteStop

FACILITIES = {
    "A": StopFacility(id="A", name="Alpha", coord=(50.0, 0.0)),
    "B": StopFacility(id="B", name="Bravo", coord=(250.0, 0.0)),
    "C": StopFacility(id="C", name="Charlie", coord=(450.0, 0.0)),
    "D": StopFacility(id="D", name="Depot", coord=(250.0, 500.0)),
    "E": StopFacility(id="E", name="Nowhere", coord=(900.0, 900.0)),
}


def _corridor() -> Network:
    """Two-way corridor n0..n6 plus a detached depot stop with a loop link."""
    network = Network()
    for index in range(7):
        network.add_node(Node(id=f"n{index}", coord=(100.0 * index, 0.0)))
    for index in range(6):
        for link_id, a, b in ((f"f{index}", index, index + 1), (f"b{index}", index + 1, index)):
            network.add_link(
                Link(id=link_id, from_node=f"n{a}", to_node=f"n{b}", length=100.0, freespeed=10.0, modes=frozenset({"bus"}))
            )
    network.add_node(Node(id="d", coord=(250.0, 500.0)))
    network.add_link(Link(id="loop_d", from_node="d", to_node="d", length=0.0, freespeed=1.0, modes=frozenset({"bus"})))
    return network


def _provider(network: Network) -> FacilityCandidateProvider:
    oracle = NetworkPathOracle(network, travel_cost_type="travel_time")
    links_by_facility = {"A": ["f0", "b0"], "B": ["f2", "b2"], "C": ["f4", "b4"], "D": ["loop_d"]}
    return FacilityCandidateProvider(
        {fid: [oracle.candidate_for_link(link_id) for link_id in link_ids] for fid, link_ids in links_by_facility.items()}
    )


def _route(route_id: str, *facility_ids: str) -> TransitRoute:
    return TransitRoute(
        id=route_id,
        transport_mode="bus",
        stops=tuple(
            TransitRouteStop(facility=FACILITIES[fid], arrival_offset_s=60.0 * i, departure_offset_s=60.0 * i)
            for i, fid in enumerate(facility_ids)
        ),
    )


def _lines(count: int = 6) -> list[TransitLine]:
    lines = []
    for index in range(count):
        routes = [_route("fwd", "A", "B", "C"), _route("rev", "C", "B", "A")]
        if index % 2 == 0:
            routes.append(_route("depot", "A", "D"))
        lines.append(TransitLine(id=f"line{index}", routes=tuple(routes)))
    return lines


def _map(num_threads: int):
    network = _corridor()
    result = map_schedule(
        _lines(),
        network,
        _provider(network),
        lambda: NetworkPathOracle(network, travel_cost_type="travel_time"),
        num_threads=num_threads,
        max_travel_cost_factor=5.0,
    )
    return network, result


def test_map_schedule_picks_direction_consistent_candidates() -> None:
    network, result = _map(num_threads=2)

    links = result.route_link_ids()
    assert links[("line0", "fwd")] == ["f0", "f1", "f2", "f3", "f4"]
    assert links[("line0", "rev")] == ["b4", "b3", "b2", "b1", "b0"]
    assert links[("line0", "depot")] == ["f0", "pt_n1_d", "loop_d"]
    assert ("line1", "depot") not in links
    assert len(result.pseudo_schedule) == 6 * 2 + 3


def test_map_schedule_commits_shared_artificial_links_once() -> None:
    network, result = _map(num_threads=3)

    assert {link.id for link in result.artificial_links} == {"pt_n1_d"}
    assert result.inserted_link_ids == ["pt_n1_d"]
    link = network.links["pt_n1_d"]
    assert (link.from_node, link.to_node) == ("n1", "d")
    assert link.length == pytest.approx(((250.0 - 100.0) ** 2 + 500.0**2) ** 0.5)


def test_worker_count_does_not_change_route_optimum() -> None:
    _, single = _map(num_threads=1)
    _, many = _map(num_threads=4)

    assert single.route_link_ids() == many.route_link_ids()
    for route in single.pseudo_schedule:
        other = many.pseudo_schedule.get(route.line_id, route.route_id)
        assert other is not None
        assert [stop.link_id for stop in other.stops] == [stop.link_id for stop in route.stops]


def test_fatal_route_stops_the_whole_run() -> None:
    network = _corridor()
    lines = _lines(3) + [TransitLine(id="broken", routes=(_route("r", "A", "E"),))]

    with pytest.raises(MappingError) as exc_info:
        map_schedule(
            lines,
            network,
            _provider(network),
            lambda: NetworkPathOracle(network, travel_cost_type="travel_time"),
            num_threads=3,
        )

    assert exc_info.value.reason_code == "pseudo_graph_no_path"
    assert exc_info.value.details["line_id"] == "broken"
    assert "Nowhere" in str(exc_info.value)
    # Nothing is committed when routing fails.
    assert not any(link_id.startswith("pt_") for link_id in network.links)


def test_run_pseudo_routing_keeps_per_worker_results_disjoint() -> None:
    network = _corridor()

    routers = run_pseudo_routing(
        _lines(),
        _provider(network),
        lambda: NetworkPathOracle(network, travel_cost_type="travel_time"),
        num_threads=3,
    )

    keys = [route.key for router in routers for route in router.pseudo_schedule]
    assert len(keys) == len(set(keys)) == 15
