from __future__ import annotations

from dataclasses import dataclass

from .network import Coord


@dataclass(frozen=True)
class StopFacility:
    id: str
    name: str
    coord: Coord


@dataclass(frozen=True)
class TransitRouteStop:
    facility: StopFacility
    arrival_offset_s: float | None = None
    departure_offset_s: float | None = None

    @property
    def name(self) -> str:
        return self.facility.name


@dataclass(frozen=True)
class TransitRoute:
    id: str
    transport_mode: str
    stops: tuple[TransitRouteStop, ...]


@dataclass(frozen=True)
class TransitLine:
    id: str
    routes: tuple[TransitRoute, ...]


def count_routes(lines: tuple[TransitLine, ...] | list[TransitLine]) -> int:
    return sum(len(line.routes) for line in lines)
