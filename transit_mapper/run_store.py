from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from .consistency import ConsistencyReport
from .lanes import Lanes
from .logging_utils import log_event
from .mapper import MappingResult
from .settings import settings


def result_payload(
    result: MappingResult,
    *,
    consistency: ConsistencyReport | None = None,
    lanes: Lanes | None = None,
) -> dict[str, Any]:
    routes = [
        {
            "line_id": route.line_id,
            "route_id": route.route_id,
            "stop_link_ids": [stop.link_id for stop in route.stops],
            "network_link_ids": list(route.network_link_ids),
            "link_ids": route.link_sequence(),
        }
        for route in result.pseudo_schedule.routes()
    ]
    artificial_links = [
        {
            "id": link.id,
            "from_node": link.from_node,
            "to_node": link.to_node,
            "length": round(link.length, 6),
            "freespeed": link.freespeed,
            "capacity": link.capacity,
            "permlanes": link.permlanes,
            "modes": sorted(link.modes),
        }
        for link in sorted(result.artificial_links, key=lambda item: item.id)
    ]
    payload: dict[str, Any] = {
        "routes": routes,
        "artificial_links": artificial_links,
        "inserted_link_ids": list(result.inserted_link_ids),
        "duration_s": result.duration_s,
    }
    if consistency is not None:
        payload["consistency"] = consistency.as_dict()
    if lanes is not None:
        payload["lanes"] = {
            link_id: [
                {
                    "id": lane.id,
                    "to_link_ids": list(lane.to_link_ids),
                    "alignment": lane.alignment,
                    "capacity_vph": lane.capacity_vph,
                    "starts_at_meter_from_link_end": lane.starts_at_meter_from_link_end,
                    "represented_lanes": lane.represented_lanes,
                }
                for lane in assignment.lanes.values()
            ]
            for link_id, assignment in sorted(lanes.assignments.items())
        }
    return payload


def write_mapping_result(
    run_id: str,
    result: MappingResult,
    *,
    consistency: ConsistencyReport | None = None,
    lanes: Lanes | None = None,
) -> Path | None:
    """Write the mapping result as JSON; returns ``None`` when the write fails."""
    enriched = {
        "run_id": run_id,
        "created_at": datetime.now(UTC).isoformat(),
        **result_payload(result, consistency=consistency, lanes=lanes),
    }
    out_dir = Path(settings.out_dir) / "results"
    path = out_dir / f"{run_id}.json"
    try:
        out_dir.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(enriched, indent=2), encoding="utf-8")
    except OSError as exc:
        log_event(
            "mapping_output_write_failed",
            level=logging.ERROR,
            reason_code="output_write_failed",
            path=str(path),
            error=str(exc),
        )
        return None
    log_event("mapping_output_written", path=str(path), routes=len(enriched["routes"]))
    return path
