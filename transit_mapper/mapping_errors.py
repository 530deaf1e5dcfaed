from __future__ import annotations

from dataclasses import dataclass
from typing import Any

FROZEN_REASON_CODES: frozenset[str] = frozenset(
    {
        "pseudo_graph_no_path",
        "route_without_stops",
        "network_node_unknown",
        "network_link_duplicate",
        "mapping_input_invalid",
        "output_write_failed",
    }
)


@dataclass
class MappingError(ValueError):
    reason_code: str
    message: str
    details: dict[str, Any] | None = None

    def __str__(self) -> str:
        return self.message


def normalize_reason_code(reason_code: str, *, default: str = "mapping_input_invalid") -> str:
    code = str(reason_code or "").strip()
    if code in FROZEN_REASON_CODES:
        return code
    return default
