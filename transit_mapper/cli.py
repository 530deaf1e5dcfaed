from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Sequence

from pydantic import ValidationError

from .consistency import check_consistency
from .logging_utils import log_event
from .mapper import map_schedule
from .mapping_errors import MappingError, normalize_reason_code
from .models import MappingProblem
from .run_store import write_mapping_result
from .settings import settings


def _utc_now_compact() -> str:
    return datetime.now(UTC).strftime("%Y%m%dT%H%M%SZ")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Map an unmapped transit schedule onto a network via pseudo-routing."
    )
    parser.add_argument("--input", required=True, help="JSON mapping problem")
    parser.add_argument("--threads", type=int, default=None)
    parser.add_argument("--max-travel-cost-factor", type=float, default=None)
    parser.add_argument("--travel-cost-type", choices=("travel_time", "link_length"), default=None)
    parser.add_argument("--run-id", default=None)
    parser.add_argument("--out-dir", default=None)
    return parser


def load_problem(path: str) -> MappingProblem:
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise MappingError(
            reason_code="mapping_input_invalid",
            message=f"cannot read mapping problem {path!r}: {exc}",
            details={"path": path},
        ) from exc
    try:
        return MappingProblem.model_validate(raw)
    except ValidationError as exc:
        raise MappingError(
            reason_code="mapping_input_invalid",
            message=f"invalid mapping problem {path!r}: {exc.error_count()} error(s)",
            details={"path": path, "errors": exc.errors(include_url=False)},
        ) from exc


def run_mapping(
    problem: MappingProblem,
    *,
    run_id: str,
    threads: int | None = None,
    max_travel_cost_factor: float | None = None,
    travel_cost_type: str | None = None,
) -> dict[str, Any]:
    network = problem.to_network()
    lanes = problem.to_lanes()
    lines = problem.to_lines()
    oracle_factory = problem.oracle_factory(network, travel_cost_type=travel_cost_type)
    provider = problem.to_candidate_provider(oracle_factory())

    result = map_schedule(
        lines,
        network,
        provider,
        oracle_factory,
        lanes=lanes,
        num_threads=threads,
        max_travel_cost_factor=max_travel_cost_factor,
    )
    consistency = check_consistency(network, result.route_link_ids(), lanes)
    path = write_mapping_result(run_id, result, consistency=consistency, lanes=lanes)
    return {
        "run_id": run_id,
        "routes": len(result.pseudo_schedule),
        "artificial_links": len(result.artificial_links),
        "inserted_links": len(result.inserted_link_ids),
        "consistency": consistency.as_dict(),
        "result_path": str(path) if path is not None else None,
    }


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    if args.out_dir:
        settings.out_dir = args.out_dir
    run_id = args.run_id or f"mapping_{_utc_now_compact()}"
    try:
        problem = load_problem(args.input)
        summary = run_mapping(
            problem,
            run_id=run_id,
            threads=args.threads,
            max_travel_cost_factor=args.max_travel_cost_factor,
            travel_cost_type=args.travel_cost_type,
        )
    except MappingError as exc:
        log_event(
            "mapping_failed",
            level=logging.ERROR,
            reason_code=normalize_reason_code(exc.reason_code),
            error=exc.message,
        )
        print(f"error [{exc.reason_code}]: {exc.message}", file=sys.stderr)
        return 2
    print(json.dumps(summary, indent=2))
    return 0 if summary["result_path"] is not None else 1


if __name__ == "__main__":
    raise SystemExit(main())
