from __future__ import annotations

from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_out_dir() -> str:
    # Keep run artifacts next to the checkout by default.
    return str(Path.cwd() / "out")


class Settings(BaseSettings):
    """Validated settings (env-driven), keeping mapping parameters out of code."""

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    out_dir: str = Field(default_factory=_default_out_dir, alias="OUT_DIR")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Pseudo-routing
    max_travel_cost_factor: float = Field(default=5.0, ge=1.0, alias="MAX_TRAVEL_COST_FACTOR")
    num_threads: int = Field(default=2, ge=1, le=256, alias="NUM_THREADS")
    travel_cost_type: str = Field(default="travel_time", alias="TRAVEL_COST_TYPE")
    progress_log_step_pct: float = Field(default=10.0, gt=0.0, le=100.0, alias="PROGRESS_LOG_STEP_PCT")

    # Artificial links
    artificial_link_freespeed: float = Field(default=1.0, gt=0.0, alias="ARTIFICIAL_LINK_FREESPEED")
    artificial_link_capacity: float = Field(default=9999.0, gt=0.0, alias="ARTIFICIAL_LINK_CAPACITY")
    artificial_link_permlanes: float = Field(default=1.0, gt=0.0, alias="ARTIFICIAL_LINK_PERMLANES")
    artificial_link_mode: str = Field(default="artificial", alias="ARTIFICIAL_LINK_MODE")

    # Lanes
    lane_capacity_per_lane_vph: float = Field(default=1800.0, gt=0.0, alias="LANE_CAPACITY_PER_LANE_VPH")
    lane_starts_at_meter_from_link_end: float = Field(
        default=100.0,
        ge=0.0,
        alias="LANE_STARTS_AT_METER_FROM_LINK_END",
    )
    repair_lane_starts_at_meter_from_link_end: float = Field(
        default=50.0,
        ge=0.0,
        alias="REPAIR_LANE_STARTS_AT_METER_FROM_LINK_END",
    )

    @model_validator(mode="after")
    def _normalize_travel_cost_type(self) -> "Settings":
        kind = str(self.travel_cost_type or "travel_time").strip().lower()
        if kind not in {"travel_time", "link_length"}:
            kind = "travel_time"
        self.travel_cost_type = kind
        return self


settings = Settings()
