from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import AliasChoices, BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class PhaseSchedule(BaseModel):
    """Round numbers at which each elimination phase runs."""

    phase0_round: int = Field(default=6, ge=1)
    phase1_round: int = Field(default=12, ge=1)
    phase2_round: int = Field(default=24, ge=1)
    phase3_round: int = Field(default=36, ge=1)


class RunSettings(BaseSettings):
    """Settings for a single benchmark run.

    Environment variables use the ``ARENA_`` prefix, except the simulated
    start time which keeps its historical name ``SIMULATION_START_TIME``.
    """

    model_config = SettingsConfigDict(env_prefix="ARENA_", extra="ignore")

    symbol_id: str = "BINANCE_SPOT_BTC_USDT"
    seed: int = 42
    total_rounds: int = Field(default=36, ge=1)
    target_snap_count: int = Field(default=24, ge=1)
    sampling_strategy: str = "both"
    log_level: str = "INFO"
    log_dir: Path = Path("logs")
    results_dir: Path = Path("results")
    events_retention_bytes: int = Field(default=10 * 1024 * 1024, ge=1024)
    phases: PhaseSchedule = Field(default_factory=PhaseSchedule)
    simulation_start_time: Optional[datetime] = Field(
        default=None,
        validation_alias=AliasChoices("SIMULATION_START_TIME", "simulation_start_time"),
    )

    @field_validator("sampling_strategy")
    @classmethod
    def _check_strategy(cls, value: str) -> str:
        if value not in ("proximity", "balanced", "both"):
            raise ValueError(f"unknown sampling strategy {value!r}")
        return value

    @field_validator("simulation_start_time")
    @classmethod
    def _utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


def _project_root() -> Path:
    return Path(__file__).resolve().parents[2]


def _load_yaml_overrides(yaml_path: Optional[Path]) -> Dict[str, Any]:
    candidates: list[Path] = []
    if yaml_path is not None:
        candidates.append(Path(yaml_path).resolve())
    candidates.append(_project_root() / "config" / "arena.yaml")

    for path in candidates:
        if not path.exists():
            continue
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        section = data.get("arena")
        if isinstance(section, dict):
            logger.debug(f"Loaded run settings overrides from {path}")
            return section
    return {}


def load_settings(yaml_path: Optional[Path] = None, **overrides: Any) -> RunSettings:
    """Build run settings from YAML, environment and explicit overrides.

    Explicit keyword overrides win over YAML values; environment variables
    fill whatever neither sets.
    """
    merged: Dict[str, Any] = dict(_load_yaml_overrides(yaml_path))
    merged.update(overrides)
    return RunSettings(**merged)


__all__ = ["PhaseSchedule", "RunSettings", "load_settings"]
