"""Configuration loading for the dispatch grid (YAML or JSON)."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict

import yaml


@dataclass
class GridConfig:
    start_hour: int = 0
    end_hour: int = 24
    column_pixel_width: float = 120.0  # 4 quarter-hour slots * 30px
    quantum_minutes: int = 15
    min_duration_minutes: int = 15
    default_duration_minutes: int = 60


@dataclass
class PersistenceConfig:
    debounce_seconds: float = 0.5
    rollback_on_failure: bool = True


@dataclass
class DispatchConfig:
    timezone: str = "UTC"
    db_url: str = "sqlite:///dispatch.db"
    page_size: int = 10
    grid: GridConfig = field(default_factory=GridConfig)
    persistence: PersistenceConfig = field(default_factory=PersistenceConfig)


def _section(cls, raw: Dict[str, Any] | None, name: str):
    raw = raw or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Config section '{name}' must be a mapping")
    known = set(cls.__dataclass_fields__)
    unknown = set(raw) - known
    if unknown:
        raise ValueError(f"Unknown keys in '{name}': {sorted(unknown)}")
    return cls(**raw)


def validate_config(cfg: DispatchConfig) -> DispatchConfig:
    """
    Check value ranges of a loaded configuration.

    Raises:
        ValueError: If any value is out of range
    """
    g = cfg.grid
    if not 0 <= g.start_hour < g.end_hour <= 24:
        raise ValueError(f"Grid hours must satisfy 0 <= start < end <= 24, got {g.start_hour}-{g.end_hour}")
    if g.column_pixel_width <= 0:
        raise ValueError("grid.column_pixel_width must be positive")
    if g.quantum_minutes <= 0 or 60 % g.quantum_minutes != 0:
        raise ValueError("grid.quantum_minutes must divide an hour")
    if g.min_duration_minutes < g.quantum_minutes:
        raise ValueError("grid.min_duration_minutes must be at least one quantum")
    if g.default_duration_minutes < g.min_duration_minutes:
        raise ValueError("grid.default_duration_minutes must be at least the minimum duration")

    p = cfg.persistence
    if not 0 < p.debounce_seconds <= 5:
        raise ValueError("persistence.debounce_seconds must be in (0, 5]")

    if cfg.page_size <= 0:
        raise ValueError("page_size must be positive")
    return cfg


def load_config(path: str | Path) -> DispatchConfig:
    """
    Load configuration from a YAML or JSON file.

    Missing keys take their defaults.

    Args:
        path: Path to a .yaml/.yml or .json file

    Returns:
        Validated DispatchConfig
    """
    path = Path(path)
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        raw = json.loads(text)
    else:
        raw = yaml.safe_load(text)
    raw = raw or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Config file {path} must contain a mapping")

    raw = dict(raw)
    grid = _section(GridConfig, raw.pop("grid", None), "grid")
    persistence = _section(PersistenceConfig, raw.pop("persistence", None), "persistence")
    top = _section(DispatchConfig, raw, "root")
    top.grid = grid
    top.persistence = persistence
    return validate_config(top)
