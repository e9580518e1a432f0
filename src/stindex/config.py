from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import ConfigError, ConfigurationError
from .granularity import Granularity, parse_granularity

# Record types accepted by the index manager; only spatio-temporal points are indexable.
SPATIO_TEMPORAL_SHAPES = {"stpoint"}

CONFIG_SECTION = "stindex"


def load_config(path: Path) -> Dict[str, Any]:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Config file not found: {p}")
    try:
        data = yaml.safe_load(p.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse YAML at {p}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config at {p} must be a mapping, got {type(data).__name__}")
    return data


class RunConfig(BaseModel):
    # Required
    dataset_path: Path
    index_root: Path
    granularity: Granularity
    shape: str

    # Optional
    overwrite: bool = False
    workers: int = Field(default=1, ge=1)
    slice_command: Optional[List[str]] = None
    index_command: Optional[List[str]] = None
    command_timeout_s: Optional[float] = Field(default=None, gt=0)
    max_retries: int = Field(default=0, ge=0)
    retry_backoff_s: float = Field(default=2.0, ge=0)
    report_path: Optional[Path] = None

    @field_validator("granularity", mode="before")
    @classmethod
    def _granularity_known(cls, v: Any) -> Granularity:
        # pydantic only collects ValueError/AssertionError as field errors.
        try:
            return parse_granularity(v)
        except ConfigurationError as exc:
            raise ValueError(str(exc)) from exc

    @field_validator("shape")
    @classmethod
    def _shape_spatio_temporal(cls, v: str) -> str:
        shape = v.strip().lower()
        if shape not in SPATIO_TEMPORAL_SHAPES:
            raise ValueError(f"shape must be a spatio-temporal point type (stpoint), got {v!r}")
        return shape

    @field_validator("slice_command", "index_command")
    @classmethod
    def _command_not_empty(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        if v is not None and not v:
            raise ValueError("command must contain at least the executable")
        return v

    @classmethod
    def from_mapping(
        cls,
        data: Mapping[str, Any] | None,
        overrides: Mapping[str, Any] | None = None,
    ) -> "RunConfig":
        """
        Build a validated run config from a loaded YAML mapping (either flat or
        nested under `stindex:`) plus CLI overrides. None-valued overrides are
        ignored so unset flags do not mask file values.
        """
        base: Dict[str, Any] = dict(data or {})
        if isinstance(base.get(CONFIG_SECTION), dict):
            base = dict(base[CONFIG_SECTION])
        for k, v in (overrides or {}).items():
            if v is not None:
                base[k] = v
        try:
            return cls.model_validate(base)
        except ValidationError as exc:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
                for err in exc.errors()
            )
            raise ConfigurationError(f"Invalid run configuration: {problems}") from exc
