"""Projection settings, loadable from the ``projection`` section of a YAML file."""

from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

OUTPUTS = ("raw", "logistic", "both")


@dataclass(frozen=True)
class ProjectionConfig:
    clamp: bool = True
    chunk_size: Optional[int] = 100_000
    n_workers: int = 1
    output: str = "both"
    dtype: str = "float64"
    quiet: bool = False

    def __post_init__(self):
        if self.output not in OUTPUTS:
            raise ValueError(f"output must be one of {OUTPUTS}, got '{self.output}'")

    @classmethod
    def from_yaml(cls, config_path: Union[str, Path]) -> "ProjectionConfig":
        """Loads the ``projection`` section of a YAML configuration file."""
        with open(config_path, "r") as f:
            config = yaml.safe_load(f) or {}
        section = config.get("projection", {}) or {}
        unknown = set(section) - {f.name for f in fields(cls)}
        if unknown:
            raise ValueError(f"Unknown projection settings in {config_path}: {sorted(unknown)}")
        return cls(**section)

    def update(self, **overrides: Any) -> "ProjectionConfig":
        """Copy with the given settings replaced, skipping any that are None."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    def predict_kwargs(self) -> Dict[str, Any]:
        settings = asdict(self)
        return {key: settings[key] for key in ("clamp", "chunk_size", "n_workers", "quiet")}


def load_config(config_path: Optional[Union[str, Path]] = None) -> ProjectionConfig:
    if config_path is None:
        return ProjectionConfig()
    return ProjectionConfig.from_yaml(config_path)
