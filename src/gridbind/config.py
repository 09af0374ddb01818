from __future__ import annotations

from collections.abc import Mapping
import json
import os
from pathlib import Path

from pydantic import BaseModel, Field

ENV_REGISTRY = "GRIDBIND_REGISTRY"
ENV_LOG_LEVEL = "GRIDBIND_LOG_LEVEL"


def _default_registry_path() -> Path:
    return Path.home() / ".gridbind" / "registry.json"


class GridBindConfig(BaseModel):
    """Settings shared by the CLI commands."""

    registry_path: Path = Field(
        default_factory=_default_registry_path, description="Binding registry JSON file."
    )
    connections: dict[str, str] = Field(
        default_factory=dict, description="Connection id to SQLAlchemy URL."
    )
    log_level: str = Field(default="INFO", description="Logging level.")
    log_file: Path | None = Field(default=None, description="Optional log file path.")
    compatibility_mode: bool = Field(
        default=False, description="Use legacy 65,536 x 256 grid limits."
    )
    table_style: str = Field(default="TableStyleMedium2", description="Table style name.")


def load_config(
    path: Path | None = None, *, environ: Mapping[str, str] | None = None
) -> GridBindConfig:
    """Load configuration from an optional JSON file and the environment.

    Environment variables take precedence over the file.

    Args:
        path: JSON file with ``GridBindConfig`` fields.
        environ: Environment mapping (defaults to ``os.environ``).

    Returns:
        Validated configuration.

    Raises:
        FileNotFoundError: If ``path`` is given but missing.
        pydantic.ValidationError: If the file holds invalid settings.
    """
    env = os.environ if environ is None else environ
    data: dict[str, object] = {}
    if path is not None:
        data.update(json.loads(path.read_text(encoding="utf-8")))
    if env.get(ENV_REGISTRY):
        data["registry_path"] = env[ENV_REGISTRY]
    if env.get(ENV_LOG_LEVEL):
        data["log_level"] = env[ENV_LOG_LEVEL]
    return GridBindConfig.model_validate(data)


__all__ = ["ENV_LOG_LEVEL", "ENV_REGISTRY", "GridBindConfig", "load_config"]
