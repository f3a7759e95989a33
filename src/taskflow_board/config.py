"""Load optional board configuration from `.taskflow/config.yaml`."""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Mapping, Optional

from .constants import (
    CONFIG_FILE,
    DEFAULT_ACTIVITY_CAPACITY,
    DEFAULT_REBALANCE_EPSILON,
    DEFAULT_WRITE_ATTEMPTS,
    ORDER_GAP,
    STATE_DIR_NAME,
    STORAGE_BACKENDS,
    STORAGE_ENV_VAR,
)
from .io_utils import _load_yaml_with_error


@dataclass(frozen=True)
class BoardConfig:
    """Tunables for the board engine and its persistence layer."""

    order_gap: float = float(ORDER_GAP)
    activity_capacity: int = DEFAULT_ACTIVITY_CAPACITY
    rebalance_epsilon: float = DEFAULT_REBALANCE_EPSILON
    write_attempts: int = DEFAULT_WRITE_ATTEMPTS
    storage: str = "file"

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "BoardConfig":
        """Build a config from a loose mapping, ignoring unusable values."""
        defaults = cls()
        values: dict[str, Any] = {}
        for f in fields(cls):
            value = raw.get(f.name)
            if value is None:
                continue
            default = getattr(defaults, f.name)
            try:
                coerced = type(default)(value)
            except (TypeError, ValueError):
                continue
            values[f.name] = coerced

        if values.get("order_gap", 1) <= 0:
            values.pop("order_gap")
        if values.get("activity_capacity", 1) < 1:
            values.pop("activity_capacity")
        if values.get("rebalance_epsilon", 0) < 0:
            values.pop("rebalance_epsilon")
        if values.get("write_attempts", 1) < 1:
            values.pop("write_attempts")
        if values.get("storage", "file") not in STORAGE_BACKENDS:
            values.pop("storage")
        return cls(**values)


def load_board_config(
    project_dir: Path,
    env: Optional[Mapping[str, str]] = None,
) -> tuple[BoardConfig, str | None]:
    """Load the optional board config file.

    Args:
        project_dir: Directory that owns the `.taskflow/` state directory.
        env: Environment mapping (defaults to `os.environ`).

    Returns:
        A tuple of `(config, error_message)`. A missing file yields defaults and
        no error; a corrupt file yields defaults and the parse error.
    """
    env = os.environ if env is None else env
    path = project_dir.resolve() / STATE_DIR_NAME / CONFIG_FILE
    data, err = _load_yaml_with_error(path, {})

    raw = {} if err else dict(data)
    override = env.get(STORAGE_ENV_VAR)
    if override:
        raw["storage"] = override.strip().lower()
    return BoardConfig.from_mapping(raw), err
