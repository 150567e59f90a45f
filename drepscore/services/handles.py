"""
Handle resolution - human-readable names ($handle) for DRep ids.

The orchestrator only depends on the `resolve(rep_ids) -> {rep_id: handle}`
shape; StaticHandleResolver serves a YAML mapping maintained by hand:

    # handles.yaml
    drep1abc...: "$alice"
    drep1def...: "$bob"
"""

from pathlib import Path
from typing import Mapping, Optional, Protocol, Sequence

import yaml

from ..errors import ConfigError


class HandleResolver(Protocol):
    def resolve(self, rep_ids: Sequence[str]) -> dict[str, str]: ...


class StaticHandleResolver:
    """Resolve handles from a fixed mapping."""

    def __init__(self, handles: Optional[Mapping[str, str]] = None):
        self.handles = dict(handles or {})

    @classmethod
    def from_yaml(cls, path: str | Path) -> "StaticHandleResolver":
        """
        Load a drep_id → handle mapping.

        Raises:
            ConfigError: file missing, unparseable or not a string mapping
        """
        path = Path(path)
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except OSError as e:
            raise ConfigError(f"Cannot read handles file {path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in handles file {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"Handles file {path} must be a mapping of drep_id to handle")
        bad = [k for k, v in data.items() if not isinstance(k, str) or not isinstance(v, str)]
        if bad:
            raise ConfigError(f"Handles file {path} has non-string entries: {bad[:3]}")
        return cls(data)

    def resolve(self, rep_ids: Sequence[str]) -> dict[str, str]:
        return {rep_id: self.handles[rep_id] for rep_id in rep_ids if self.handles.get(rep_id)}
