from __future__ import annotations
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from winerp.shared.utils import build_ws_url

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 2033


@dataclass(frozen=True)
class ClientConfig:
    """Connection settings for one client. Immutable once built."""
    host: str
    port: int
    local_name: str

    def __post_init__(self) -> None:
        if not self.host:
            raise ValueError("host must not be empty")
        if not self.local_name:
            raise ValueError("local_name must not be empty")
        # bool is an int; reject it explicitly
        if isinstance(self.port, bool) or not isinstance(self.port, int) or not 0 < self.port <= 65535:
            raise ValueError(f"port must be an integer in 1..65535, got {self.port!r}")

    @property
    def url(self) -> str:
        return build_ws_url(self.host, self.port)

    @classmethod
    def from_env(cls, local_name: Optional[str] = None) -> "ClientConfig":
        """Build from WINERP_HOST / WINERP_PORT / WINERP_LOCAL_NAME."""
        name = local_name or os.getenv("WINERP_LOCAL_NAME", "")
        return cls(
            host=os.getenv("WINERP_HOST", DEFAULT_HOST),
            port=_parse_port(os.getenv("WINERP_PORT", str(DEFAULT_PORT))),
            local_name=name,
        )

    @classmethod
    def from_yaml(cls, path: Path, local_name: Optional[str] = None) -> "ClientConfig":
        """
        Load from a YAML file. Keys may sit at the top level or under 'winerp':

            winerp:
              host: 127.0.0.1
              port: 2033
              local_name: dashboard

        local_name, when given, wins over the file.
        """
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{path}: expected a mapping at the top level")
        section: Dict[str, Any] = data.get("winerp", data)
        if not isinstance(section, dict):
            raise ValueError(f"{path}: 'winerp' must be a mapping")
        return cls(
            host=str(section.get("host", DEFAULT_HOST)),
            port=_parse_port(section.get("port", DEFAULT_PORT)),
            local_name=local_name or str(section.get("local_name", "")),
        )


def _parse_port(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"port must be an integer, got {value!r}")
