"""Configuration loading and merging for the lobby."""

from dataclasses import dataclass, fields
from pathlib import Path

import yaml

from .registry import SERVER_EXPIRY_SECONDS


@dataclass
class LobbyConfig:
    # HTTP API bind address
    host: str = "0.0.0.0"
    port: int = 8080

    # Seconds without a renewing registration before a server is evicted
    ttl_seconds: int = SERVER_EXPIRY_SECONDS

    # Take the registering IP from X-Forwarded-For (only behind a trusted proxy)
    trust_proxy_headers: bool = False

    # Seconds between re-registrations sent by `spp-lobby announce`
    announce_interval: int = 60


def load_config(path: str | Path) -> LobbyConfig:
    """Load a LobbyConfig from a YAML file."""
    path = Path(path)
    with open(path) as f:
        data = yaml.safe_load(f) or {}

    valid_fields = {f.name for f in fields(LobbyConfig)}
    filtered = {k: v for k, v in data.items() if k in valid_fields}
    return LobbyConfig(**filtered)


def merge_cli_args(config: LobbyConfig, args) -> LobbyConfig:
    """Overlay CLI arguments onto an existing config. CLI values take precedence."""
    for f in fields(LobbyConfig):
        cli_val = getattr(args, f.name, None)
        if cli_val is not None:
            setattr(config, f.name, cli_val)
    return config


def config_to_yaml(config: LobbyConfig) -> str:
    """Serialize a LobbyConfig to YAML."""
    data = {f.name: getattr(config, f.name) for f in fields(LobbyConfig)}
    return yaml.dump(data, default_flow_style=False, sort_keys=False)
