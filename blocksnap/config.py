"""Configuration loader: reads config.yaml, interpolates env vars, validates."""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Frozen config dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LocatorConfig:
    """Search and retry budget. ``tolerance_seconds=None`` means one block."""

    tolerance_seconds: float | None = None
    max_iterations: int = 6
    rpc_timeout: float = 5.0
    fetch_attempts: int = 3
    batch_attempts: int = 3
    retry_backoff_seconds: float = 0.5


@dataclass(frozen=True)
class NetworkConfig:
    chain_id: int = 0
    name: str = ""
    average_block_time_seconds: float | None = None
    rpc_endpoints: tuple[str, ...] = ()
    contracts: dict[str, str] = field(default_factory=dict)
    locator: LocatorConfig = field(default_factory=LocatorConfig)


@dataclass(frozen=True)
class ApiConfig:
    host: str = "127.0.0.1"
    port: int = 8080


@dataclass(frozen=True)
class AppConfig:
    locator: LocatorConfig = field(default_factory=LocatorConfig)
    networks: dict[str, NetworkConfig] = field(default_factory=dict)
    api: ApiConfig = field(default_factory=ApiConfig)

    def network_by_chain_id(self, chain_id: int) -> NetworkConfig | None:
        for network in self.networks.values():
            if network.chain_id == chain_id:
                return network
        return None


# ---------------------------------------------------------------------------
# Env interpolation
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)}")


def _interpolate_env(value: Any) -> Any:
    """Recursively replace ${VAR} references with environment variable values."""
    if isinstance(value, str):
        return _ENV_VAR_RE.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {k: _interpolate_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_interpolate_env(item) for item in value]
    return value


# ---------------------------------------------------------------------------
# YAML → dataclass builders
# ---------------------------------------------------------------------------


def _optional_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    return float(value)


def _build_locator(raw: dict[str, Any], base: LocatorConfig) -> LocatorConfig:
    tolerance = raw.get("tolerance_seconds", base.tolerance_seconds)
    return LocatorConfig(
        tolerance_seconds=_optional_float(tolerance),
        max_iterations=int(raw.get("max_iterations", base.max_iterations)),
        rpc_timeout=float(raw.get("rpc_timeout", base.rpc_timeout)),
        fetch_attempts=int(raw.get("fetch_attempts", base.fetch_attempts)),
        batch_attempts=int(raw.get("batch_attempts", base.batch_attempts)),
        retry_backoff_seconds=float(
            raw.get("retry_backoff_seconds", base.retry_backoff_seconds)
        ),
    )


def _build_networks(
    raw: dict[str, Any], defaults: LocatorConfig
) -> dict[str, NetworkConfig]:
    networks: dict[str, NetworkConfig] = {}
    for name, cfg in raw.items():
        endpoints = [url for url in cfg.get("rpc_endpoints", []) if url]
        networks[name] = NetworkConfig(
            chain_id=int(cfg.get("chain_id", 0)),
            name=name,
            average_block_time_seconds=_optional_float(
                cfg.get("average_block_time_seconds")
            ),
            rpc_endpoints=tuple(endpoints),
            contracts={k: str(v) for k, v in cfg.get("contracts", {}).items()},
            locator=_build_locator(cfg.get("locator", {}), defaults),
        )
    return networks


def _build_api(raw: dict[str, Any]) -> ApiConfig:
    return ApiConfig(
        host=raw.get("host", ApiConfig.host),
        port=int(raw.get("port", ApiConfig.port)),
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Load and validate application configuration from YAML + .env.

    Args:
        config_path: Path to config.yaml. Defaults to ``config.yaml`` in the
            project root (one level up from this package).
    """
    load_dotenv()

    if config_path is None:
        config_path = Path(__file__).resolve().parent.parent / "config.yaml"
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    raw = _interpolate_env(raw)

    locator = _build_locator(raw.get("locator", {}), LocatorConfig())
    cfg = AppConfig(
        locator=locator,
        networks=_build_networks(raw.get("networks", {}), locator),
        api=_build_api(raw.get("api", {})),
    )

    _validate(cfg)
    logger.info("Configuration loaded from %s", config_path)
    return cfg


def _validate_locator(label: str, locator: LocatorConfig) -> None:
    if locator.tolerance_seconds is not None and locator.tolerance_seconds < 0:
        raise ValueError(f"{label}: tolerance_seconds must be >= 0")
    if locator.max_iterations < 1:
        raise ValueError(f"{label}: max_iterations must be >= 1")
    if locator.fetch_attempts < 1 or locator.batch_attempts < 1:
        raise ValueError(f"{label}: retry attempts must be >= 1")
    if locator.rpc_timeout <= 0:
        raise ValueError(f"{label}: rpc_timeout must be > 0")


def _validate(cfg: AppConfig) -> None:
    """Raise on invalid configuration."""
    if not cfg.networks:
        raise ValueError("At least one network must be configured")

    _validate_locator("locator", cfg.locator)

    seen: set[int] = set()
    for name, network in cfg.networks.items():
        if network.chain_id <= 0:
            raise ValueError(f"Network '{name}' has no chain_id")
        if network.chain_id in seen:
            raise ValueError(f"Duplicate chain_id {network.chain_id} ('{name}')")
        seen.add(network.chain_id)
        if not network.rpc_endpoints:
            raise ValueError(f"Network '{name}' has no rpc_endpoints")
        block_time = network.average_block_time_seconds
        if block_time is not None and block_time <= 0:
            raise ValueError(
                f"Network '{name}' has non-positive average_block_time_seconds"
            )
        _validate_locator(f"Network '{name}'", network.locator)
