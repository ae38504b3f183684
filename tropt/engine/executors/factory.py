"""Factory for building transports from configuration files.

Supports YAML/JSON config files and plain dicts.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

import yaml

from tropt.engine.executors.transport import LocalTransport
from tropt.engine.interfaces import Transport

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TransportConfig:
    """Base configuration for transports.

    Attributes
    ----------
    transport_type : str
        Type of transport; only "local" ships with the SDK.
    mode : str
        "auto", "thread", or "process".
    num_workers : int | str
        Number of worker ranks or "auto".
    join_timeout_s : float
        Seconds to wait for each worker on shutdown.
    """

    transport_type: str = "local"
    mode: str = "auto"
    num_workers: int | str = "auto"
    join_timeout_s: float = 5.0


class TransportFactory:
    """Factory for creating transports from configurations.

    Example
    -------
    >>> transport = TransportFactory.build({"mode": "thread", "num_workers": 4})
    """

    _TRANSPORTS: dict[str, type] = {"local": LocalTransport}

    @classmethod
    def register(cls, name: str, transport_class: type) -> None:
        cls._TRANSPORTS[name] = transport_class
        _LOGGER.info("Registered transport: %s", name)

    @classmethod
    def build(cls, config: dict[str, Any] | TransportConfig | None = None) -> Transport:
        """Build a transport from configuration.

        Raises
        ------
        ValueError
            If the transport type is unknown or the config is not a dict.
        """
        if config is None:
            cfg_dict: dict[str, Any] = {}
        elif isinstance(config, TransportConfig):
            cfg_dict = asdict(config)
        elif isinstance(config, dict):
            cfg_dict = dict(config)
        else:
            raise ValueError(f"Invalid config type: {type(config)}")

        transport_type = str(cfg_dict.pop("transport_type", "local")).lower()
        if transport_type not in cls._TRANSPORTS:
            raise ValueError(
                f"Unknown transport type: {transport_type}. "
                f"Available: {', '.join(sorted(cls._TRANSPORTS))}"
            )
        return cls._TRANSPORTS[transport_type](
            num_workers=cfg_dict.get("num_workers", "auto"),
            mode=cfg_dict.get("mode", "auto"),
            join_timeout_s=float(cfg_dict.get("join_timeout_s", 5.0)),
        )

    @classmethod
    def from_yaml(cls, path: str | Path) -> Transport:
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path) as f:
            config = yaml.safe_load(f)
        _LOGGER.info("Loaded transport config from %s", path)
        return cls.build(config)

    @classmethod
    def from_json(cls, path: str | Path) -> Transport:
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path) as f:
            config = json.load(f)
        _LOGGER.info("Loaded transport config from %s", path)
        return cls.build(config)


__all__ = [
    "TransportConfig",
    "TransportFactory",
]
