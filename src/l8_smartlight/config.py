"""
Device Configuration

Loads and saves the serial ports of known L8s and the layout of a grid.
Configurations are stored as JSON so they are easy to edit by hand::

    {
      "devices": [
        {"name": "left", "port": "/dev/ttyACM0"},
        {"name": "right", "port": "/dev/ttyACM1", "baudrate": 115200}
      ],
      "grid": [
        {"direction": "right", "device": "right"}
      ],
      "settings": {"sampling_interval": 0.1, "log_level": "INFO"}
    }

The first device is the grid's anchor; every placement puts another
device next to the layout built so far.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from .device import L8
from .errors import ValidationError
from .grid import GridBuilder
from .transport.serial_connection import DEFAULT_BAUDRATE

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = Path("l8.json")
DIRECTIONS = ("left", "right", "top", "bottom")


@dataclass
class DeviceConfig:
    """Connection settings for a single L8."""

    name: str
    port: str
    baudrate: int = DEFAULT_BAUDRATE

    def create(self) -> L8:
        return L8(self.port, self.baudrate)


@dataclass
class GridPlacement:
    """Put ``device`` to the ``direction`` of the layout so far."""

    direction: str
    device: str

    def __post_init__(self) -> None:
        if self.direction not in DIRECTIONS:
            raise ValidationError(
                f"Invalid grid direction {self.direction!r}. Valid: {list(DIRECTIONS)}"
            )


@dataclass
class L8Config:
    """Complete driver configuration."""

    devices: list[DeviceConfig] = field(default_factory=list)
    grid: list[GridPlacement] = field(default_factory=list)
    sampling_interval: float = 0.1
    log_level: str = "INFO"

    def get_device(self, name: str) -> DeviceConfig | None:
        """Find a device by name."""
        for device in self.devices:
            if device.name == name:
                return device
        return None

    def build_grid(self, sessions: Mapping[str, L8]) -> GridBuilder:
        """Turn the placements into a :class:`GridBuilder`.

        Args:
            sessions: Sessions keyed by device name; the first configured
                device is the anchor.
        """
        if not self.devices:
            raise ValidationError("No devices configured")
        try:
            builder = GridBuilder(sessions[self.devices[0].name])
            for placement in self.grid:
                getattr(builder, placement.direction)(sessions[placement.device])
        except KeyError as e:
            raise ValidationError(f"Grid references unknown device {e}") from e
        return builder


def load_config(config_file: Path = DEFAULT_CONFIG_FILE) -> L8Config:
    """
    Load the configuration from a JSON file.

    Args:
        config_file: Path to the configuration file.

    Returns:
        L8Config with the loaded settings, or defaults if the file does
        not exist.

    Raises:
        json.JSONDecodeError: If the file is not valid JSON.
        ValidationError: If an entry is invalid.
    """
    config = L8Config()

    if not config_file.exists():
        logger.info("No config file found at %s, using defaults", config_file)
        return config

    with open(config_file, "r", encoding="utf-8") as f:
        data = json.load(f)

    try:
        config.devices = [
            DeviceConfig(
                name=info["name"],
                port=info["port"],
                baudrate=info.get("baudrate", DEFAULT_BAUDRATE),
            )
            for info in data.get("devices", [])
        ]
        config.grid = [
            GridPlacement(direction=info["direction"], device=info["device"])
            for info in data.get("grid", [])
        ]
    except KeyError as e:
        raise ValidationError(f"Config entry is missing {e}") from e

    settings = data.get("settings", {})
    config.sampling_interval = settings.get("sampling_interval", config.sampling_interval)
    config.log_level = settings.get("log_level", config.log_level)

    logger.info("Loaded %d device(s) from %s", len(config.devices), config_file)
    return config


def save_config(config: L8Config, config_file: Path = DEFAULT_CONFIG_FILE) -> None:
    """Save the configuration to a JSON file."""
    data = {
        "devices": [
            {"name": d.name, "port": d.port, "baudrate": d.baudrate}
            for d in config.devices
        ],
        "grid": [
            {"direction": p.direction, "device": p.device}
            for p in config.grid
        ],
        "settings": {
            "sampling_interval": config.sampling_interval,
            "log_level": config.log_level,
        },
    }

    with open(config_file, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)
    logger.info("Saved %d device(s) to %s", len(config.devices), config_file)
