"""MCP server entry point for the L8 Smartlight.

Exposes tools and a status resource via the Model Context Protocol using
the official Python MCP SDK with stdio transport. Drawing tools work on a
single L8 or, after ``connect_grid``, on the whole grid.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Union

from mcp.server.fastmcp import FastMCP

from .config import DEFAULT_CONFIG_FILE, load_config
from .device import L8
from .errors import NotConnectedError, ValidationError
from .grid import L8Grid
from .models.color import Color, solid_matrix
from .transport.serial_connection import DEFAULT_BAUDRATE, list_candidate_ports

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "l8-smartlight",
    instructions="MCP server for L8 Smartlight LED matrices",
)

# Global connection state
_device: L8 | None = None
_grid: L8Grid | None = None


def _get_device() -> L8:
    """Get the connected single L8, raising if not connected."""
    if _device is None or not _device.is_connected:
        raise NotConnectedError(
            "Not connected to an L8. Use the 'connect' tool first."
        )
    return _device


def _get_surface() -> Union[L8, L8Grid]:
    """The grid when one is connected, else the single L8."""
    if _grid is not None:
        return _grid
    return _get_device()


def _frame_result(response) -> dict[str, Any]:
    if response is None:
        return {"ok": True}
    return {"ok": True, "response": repr(response)}


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
async def connect(port: str | None = None, baudrate: int = DEFAULT_BAUDRATE) -> dict[str, Any]:
    """Open a serial connection to a single L8.

    Args:
        port: Serial port. Defaults to the first configured device, then
            to the first port that looks like an L8.
        baudrate: Serial speed (default 115200).
    """
    global _device
    if _device is not None and _device.is_connected:
        return {"connected": True, "message": "Already connected", "port": _device.port}

    if port is None:
        config = load_config()
        if config.devices:
            port = config.devices[0].port
        else:
            candidates = list_candidate_ports()
            if not candidates:
                raise ValidationError("No serial port given and no L8 found")
            port = candidates[0]

    _device = L8(port, baudrate)
    await _device.open()
    await _device.ping()
    return {"connected": True, "port": port}


@mcp.tool()
async def connect_grid(config_file: str = str(DEFAULT_CONFIG_FILE)) -> dict[str, Any]:
    """Open every device of the configured grid.

    Args:
        config_file: JSON configuration with devices and grid placements.
    """
    global _grid
    config = load_config(Path(config_file))
    sessions = {device.name: device.create() for device in config.devices}
    grid = L8Grid(config.build_grid(sessions))

    if _grid is not None:
        previous, _grid = _grid, None
        await previous.close()

    # Wait for every open to settle so none finishes after the cleanup
    results = await asyncio.gather(
        *(device.open() for device in grid.devices), return_exceptions=True
    )
    errors = [r for r in results if isinstance(r, BaseException)]
    if errors:
        # Devices that never opened ignore close()
        await grid.close()
        raise errors[0]
    _grid = grid
    return {
        "connected": True,
        "devices": len(grid.segments),
        "width": grid.width,
        "height": grid.height,
    }


@mcp.tool()
async def disconnect() -> dict[str, bool]:
    """Close all open connections."""
    global _device, _grid
    if _grid is not None:
        await _grid.close()
        _grid = None
    if _device is not None:
        await _device.close()
        _device = None
    return {"disconnected": True}


@mcp.tool()
async def ping() -> dict[str, Any]:
    """Check that the device answers."""
    return {"ok": True, "responses": await _as_list(_get_surface().ping())}


async def _as_list(awaitable) -> list:
    result = await awaitable
    if isinstance(result, list):
        return [repr(r) for r in result]
    return [repr(result)]


# ─── DRAWING TOOLS ────────────────────────────────────────────────────

@mcp.tool()
async def set_led(x: int, y: int, r: int, g: int, b: int) -> dict[str, Any]:
    """Set one LED. Channels range from 0 to 15.

    Args:
        x: Column (0-7 on a single L8, grid column otherwise).
        y: Row.
    """
    return _frame_result(await _get_surface().set_led(x, y, Color(r, g, b)))


@mcp.tool()
async def clear_led(x: int, y: int) -> dict[str, Any]:
    """Switch off one LED."""
    return _frame_result(await _get_surface().clear_led(x, y))


@mcp.tool()
async def set_matrix(pixels: list[list[int]], columns: int = 8) -> dict[str, Any]:
    """Set every LED at once.

    Args:
        pixels: ``[r, g, b]`` triples row by row from the top left.
        columns: Row width; only used for grids.
    """
    colors = [Color(*pixel) for pixel in pixels]
    surface = _get_surface()
    if isinstance(surface, L8Grid):
        await surface.set_matrix(colors, columns)
        return {"ok": True}
    return _frame_result(await surface.set_matrix(colors))


@mcp.tool()
async def fill_matrix(r: int, g: int, b: int) -> dict[str, Any]:
    """Fill the whole matrix with one color."""
    surface = _get_surface()
    matrix = solid_matrix(Color(r, g, b))
    if isinstance(surface, L8Grid):
        await asyncio.gather(*(device.set_matrix(matrix) for device in surface.devices))
        return {"ok": True}
    return _frame_result(await surface.set_matrix(matrix))


@mcp.tool()
async def clear_matrix() -> dict[str, Any]:
    """Switch off all matrix LEDs."""
    await _get_surface().clear_matrix()
    return {"ok": True}


@mcp.tool()
async def set_super_led(r: int, g: int, b: int) -> dict[str, Any]:
    """Set the SuperLED on the back of the device."""
    await _get_surface().set_super_led(Color(r, g, b))
    return {"ok": True}


@mcp.tool()
async def scroll_text(
    text: str,
    r: int = 15,
    g: int = 15,
    b: int = 15,
    speed: str = "medium",
    loop: bool = True,
) -> dict[str, Any]:
    """Scroll ASCII text across the matrix.

    Args:
        speed: "slow", "medium" or "fast".
        loop: Keep scrolling until stopped.
    """
    await _get_surface().set_scrolling_text(text, Color(r, g, b), speed, loop)
    return {"ok": True}


@mcp.tool()
async def stop_application() -> dict[str, Any]:
    """Stop the running device app, e.g. scrolling text."""
    await _get_surface().stop_application()
    return {"ok": True}


@mcp.tool()
async def set_orientation(orientation: str) -> dict[str, Any]:
    """Set the orientation: "up", "down", "left", "right" or "auto"."""
    await _get_surface().set_orientation(orientation)
    return {"ok": True, "orientation": orientation}


# ─── SENSOR & MEMORY TOOLS ────────────────────────────────────────────

@mcp.tool()
async def get_acceleration() -> dict[str, Any]:
    """Read the accelerometer of the single connected L8."""
    reading = await _get_device().get_acceleration()
    return reading.to_dict()


@mcp.tool()
async def sample_acceleration(count: int = 5) -> list[dict[str, Any]]:
    """Collect several readings, spaced by the configured sampling interval.

    Args:
        count: Number of readings (1-100).
    """
    if not 1 <= count <= 100:
        raise ValidationError(f"count must be 1-100, got {count}")
    stream = _get_device().acceleration_stream(load_config().sampling_interval)
    samples = []
    async with stream.subscribe() as readings:
        async for reading in readings:
            samples.append(reading.to_dict())
            if len(samples) == count:
                break
    return samples


@mcp.tool()
async def store_animation(
    frames: list[list[list[int]]], durations_ms: list[int]
) -> dict[str, Any]:
    """Store an animation in the single connected L8's user memory.

    Args:
        frames: One matrix per frame, each 64 ``[r, g, b]`` triples row by
            row from the top left.
        durations_ms: How long each frame is shown, in 100 ms steps.

    Returns:
        The ``animation_id`` to pass to ``play_animation``.
    """
    matrices = [[Color(*pixel) for pixel in frame] for frame in frames]
    animation_id = await _get_device().prepare_animation(matrices, durations_ms)
    return {"ok": True, "animation_id": animation_id}


@mcp.tool()
async def play_animation(animation_id: int, loop: bool = True) -> dict[str, Any]:
    """Play an animation stored on the single connected L8."""
    return _frame_result(await _get_device().play_animation(animation_id, loop))


@mcp.tool()
async def clear_user_memory() -> dict[str, Any]:
    """Erase stored frames and animations."""
    await _get_surface().clear_user_memory()
    return {"ok": True}


# ─── RESOURCES ────────────────────────────────────────────────────────

@mcp.resource("device://status")
def device_status() -> dict[str, Any]:
    """Connection state of the single L8 and the grid."""
    status: dict[str, Any] = {
        "device": None,
        "grid": None,
    }
    if _device is not None:
        status["device"] = {"port": _device.port, "state": _device.state.value}
    if _grid is not None:
        status["grid"] = {
            "width": _grid.width,
            "height": _grid.height,
            "devices": [
                {"port": s.device.port, "x": s.x, "y": s.y, "state": s.device.state.value}
                for s in _grid.segments
            ],
        }
    return status


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    config = load_config()
    logging.basicConfig(level=getattr(logging, config.log_level.upper(), logging.INFO))
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
