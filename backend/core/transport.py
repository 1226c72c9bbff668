"""
Transport layer - handles line-oriented communication with the machine controller.

Provides:
- Transport protocol (interface)
- MockTransport for testing
- (SerialTransport in separate file for production)
"""

from __future__ import annotations

import re
from typing import Dict, List, Protocol

from .types import Axis, Position


class Transport(Protocol):
    """Protocol for GRBL-style controller communication."""

    def send(self, gcode: str) -> str:
        """
        Send G-code command and return response.

        Returns 'ok' on success, or response data lines followed by 'ok'.
        Raises ConnectionError / TimeoutError when the line cannot be delivered.
        """
        ...

    def query_status(self) -> str:
        """Send the real-time '?' request and return the '<...>' status report."""
        ...

    @property
    def is_connected(self) -> bool:
        """Check if transport is connected."""
        ...


_WORD = re.compile(r'([A-Z])([-+]?[\d.]+)')


class MockTransport:
    """
    Mock transport for testing without hardware.

    Simulates a GRBL controller: tracks position and positioning mode,
    and answers G38.2 probes against flat surfaces placed per axis.
    """

    def __init__(self, position: Position | None = None):
        self.sent_commands: List[str] = []
        self.position: Position = position or Position(0, 0, 0)
        self.surfaces: Dict[Axis, float] = {}
        self.error_on: List[str] = []
        self.machine_state: str = "Idle"
        self._relative: bool = False
        self._connected: bool = True

    @property
    def command_count(self) -> int:
        """Number of commands sent."""
        return len(self.sent_commands)

    def send(self, gcode: str) -> str:
        """
        Simulate sending a command.

        Tracks command and simulates position changes.
        """
        if not self._connected:
            raise ConnectionError("Not connected")

        self.sent_commands.append(gcode)

        if any(fragment in gcode for fragment in self.error_on):
            return "error:20"

        tokens = gcode.split()
        if "G90" in tokens:
            self._relative = False
        if "G91" in tokens:
            self._relative = True

        if "G38.2" in tokens:
            return self._simulate_probe(gcode)

        if "G0" in tokens or "G1" in tokens:
            self.position = self._target(gcode)
            return "ok"

        # G10, G20/G21, G90/G91 and anything else
        return "ok"

    def query_status(self) -> str:
        """Status report in GRBL 1.1 format."""
        if not self._connected:
            raise ConnectionError("Not connected")
        p = self.position
        return f"<{self.machine_state}|MPos:{p.x:.3f},{p.y:.3f},{p.z:.3f}|FS:0,0>"

    def _target(self, gcode: str) -> Position:
        """Resolve axis words against the current position and mode."""
        coords = self.position.to_dict()
        for letter, value in _WORD.findall(gcode):
            key = letter.lower()
            if key not in coords:
                continue
            coords[key] = coords[key] + float(value) if self._relative else float(value)
        return Position.from_dict(coords)

    def _simulate_probe(self, gcode: str) -> str:
        """Move toward target, stopping at the surface on the probed axis."""
        target = self._target(gcode)
        for axis, surface in self.surfaces.items():
            start = self.position.get(axis)
            end = target.get(axis)
            if start == end:
                continue
            if min(start, end) <= surface <= max(start, end):
                coords = target.to_dict()
                coords[axis.name.lower()] = surface
                self.position = Position.from_dict(coords)
                p = self.position
                return f"[PRB:{p.x:.3f},{p.y:.3f},{p.z:.3f}:1]\nok"

        self.position = target
        return "ALARM:5"

    @property
    def is_connected(self) -> bool:
        return self._connected

    def disconnect(self) -> None:
        """Simulate disconnection (for testing error handling)."""
        self._connected = False

    def reconnect(self) -> None:
        """Simulate reconnection."""
        self._connected = True

    def clear_history(self) -> None:
        """Clear sent commands history."""
        self.sent_commands.clear()
