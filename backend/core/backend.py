"""
Backend layer - the narrow machine contract consumed by the probe workflows.

Provides:
- MachineBackend protocol (interface)
- Backend events: StatusEvent, ProbeEvent, MessageEvent
- GrblBackend: contract implementation over a line Transport
- MockBackend for testing workflows without a transport
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable, List, Optional, Protocol, Tuple, Union, TYPE_CHECKING

from .executor import CommandHistory
from .gcode import GCodeBuilder
from .logger import log_critical, log_info, log_move, log_pos, log_probe, log_warn
from .types import Axis, Position, Units

if TYPE_CHECKING:
    from .transport import Transport


class CommandDeliveryError(Exception):
    """Raised when a motion or probe command could not be delivered or was rejected"""

    def __init__(self, command: str, reason: str):
        self.command = command
        self.reason = reason
        super().__init__(f"{command!r} failed: {reason}")


# =============================================================================
# Events
# =============================================================================


class ControlState(Enum):
    """Controller state as reported by the backend"""
    IDLE = auto()
    RUN = auto()
    HOLD = auto()
    JOG = auto()
    ALARM = auto()
    DOOR = auto()
    CHECK = auto()
    HOME = auto()
    SLEEP = auto()
    DISCONNECTED = auto()
    UNKNOWN = auto()


@dataclass(frozen=True)
class StatusEvent:
    """Controller state report"""
    state: ControlState


@dataclass(frozen=True)
class ProbeEvent:
    """Probe contact, carrying the position where contact occurred"""
    position: Position


@dataclass(frozen=True)
class MessageEvent:
    """Informational controller message; not used by the workflows"""
    text: str


BackendEvent = Union[StatusEvent, ProbeEvent, MessageEvent]
Listener = Callable[[BackendEvent], None]


class MachineBackend(Protocol):
    """Contract the probe workflows need from a machine backend."""

    def is_ready(self) -> bool:
        """True when the controller is idle and a cycle may start."""
        ...

    def send_motion_command(self, command: str) -> str:
        """Deliver one motion command. Raises CommandDeliveryError."""
        ...

    def probe_axis(self, axis: Axis, feed_rate: float, distance: float, units: Units) -> str:
        """Deliver a single-axis probe. Raises CommandDeliveryError."""
        ...

    def current_position(self) -> Position:
        """Last known machine position."""
        ...

    def add_listener(self, listener: Listener) -> None: ...

    def remove_listener(self, listener: Listener) -> None: ...


# =============================================================================
# GRBL backend
# =============================================================================


_STATUS = re.compile(
    r'<(?P<state>[A-Za-z]+)(?::\d+)?\|[MW]Pos:'
    r'(?P<x>-?[\d.]+),(?P<y>-?[\d.]+),(?P<z>-?[\d.]+)'
)
_PROBE = re.compile(
    r'\[PRB:(?P<x>-?[\d.]+),(?P<y>-?[\d.]+),(?P<z>-?[\d.]+)(?:,-?[\d.]+)*:(?P<ok>[01])\]'
)
_MESSAGE = re.compile(r'\[MSG:(?P<text>[^\]]*)\]')

_GRBL_STATES = {
    "Idle": ControlState.IDLE,
    "Run": ControlState.RUN,
    "Hold": ControlState.HOLD,
    "Jog": ControlState.JOG,
    "Alarm": ControlState.ALARM,
    "Door": ControlState.DOOR,
    "Check": ControlState.CHECK,
    "Home": ControlState.HOME,
    "Sleep": ControlState.SLEEP,
}


def parse_status(report: str) -> Tuple[ControlState, Optional[Position]]:
    """Parse a '<State|MPos:x,y,z|...>' report."""
    match = _STATUS.search(report)
    if not match:
        return ControlState.UNKNOWN, None
    state = _GRBL_STATES.get(match.group("state"), ControlState.UNKNOWN)
    position = Position(
        float(match.group("x")),
        float(match.group("y")),
        float(match.group("z")),
    )
    return state, position


def parse_probe(response: str) -> Optional[Tuple[Position, bool]]:
    """Parse a '[PRB:x,y,z:1]' probe result. Returns (position, contact) or None."""
    match = _PROBE.search(response)
    if not match:
        return None
    position = Position(
        float(match.group("x")),
        float(match.group("y")),
        float(match.group("z")),
    )
    return position, match.group("ok") == "1"


class GrblBackend:
    """
    MachineBackend over a GRBL-style Transport.

    Events are never dispatched from inside a command call. Anything
    produced while sending (probe results, messages) is queued and
    delivered, together with status changes, by poll().
    """

    def __init__(self, transport: "Transport", history: Optional[CommandHistory] = None):
        self._transport = transport
        self.history = history or CommandHistory()
        self._listeners: List[Listener] = []
        self._pending: List[BackendEvent] = []
        self._awaiting_idle = False
        self._last_state: Optional[ControlState] = None
        self._position = Position(0, 0, 0)

    # =========================================================================
    # Listeners
    # =========================================================================

    def add_listener(self, listener: Listener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _emit(self, event: BackendEvent) -> None:
        for listener in list(self._listeners):
            listener(event)

    # =========================================================================
    # Contract
    # =========================================================================

    @property
    def is_connected(self) -> bool:
        return self._transport.is_connected

    @property
    def last_state(self) -> Optional[ControlState]:
        return self._last_state

    def is_ready(self) -> bool:
        """Connected and reporting Idle."""
        if not self._transport.is_connected:
            return False
        try:
            return self._read_status() is ControlState.IDLE
        except OSError as e:
            log_warn(f"Status query failed: {e}")
            return False

    def current_position(self) -> Position:
        """Refresh and return machine position."""
        try:
            self._read_status()
        except OSError as e:
            log_warn(f"Using stale position {self._position}: {e}")
        return self._position

    def send_motion_command(self, command: str) -> str:
        log_move(command)
        response = self._deliver(command)
        self._awaiting_idle = True
        return response

    def probe_axis(self, axis: Axis, feed_rate: float, distance: float, units: Units) -> str:
        command = GCodeBuilder.probe(axis, distance, feed_rate, units)
        log_probe(command)
        response = self._deliver(command)
        self._awaiting_idle = True

        result = parse_probe(response)
        if result is None:
            raise CommandDeliveryError(command, f"no probe result in {response!r}")
        position, contact = result
        if not contact:
            raise CommandDeliveryError(command, "probe finished without contact")

        log_pos(f"Contact at X={position.x:.3f} Y={position.y:.3f} Z={position.z:.3f}")
        self._position = position
        self._pending.append(ProbeEvent(position))
        self._deliver(GCodeBuilder.absolute_mode())
        return response

    # =========================================================================
    # Event pump
    # =========================================================================

    def poll(self) -> None:
        """
        Deliver queued events, then the current controller state.

        IDLE is emitted whenever a command is outstanding, so a move that
        finishes between two polls still produces its idle event.
        """
        pending, self._pending = self._pending, []
        for event in pending:
            self._emit(event)

        if not self._transport.is_connected:
            self._mark_disconnected()
            return

        # ConnectionError, TimeoutError and serial.SerialException are all OSError
        try:
            state = self._read_status()
        except OSError as e:
            log_critical(f"Lost controller: {e}")
            self._mark_disconnected()
            return

        changed = state is not self._last_state
        self._last_state = state

        if state is ControlState.IDLE:
            if self._awaiting_idle or changed:
                self._awaiting_idle = False
                self._emit(StatusEvent(state))
        elif changed:
            self._emit(StatusEvent(state))

    def disconnect(self) -> None:
        """Close the transport and announce the disconnect."""
        close = getattr(self._transport, "disconnect", None)
        if close is not None:
            close()
        self._mark_disconnected()

    # =========================================================================
    # Internals
    # =========================================================================

    def _mark_disconnected(self) -> None:
        if self._last_state is ControlState.DISCONNECTED:
            return
        self._last_state = ControlState.DISCONNECTED
        self._awaiting_idle = False
        log_info("Controller disconnected")
        self._emit(StatusEvent(ControlState.DISCONNECTED))

    def _read_status(self) -> ControlState:
        report = self._transport.query_status()
        state, position = parse_status(report)
        if position is not None:
            self._position = position
        return state

    def _deliver(self, gcode: str) -> str:
        """Send one line; record it; map transport and controller errors."""
        if not self._transport.is_connected:
            self.history.record(gcode, "ERROR: not connected", False)
            raise CommandDeliveryError(gcode, "not connected")

        try:
            response = self._transport.send(gcode)
        except OSError as e:
            self.history.record(gcode, f"ERROR: {e}", False)
            raise CommandDeliveryError(gcode, str(e)) from e

        failed = "error" in response or "ALARM" in response
        self.history.record(gcode, response, not failed)

        for match in _MESSAGE.finditer(response):
            self._pending.append(MessageEvent(match.group("text")))

        if failed:
            raise CommandDeliveryError(gcode, response)
        return response


# =============================================================================
# Mock backend
# =============================================================================


class MockBackend:
    """
    Mock backend for testing workflows without a transport.

    Records every delivered command in order; the test acts as the
    event source by calling emit().
    """

    def __init__(self, ready: bool = True, position: Optional[Position] = None):
        self.ready = ready
        self.position = position or Position(0, 0, 0)
        self.calls: List[tuple] = []
        self.fail_on: List[str] = []
        self.fail_probe = False
        self._listeners: List[Listener] = []

    @property
    def commands(self) -> List[str]:
        """Raw motion commands only, in order."""
        return [call[1] for call in self.calls if call[0] == "gcode"]

    @property
    def probes(self) -> List[tuple]:
        """(axis, feed_rate, distance, units) for each probe, in order."""
        return [call[1:] for call in self.calls if call[0] == "probe"]

    def is_ready(self) -> bool:
        return self.ready

    def current_position(self) -> Position:
        return self.position

    def send_motion_command(self, command: str) -> str:
        if any(fragment in command for fragment in self.fail_on):
            raise CommandDeliveryError(command, "error:20")
        self.calls.append(("gcode", command))
        return "ok"

    def probe_axis(self, axis: Axis, feed_rate: float, distance: float, units: Units) -> str:
        if self.fail_probe:
            raise CommandDeliveryError(f"probe {axis.value}", "ALARM:5")
        self.calls.append(("probe", axis, feed_rate, distance, units))
        return "ok"

    def add_listener(self, listener: Listener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def emit(self, event: BackendEvent) -> None:
        for listener in list(self._listeners):
            listener(event)

    def clear_history(self) -> None:
        self.calls.clear()
