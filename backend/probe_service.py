"""
Probe Service - Main facade for probe cycles.

Owns at most one active probe cycle, starts the depth and outside corner
workflows, and turns backend events into workflow events. All commands a
workflow issues go through this service so a delivery failure can tear
the cycle down in one place.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Union

from core.backend import (
    BackendEvent,
    CommandDeliveryError,
    ControlState,
    MachineBackend,
    ProbeEvent,
    StatusEvent,
)
from core.logger import log_critical, log_cycle, log_info, log_warn
from core.types import Axis, Position, ProbeParameters, Units, WorkCoordinateSystem, WorkOffsets
from workflows.context import ProbeContext
from workflows.depth_probe import create_depth_probe
from workflows.events import Event
from workflows.outside_corner import create_outside_corner_probe
from workflows.state_machine import StateMachine, UnmatchedTransitionError


class PreconditionError(RuntimeError):
    """Raised when a probe cycle is requested while the machine cannot start one"""


class CycleKind(Enum):
    DEPTH = "depth"
    OUTSIDE_CORNER = "outside_corner"


@dataclass(frozen=True)
class NoCycle:
    """Empty cycle slot"""


NO_CYCLE = NoCycle()


@dataclass(frozen=True)
class ActiveCycle:
    """Occupied cycle slot: the running machine and the context it owns"""
    kind: CycleKind
    machine: StateMachine
    context: ProbeContext


CycleSlot = Union[NoCycle, ActiveCycle]


@dataclass(frozen=True)
class CycleResult:
    """Summary of a completed cycle"""
    kind: CycleKind
    wcs: WorkCoordinateSystem
    offsets: WorkOffsets
    probe_position1: Optional[Position]
    probe_position2: Optional[Position]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "wcs": self.wcs.name,
            "offsets": self.offsets.to_dict(),
            "probe_position1": self.probe_position1.to_dict() if self.probe_position1 else None,
            "probe_position2": self.probe_position2.to_dict() if self.probe_position2 else None,
        }


class ProbeService:
    """
    Runs probe cycles against a MachineBackend.

    Events must arrive one at a time from a single source; the service
    does no locking of its own.

    reject_concurrent_start=False keeps the permissive behaviour: starting
    a cycle while another is active replaces it.
    """

    def __init__(self, backend: MachineBackend, reject_concurrent_start: bool = False):
        self._backend = backend
        self._cycle: CycleSlot = NO_CYCLE
        self.reject_concurrent_start = reject_concurrent_start

        self.last_error: Optional[str] = None
        self.last_result: Optional[CycleResult] = None

        # Callbacks
        self.on_complete: Optional[Callable[[CycleResult], None]] = None
        self.on_error: Optional[Callable[[str], None]] = None

        backend.add_listener(self.on_backend_event)

    def close(self) -> None:
        """Stop listening to the backend and drop any active cycle."""
        self._backend.remove_listener(self.on_backend_event)
        self._cycle = NO_CYCLE

    # =========================================================================
    # Properties
    # =========================================================================

    def probe_cycle_active(self) -> bool:
        """Whether a cycle currently owns the slot."""
        return isinstance(self._cycle, ActiveCycle)

    is_cycle_active = probe_cycle_active

    @property
    def cycle(self) -> CycleSlot:
        return self._cycle

    @property
    def state(self) -> Optional[Enum]:
        """Current workflow state, or None without an active cycle."""
        if isinstance(self._cycle, ActiveCycle):
            return self._cycle.machine.state
        return None

    @property
    def context(self) -> Optional[ProbeContext]:
        if isinstance(self._cycle, ActiveCycle):
            return self._cycle.context
        return None

    # =========================================================================
    # Starting cycles
    # =========================================================================

    def create_context(self, params: ProbeParameters) -> ProbeContext:
        """Fresh context starting at the backend's current position."""
        return ProbeContext(params=params, start_position=self._backend.current_position())

    def validate_state(self) -> None:
        """Raise PreconditionError unless a cycle may start now."""
        if not self._backend.is_ready():
            raise PreconditionError("Can only begin probing while IDLE.")

        if self.reject_concurrent_start and self.probe_cycle_active():
            raise PreconditionError("A probe operation is already active.")

    def start_depth_probe(self, context: ProbeContext) -> None:
        """Probe the work surface along Z and set the Z work offset."""
        self._start(CycleKind.DEPTH, create_depth_probe, context)

    def start_outside_corner_probe(self, context: ProbeContext) -> None:
        """Probe an outside corner along Y then X and set both work offsets."""
        self._start(CycleKind.OUTSIDE_CORNER, create_outside_corner_probe, context)

    def _start(
        self,
        kind: CycleKind,
        factory: Callable[["ProbeService"], StateMachine],
        context: ProbeContext,
    ) -> None:
        self.validate_state()

        if isinstance(self._cycle, ActiveCycle):
            log_warn(
                f"Replacing active {self._cycle.kind.value} cycle "
                f"in {self._cycle.machine.state.name}"
            )

        self._cycle = ActiveCycle(kind, factory(self), context)
        self.last_error = None
        start = context.start_position
        log_cycle(
            f"Starting {kind.value} probe from X={start.x:.3f} Y={start.y:.3f} Z={start.z:.3f}",
            context.params.to_dict(),
        )
        self._dispatch(Event.START, None)

    # =========================================================================
    # Event ingestion
    # =========================================================================

    def on_backend_event(self, event: BackendEvent) -> None:
        """
        Reactive entry point subscribed to the backend.

        Never raises: failures end the cycle and are reported instead.
        """
        if not isinstance(self._cycle, ActiveCycle):
            return

        if isinstance(event, StatusEvent):
            if event.state is ControlState.IDLE:
                self._dispatch(Event.IDLE, event)
            elif event.state is ControlState.DISCONNECTED:
                log_info(f"Disconnected: dropping {self._cycle.kind.value} cycle")
                self._cycle = NO_CYCLE
        elif isinstance(event, ProbeEvent):
            self._dispatch(Event.PROBED, event)

    def _dispatch(self, event: Event, source: Optional[BackendEvent]) -> None:
        cycle = self._cycle
        if not isinstance(cycle, ActiveCycle):
            return

        # Unmatched events must leave the context untouched
        if source is not None and cycle.machine.can_apply(event):
            cycle.context.last_event = source

        try:
            cycle.machine.apply(event, cycle.context)
        except UnmatchedTransitionError as e:
            log_warn(f"Ignored event: {e}")
        except CommandDeliveryError as e:
            self._abort(cycle, f"Command delivery failed: {e}")
        except Exception as e:
            self._abort(cycle, f"Probe cycle failed in {cycle.machine.state.name}: {e}")

    # =========================================================================
    # CycleOperations (used by workflow entry actions)
    # =========================================================================

    def send(self, command: str) -> None:
        self._backend.send_motion_command(command)

    def probe(self, axis: Axis, feed_rate: float, distance: float, units: Units) -> None:
        self._backend.probe_axis(axis, feed_rate, distance, units)

    def complete(self, context: ProbeContext) -> None:
        cycle = self._cycle
        if not isinstance(cycle, ActiveCycle) or cycle.context is not context:
            return

        self.last_result = CycleResult(
            kind=cycle.kind,
            wcs=context.params.wcs,
            offsets=context.offsets,
            probe_position1=context.probe_position1,
            probe_position2=context.probe_position2,
        )
        self._cycle = NO_CYCLE
        log_cycle(f"{cycle.kind.value} probe finished", self.last_result.offsets.to_dict())

        self._notify(self.on_complete, self.last_result)

    # =========================================================================
    # Failure handling
    # =========================================================================

    def _abort(self, cycle: ActiveCycle, message: str) -> None:
        """Drop the cycle (if still current) and report; no compensating motion."""
        if self._cycle is cycle:
            self._cycle = NO_CYCLE
        self.last_error = message
        log_critical(message)
        self._notify(self.on_error, message)

    def _notify(self, callback: Optional[Callable[[Any], None]], payload: Any) -> None:
        """Run a user callback; its failure is logged and never reaches the event source."""
        if callback is None:
            return
        try:
            callback(payload)
        except Exception as e:
            log_critical(f"Callback {getattr(callback, '__name__', callback)!r} failed: {e}")

    # =========================================================================
    # Status
    # =========================================================================

    def get_status(self) -> Dict[str, Any]:
        """Current cycle status."""
        cycle = self._cycle
        active = isinstance(cycle, ActiveCycle)
        return {
            "active": active,
            "kind": cycle.kind.value if active else None,
            "state": cycle.machine.state.name if active else None,
            "last_error": self.last_error,
            "last_result": self.last_result.to_dict() if self.last_result else None,
        }
