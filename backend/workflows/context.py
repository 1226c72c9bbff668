"""
Probe Context - Cycle parameters and results shared between states
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Protocol, TYPE_CHECKING

from core.types import Axis, Position, ProbeParameters, Units, WorkOffsets

if TYPE_CHECKING:
    from core.backend import BackendEvent


@dataclass
class ProbeContext:
    """
    Created once per cycle and owned by the ProbeService for its lifetime.

    params and start_position never change; everything else is filled in
    as the cycle progresses.
    """
    params: ProbeParameters
    start_position: Position

    # Results
    probe_position1: Optional[Position] = None
    probe_position2: Optional[Position] = None
    x_wcs_offset: Optional[float] = None
    y_wcs_offset: Optional[float] = None
    z_wcs_offset: Optional[float] = None

    # Most recent backend event that drove a transition
    last_event: Optional["BackendEvent"] = field(default=None, repr=False)

    @property
    def offsets(self) -> WorkOffsets:
        return WorkOffsets(self.x_wcs_offset, self.y_wcs_offset, self.z_wcs_offset)

    def contact_position(self) -> Position:
        """Position carried by the probe event that triggered the current state."""
        position = getattr(self.last_event, "position", None)
        if position is None:
            raise ValueError(f"Expected a probe event, got {self.last_event!r}")
        return position


class CycleOperations(Protocol):
    """
    Capabilities a workflow's entry actions may use.

    Implemented by the ProbeService; each call is delivered synchronously
    and raises CommandDeliveryError on failure.
    """

    def send(self, command: str) -> None:
        """Deliver one raw motion command."""
        ...

    def probe(self, axis: Axis, feed_rate: float, distance: float, units: Units) -> None:
        """Deliver a single-axis probe."""
        ...

    def complete(self, context: ProbeContext) -> None:
        """Finish the cycle: record the result and clear the active slot."""
        ...
