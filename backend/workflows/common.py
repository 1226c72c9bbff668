"""
Common probe legs - entry actions shared by every workflow, parameterised by axis.

A leg is: fast probe -> small retract -> slow probe.
"""

from typing import Callable

from core.gcode import GCodeBuilder
from core.types import Axis

from .context import CycleOperations, ProbeContext


EntryAction = Callable[[ProbeContext], None]

# One unit in the active measurement unit
RETRACT_NOMINAL = 1.0


def retract_distance(spacing: float) -> float:
    """Back-off distance after contact: away from the surface, opposite the approach."""
    return RETRACT_NOMINAL if spacing < 0 else -RETRACT_NOMINAL


def approach_sign(spacing: float) -> float:
    """
    Direction correction for the probed edge.

    The probe approaches from the side opposite the corner being measured,
    so a positive spacing means the edge lies on the negative side of the tool.
    """
    return -1.0 if spacing > 0 else 1.0


def fast_probe(ops: CycleOperations, axis: Axis) -> EntryAction:
    def action(c: ProbeContext) -> None:
        ops.probe(axis, c.params.feed_rate, c.params.spacing(axis), c.params.units)
    return action


def small_retract(ops: CycleOperations, axis: Axis) -> EntryAction:
    def action(c: ProbeContext) -> None:
        distance = retract_distance(c.params.spacing(axis))
        ops.send(GCodeBuilder.relative_rapid(axis, distance, c.params.units))
    return action


def slow_probe(ops: CycleOperations, axis: Axis) -> EntryAction:
    def action(c: ProbeContext) -> None:
        ops.probe(axis, c.params.feed_rate_slow, c.params.spacing(axis), c.params.units)
    return action


def relative_move(ops: CycleOperations, axis: Axis, distance: float, c: ProbeContext) -> None:
    """Relative rapid in the cycle's units."""
    ops.send(GCodeBuilder.relative_rapid(axis, distance, c.params.units))
