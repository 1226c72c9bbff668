"""
Depth Probe Workflow.

Finds the work surface along Z:
1. Fast approach until contact
2. Small retract off the surface
3. Slow approach for the precise contact
4. Write the Z work offset and retract to the safe height
"""

from __future__ import annotations

from enum import Enum, auto

from core.gcode import GCodeBuilder
from core.logger import log_ok
from core.types import Axis

from .common import fast_probe, small_retract, slow_probe
from .context import CycleOperations, ProbeContext
from .events import Event
from .state_machine import NoMatchPolicy, StateMachine, StateMachineBuilder


class DepthState(Enum):
    """States in the depth probe workflow."""
    WAITING = auto()
    FAST_APPROACH = auto()
    SMALL_RETRACT = auto()
    SLOW_APPROACH = auto()
    FINALIZE = auto()


def finalize_depth(ops: CycleOperations, axis: Axis, c: ProbeContext) -> None:
    """Write the work offset, lift to the safe height, end the cycle."""
    params = c.params
    c.probe_position1 = c.contact_position()

    ops.send(GCodeBuilder.set_work_offsets(params.wcs, {axis: params.edge_offset(axis)}))
    ops.send(GCodeBuilder.absolute_rapid(axis, params.retract_height, params.units))

    c.z_wcs_offset = params.edge_offset(axis)
    log_ok(f"Depth probe complete: {params.wcs.name} {axis.value}={c.z_wcs_offset}")
    ops.complete(c)


def create_depth_probe(ops: CycleOperations, axis: Axis = Axis.Z) -> StateMachine[DepthState, Event, ProbeContext]:
    """Depth probe machine, positioned at WAITING."""
    S = DepthState
    return (
        StateMachineBuilder(S.WAITING)
        .add_transition(S.WAITING,       Event.START,  S.FAST_APPROACH)
        .add_transition(S.FAST_APPROACH, Event.PROBED, S.SMALL_RETRACT)
        .add_transition(S.SMALL_RETRACT, Event.IDLE,   S.SLOW_APPROACH)
        .add_transition(S.SLOW_APPROACH, Event.PROBED, S.FINALIZE)

        .on_enter(S.FAST_APPROACH, fast_probe(ops, axis))
        .on_enter(S.SMALL_RETRACT, small_retract(ops, axis))
        .on_enter(S.SLOW_APPROACH, slow_probe(ops, axis))
        .on_enter(S.FINALIZE,      lambda c: finalize_depth(ops, axis, c))

        .no_match_policy(NoMatchPolicy.IGNORE)
        .build()
    )
