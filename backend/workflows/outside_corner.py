"""
Outside Corner Workflow.

Locates an outside corner in X and Y with two probe legs:
1. Step off the corner along X
2. Y leg: fast probe, small retract, slow probe -> first contact
3. Return and reposition for the X leg
4. X leg: fast probe, small retract, slow probe -> second contact
5. Return, compute both offsets, write them in one G10
"""

from __future__ import annotations

from enum import Enum, auto
from typing import Tuple

from core.gcode import GCodeBuilder
from core.logger import log_ok, log_pos
from core.types import Axis

from .common import approach_sign, fast_probe, relative_move, slow_probe, small_retract
from .context import CycleOperations, ProbeContext
from .events import Event
from .state_machine import NoMatchPolicy, StateMachine, StateMachineBuilder


class CornerState(Enum):
    """States in the outside corner workflow."""
    WAITING = auto()
    SETUP = auto()
    PROBE_Y1 = auto()
    RETRACT_Y1 = auto()
    PROBE_Y2 = auto()
    STORE_Y = auto()
    PROBE_X1 = auto()
    RETRACT_X1 = auto()
    PROBE_X2 = auto()
    STORE_X_FINALIZE = auto()


def corner_offsets(c: ProbeContext) -> Tuple[float, float]:
    """
    (x, y) work offsets from the two contact points.

    offset = start - contact + sign * (tool radius + edge offset)
    """
    if c.probe_position1 is None or c.probe_position2 is None:
        raise ValueError("Both contact points are required")
    params = c.params
    start = c.start_position

    x_offset = (
        start.x - c.probe_position2.x
        + approach_sign(params.x_spacing) * (params.probe_radius + params.x_offset)
    )
    y_offset = (
        start.y - c.probe_position1.y
        + approach_sign(params.y_spacing) * (params.probe_radius + params.y_offset)
    )
    return x_offset, y_offset


def setup(ops: CycleOperations, c: ProbeContext) -> None:
    relative_move(ops, Axis.X, c.params.x_spacing, c)


def store_y(ops: CycleOperations, c: ProbeContext) -> None:
    """Keep the Y contact, return to start Y, then line up for the X leg."""
    c.probe_position1 = c.contact_position()
    log_pos(f"Y contact: {c.probe_position1}")

    back_off = c.start_position.y - c.probe_position1.y
    relative_move(ops, Axis.Y, back_off, c)
    relative_move(ops, Axis.X, -c.params.x_spacing, c)
    relative_move(ops, Axis.Y, c.params.y_spacing, c)


def store_x_finalize(ops: CycleOperations, c: ProbeContext) -> None:
    """Keep the X contact, return toward start, write both offsets."""
    c.probe_position2 = c.contact_position()
    log_pos(f"X contact: {c.probe_position2}")

    back_off = c.start_position.x - c.probe_position2.x
    relative_move(ops, Axis.X, back_off, c)
    relative_move(ops, Axis.Y, -c.params.y_spacing, c)

    x_offset, y_offset = corner_offsets(c)
    ops.send(GCodeBuilder.set_work_offsets(c.params.wcs, {Axis.X: x_offset, Axis.Y: y_offset}))

    c.x_wcs_offset = x_offset
    c.y_wcs_offset = y_offset
    c.z_wcs_offset = 0.0
    log_ok(f"Corner probe complete: {c.params.wcs.name} X={x_offset:.4f} Y={y_offset:.4f}")
    ops.complete(c)


def create_outside_corner_probe(ops: CycleOperations) -> StateMachine[CornerState, Event, ProbeContext]:
    """Outside corner machine, positioned at WAITING."""
    S = CornerState
    return (
        StateMachineBuilder(S.WAITING)
        .add_transition(S.WAITING,    Event.START,  S.SETUP)
        .add_transition(S.SETUP,      Event.IDLE,   S.PROBE_Y1)
        .add_transition(S.PROBE_Y1,   Event.PROBED, S.RETRACT_Y1)
        .add_transition(S.RETRACT_Y1, Event.IDLE,   S.PROBE_Y2)
        .add_transition(S.PROBE_Y2,   Event.PROBED, S.STORE_Y)
        .add_transition(S.STORE_Y,    Event.IDLE,   S.PROBE_X1)
        .add_transition(S.PROBE_X1,   Event.PROBED, S.RETRACT_X1)
        .add_transition(S.RETRACT_X1, Event.IDLE,   S.PROBE_X2)
        .add_transition(S.PROBE_X2,   Event.PROBED, S.STORE_X_FINALIZE)

        .on_enter(S.SETUP,            lambda c: setup(ops, c))
        .on_enter(S.PROBE_Y1,         fast_probe(ops, Axis.Y))
        .on_enter(S.RETRACT_Y1,       small_retract(ops, Axis.Y))
        .on_enter(S.PROBE_Y2,         slow_probe(ops, Axis.Y))
        .on_enter(S.STORE_Y,          lambda c: store_y(ops, c))
        .on_enter(S.PROBE_X1,         fast_probe(ops, Axis.X))
        .on_enter(S.RETRACT_X1,       small_retract(ops, Axis.X))
        .on_enter(S.PROBE_X2,         slow_probe(ops, Axis.X))
        .on_enter(S.STORE_X_FINALIZE, lambda c: store_x_finalize(ops, c))

        .no_match_policy(NoMatchPolicy.IGNORE)
        .build()
    )
