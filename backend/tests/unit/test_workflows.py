"""
Unit tests for the depth and outside corner workflows.

Machines are driven directly with a recording CycleOperations.
"""

import pytest

from core.backend import ProbeEvent
from core.types import Axis, Position, ProbeParameters, Units, WorkCoordinateSystem
from workflows.common import approach_sign, retract_distance
from workflows.context import ProbeContext
from workflows.depth_probe import DepthState, create_depth_probe
from workflows.events import Event
from workflows.outside_corner import CornerState, corner_offsets, create_outside_corner_probe
from workflows.state_machine import ApplyResult


class RecordingOps:
    """CycleOperations that records instead of talking to a machine."""

    def __init__(self):
        self.calls = []
        self.completed = []

    def send(self, command):
        self.calls.append(("gcode", command))

    def probe(self, axis, feed_rate, distance, units):
        self.calls.append(("probe", axis, feed_rate, distance, units))

    def complete(self, context):
        self.completed.append(context)

    @property
    def commands(self):
        return [c[1] for c in self.calls if c[0] == "gcode"]


def contact(machine, context, position):
    """Deliver a probe contact the way the service does."""
    context.last_event = ProbeEvent(position)
    return machine.apply(Event.PROBED, context)


class TestHelpers:
    @pytest.mark.parametrize("spacing, expected", [(-5, 1.0), (-0.1, 1.0), (10, -1.0), (0, -1.0)])
    def test_retract_distance(self, spacing, expected):
        assert retract_distance(spacing) == expected

    @pytest.mark.parametrize("spacing, expected", [(10, -1.0), (-10, 1.0), (0, 1.0)])
    def test_approach_sign(self, spacing, expected):
        assert approach_sign(spacing) == expected

    def test_contact_position_requires_probe_event(self):
        context = ProbeContext(params=ProbeParameters(), start_position=Position(0, 0, 0))
        with pytest.raises(ValueError):
            context.contact_position()


class TestDepthProbe:
    """Depth probe: fast, retract, slow, finalize."""

    @pytest.fixture
    def setup(self, depth_params):
        ops = RecordingOps()
        context = ProbeContext(params=depth_params, start_position=Position(0, 0, 0))
        machine = create_depth_probe(ops)
        return ops, context, machine

    def test_starts_waiting_with_no_calls(self, setup):
        ops, _, machine = setup
        assert machine.state is DepthState.WAITING
        assert ops.calls == []

    def test_start_issues_fast_probe(self, setup):
        ops, context, machine = setup
        machine.apply(Event.START, context)

        assert machine.state is DepthState.FAST_APPROACH
        assert ops.calls == [("probe", Axis.Z, 100, -5, Units.MM)]

    def test_full_sequence(self, setup):
        ops, context, machine = setup

        machine.apply(Event.START, context)
        contact(machine, context, Position(0, 0, -3))
        assert machine.state is DepthState.SMALL_RETRACT
        assert ops.calls[-1] == ("gcode", "G91 G21 G0 Z1")

        machine.apply(Event.IDLE, context)
        assert machine.state is DepthState.SLOW_APPROACH
        assert ops.calls[-1] == ("probe", Axis.Z, 25, -5, Units.MM)

        contact(machine, context, Position(0, 0, -3.02))
        assert machine.state is DepthState.FINALIZE
        assert ops.commands[-2:] == ["G10 L20 P1 Z0.5", "G90 G21 G0 Z10"]
        assert context.probe_position1 == Position(0, 0, -3.02)
        assert context.z_wcs_offset == 0.5
        assert ops.completed == [context]

    def test_idle_during_fast_approach_ignored(self, setup):
        ops, context, machine = setup
        machine.apply(Event.START, context)

        assert machine.apply(Event.IDLE, context) is ApplyResult.NO_OP
        assert machine.state is DepthState.FAST_APPROACH
        assert len(ops.calls) == 1

    def test_positive_spacing_retracts_down(self):
        ops = RecordingOps()
        params = ProbeParameters(z_spacing=5)
        context = ProbeContext(params=params, start_position=Position(0, 0, 0))
        machine = create_depth_probe(ops)

        machine.apply(Event.START, context)
        contact(machine, context, Position(0, 0, 3))

        assert ops.commands == ["G91 G21 G0 Z-1"]

    def test_register_and_units_follow_parameters(self):
        ops = RecordingOps()
        params = ProbeParameters(z_spacing=-0.5, z_offset=0.02, retract_height=1,
                                 units=Units.INCH, wcs=WorkCoordinateSystem.G55)
        context = ProbeContext(params=params, start_position=Position(0, 0, 0))
        machine = create_depth_probe(ops)

        machine.apply(Event.START, context)
        contact(machine, context, Position(0, 0, -0.2))
        machine.apply(Event.IDLE, context)
        contact(machine, context, Position(0, 0, -0.2))

        assert ops.commands == [
            "G91 G20 G0 Z1",
            "G10 L20 P2 Z0.02",
            "G90 G20 G0 Z1",
        ]


class TestOutsideCorner:
    """Outside corner: Y leg then X leg."""

    @pytest.fixture
    def setup(self, corner_params, start_position):
        ops = RecordingOps()
        context = ProbeContext(params=corner_params, start_position=start_position)
        machine = create_outside_corner_probe(ops)
        return ops, context, machine

    def test_start_steps_off_along_x(self, setup):
        ops, context, machine = setup
        machine.apply(Event.START, context)

        assert machine.state is CornerState.SETUP
        assert ops.calls == [("gcode", "G91 G21 G0 X-10")]

    def test_full_sequence(self, setup):
        ops, context, machine = setup

        machine.apply(Event.START, context)
        machine.apply(Event.IDLE, context)
        assert machine.state is CornerState.PROBE_Y1
        assert ops.calls[-1] == ("probe", Axis.Y, 100, 10, Units.MM)

        contact(machine, context, Position(40, 47, -2))
        assert machine.state is CornerState.RETRACT_Y1
        assert ops.calls[-1] == ("gcode", "G91 G21 G0 Y-1")

        machine.apply(Event.IDLE, context)
        assert ops.calls[-1] == ("probe", Axis.Y, 25, 10, Units.MM)

        contact(machine, context, Position(40, 46.5, -2))
        assert machine.state is CornerState.STORE_Y
        assert context.probe_position1 == Position(40, 46.5, -2)
        assert ops.commands[-3:] == ["G91 G21 G0 Y-6.5", "G91 G21 G0 X10", "G91 G21 G0 Y10"]

        machine.apply(Event.IDLE, context)
        assert machine.state is CornerState.PROBE_X1
        assert ops.calls[-1] == ("probe", Axis.X, 100, -10, Units.MM)

        contact(machine, context, Position(43, 50, -2))
        assert ops.calls[-1] == ("gcode", "G91 G21 G0 X1")

        machine.apply(Event.IDLE, context)
        assert ops.calls[-1] == ("probe", Axis.X, 25, -10, Units.MM)

        contact(machine, context, Position(43.25, 50, -2))
        assert machine.state is CornerState.STORE_X_FINALIZE
        assert context.probe_position2 == Position(43.25, 50, -2)
        assert ops.commands[-3:] == [
            "G91 G21 G0 X6.75",
            "G91 G21 G0 Y-10",
            "G10 L20 P1 X9.75 Y-9.5",
        ]
        assert context.x_wcs_offset == pytest.approx(9.75)
        assert context.y_wcs_offset == pytest.approx(-9.5)
        assert context.z_wcs_offset == 0.0
        assert ops.completed == [context]

    def test_probe_event_during_setup_ignored(self, setup):
        ops, context, machine = setup
        machine.apply(Event.START, context)

        assert contact(machine, context, Position(0, 0, 0)) is ApplyResult.NO_OP
        assert machine.state is CornerState.SETUP
        assert context.probe_position1 is None
        assert len(ops.calls) == 1


class TestCornerOffsets:
    def test_offsets_include_radius_and_edge_offset(self):
        params = ProbeParameters(probe_diameter=4, x_spacing=-10, y_spacing=10,
                                 x_offset=0.5, y_offset=0.25)
        context = ProbeContext(
            params=params,
            start_position=Position(0, 0, 0),
            probe_position1=Position(-10, 4, 0),
            probe_position2=Position(-3, 10, 0),
        )

        x, y = corner_offsets(context)

        assert x == pytest.approx(3 + 2.5)
        assert y == pytest.approx(-4 - 2.25)

    def test_mirrored_corner_flips_signs(self):
        params = ProbeParameters(probe_diameter=6, x_spacing=10, y_spacing=-10)
        context = ProbeContext(
            params=params,
            start_position=Position(0, 0, 0),
            probe_position1=Position(10, -4, 0),
            probe_position2=Position(3, -10, 0),
        )

        x, y = corner_offsets(context)

        assert x == pytest.approx(-3 - 3)
        assert y == pytest.approx(4 + 3)

    def test_requires_both_contacts(self, corner_params):
        context = ProbeContext(params=corner_params, start_position=Position(0, 0, 0))
        with pytest.raises(ValueError):
            corner_offsets(context)
