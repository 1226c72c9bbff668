"""
End-to-end probe cycles: ProbeService -> GrblBackend -> MockTransport.

The mock transport simulates surfaces, so the workflows run against
real status and PRB reports driven by poll().
"""

import pytest
import serial

from core.backend import ControlState, GrblBackend, StatusEvent
from core.transport import MockTransport
from core.types import Axis, Position, ProbeParameters
from probe_service import PreconditionError, ProbeService


def run_until_done(backend, service, max_polls=20):
    """Poll until the cycle finishes; return the number of polls used."""
    for polls in range(1, max_polls + 1):
        backend.poll()
        if not service.is_cycle_active():
            return polls
    raise AssertionError("cycle did not finish")


@pytest.fixture
def transport():
    return MockTransport(Position(0, 0, 0))


@pytest.fixture
def backend(transport):
    return GrblBackend(transport)


@pytest.fixture
def service(backend):
    return ProbeService(backend)


class TestDepthOnController:
    def test_depth_cycle(self, transport, backend, service, depth_params):
        transport.surfaces[Axis.Z] = -3

        service.start_depth_probe(service.create_context(depth_params))
        run_until_done(backend, service)

        assert transport.sent_commands == [
            "G91 G21 G38.2 Z-5 F100",
            "G90",
            "G91 G21 G0 Z1",
            "G91 G21 G38.2 Z-5 F25",
            "G90",
            "G10 L20 P1 Z0.5",
            "G90 G21 G0 Z10",
        ]
        assert transport.position == Position(0, 0, 10)
        assert service.last_result.probe_position1 == Position(0, 0, -3)
        assert service.last_error is None

    def test_history_matches_sent_commands(self, transport, backend, service, depth_params):
        transport.surfaces[Axis.Z] = -3
        service.start_depth_probe(service.create_context(depth_params))
        run_until_done(backend, service)

        history = [r.gcode for r in backend.history.get_history()]
        assert history == transport.sent_commands
        assert all(r.success for r in backend.history.get_history())

    def test_missed_surface_aborts(self, transport, backend, service, depth_params):
        """No surface within travel: the probe alarms and the cycle ends."""
        service.start_depth_probe(service.create_context(depth_params))

        assert not service.is_cycle_active()
        assert "ALARM" in service.last_error
        assert transport.sent_commands == ["G91 G21 G38.2 Z-5 F100"]

    def test_busy_controller_rejected(self, transport, service, depth_params):
        transport.machine_state = "Run"

        with pytest.raises(PreconditionError):
            service.start_depth_probe(service.create_context(depth_params))

        assert transport.sent_commands == []

    def test_lost_link_mid_cycle(self, transport, backend, service, depth_params):
        transport.surfaces[Axis.Z] = -3
        service.start_depth_probe(service.create_context(depth_params))

        transport.disconnect()
        backend.poll()

        assert not service.is_cycle_active()
        # The queued contact tries to retract over the dead link
        assert "not connected" in service.last_error
        assert transport.sent_commands == ["G91 G21 G38.2 Z-5 F100", "G90"]


class TestCornerOnController:
    def test_corner_cycle(self, transport, backend, service, corner_params):
        transport.surfaces[Axis.Y] = 4
        transport.surfaces[Axis.X] = -3

        service.start_outside_corner_probe(service.create_context(corner_params))
        polls = run_until_done(backend, service)

        assert polls == 5
        assert transport.sent_commands == [
            "G91 G21 G0 X-10",
            "G91 G21 G38.2 Y10 F100",
            "G90",
            "G91 G21 G0 Y-1",
            "G91 G21 G38.2 Y10 F25",
            "G90",
            "G91 G21 G0 Y-4",
            "G91 G21 G0 X10",
            "G91 G21 G0 Y10",
            "G91 G21 G38.2 X-10 F100",
            "G90",
            "G91 G21 G0 X1",
            "G91 G21 G38.2 X-10 F25",
            "G90",
            "G91 G21 G0 X3",
            "G91 G21 G0 Y-10",
            "G10 L20 P1 X6 Y-7",
        ]
        assert transport.position == Position(0, 0, 0)

        result = service.last_result
        assert result.probe_position1 == Position(-10, 4, 0)
        assert result.probe_position2 == Position(-3, 10, 0)
        assert result.offsets.x == pytest.approx(6)
        assert result.offsets.y == pytest.approx(-7)

    def test_corner_with_edge_offsets(self, transport, backend, service):
        transport.surfaces[Axis.Y] = 4
        transport.surfaces[Axis.X] = -3
        params = ProbeParameters(probe_diameter=2, x_spacing=-10, y_spacing=10,
                                 x_offset=0.5, y_offset=0.5)

        service.start_outside_corner_probe(service.create_context(params))
        run_until_done(backend, service)

        # x: 0 - (-3) + (1 + 0.5), y: 0 - 4 - (1 + 0.5)
        assert transport.sent_commands[-1] == "G10 L20 P1 X4.5 Y-5.5"


class UnpluggedTransport(MockTransport):
    """Still claims a connection, but the port fails the way pyserial does when the cable is pulled."""

    def __init__(self, position=None):
        super().__init__(position)
        self.unplugged = False

    def send(self, gcode):
        if self.unplugged:
            raise serial.SerialException("write failed: [Errno 5] Input/output error")
        return super().send(gcode)

    def query_status(self):
        if self.unplugged:
            raise serial.SerialException("device reports readiness to read but returned no data")
        return super().query_status()


class TestSerialFailure:
    @pytest.fixture
    def transport(self):
        return UnpluggedTransport(Position(0, 0, 0))

    def test_unplugged_mid_corner(self, transport, backend, service, corner_params):
        transport.surfaces[Axis.Y] = 4
        transport.surfaces[Axis.X] = -3
        events = []
        backend.add_listener(events.append)

        service.start_outside_corner_probe(service.create_context(corner_params))
        backend.poll()
        backend.poll()
        assert service.is_cycle_active()

        transport.unplugged = True
        backend.poll()

        assert not service.is_cycle_active()
        assert events[-1] == StatusEvent(ControlState.DISCONNECTED)
        assert backend.last_state is ControlState.DISCONNECTED

    def test_unplugged_during_command(self, transport, backend, service, depth_params):
        transport.surfaces[Axis.Z] = -3
        errors = []
        service.on_error = errors.append
        service.start_depth_probe(service.create_context(depth_params))

        transport.unplugged = True
        backend.poll()

        assert not service.is_cycle_active()
        assert "Input/output error" in service.last_error
        assert errors == [service.last_error]
        assert not backend.history.get_history()[-1].success

    def test_unplugged_controller_not_ready(self, transport, backend):
        transport.unplugged = True
        assert not backend.is_ready()
        assert backend.current_position() == Position(0, 0, 0)
