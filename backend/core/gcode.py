"""
G-Code Builder - Single responsibility: building G-code command strings
"""

from typing import Dict

from .types import (
    Axis,
    Units,
    WorkCoordinateSystem,
    RapidMoveCommand,
    SetWorkOffsetCommand,
    ProbeCommand,
    AbsoluteModeCommand,
)


class GCodeBuilder:
    """Builds G-code command strings"""

    @staticmethod
    def relative_rapid(axis: Axis, distance: float, units: Units) -> str:
        """Relative rapid move along one axis, e.g. G91 G21 G0 Z1"""
        return RapidMoveCommand(axis, distance, units, relative=True).to_gcode()

    @staticmethod
    def absolute_rapid(axis: Axis, value: float, units: Units) -> str:
        """Absolute rapid move along one axis, e.g. G90 G21 G0 Z10"""
        return RapidMoveCommand(axis, value, units, relative=False).to_gcode()

    @staticmethod
    def set_work_offsets(wcs: WorkCoordinateSystem, offsets: Dict[Axis, float]) -> str:
        """Write one or more axes of a work coordinate register in one command"""
        return SetWorkOffsetCommand(wcs, dict(offsets)).to_gcode()

    @staticmethod
    def probe(axis: Axis, distance: float, feed_rate: float, units: Units) -> str:
        """Relative straight probe, e.g. G91 G21 G38.2 Z-5 F100"""
        return ProbeCommand(axis, distance, feed_rate, units).to_gcode()

    @staticmethod
    def absolute_mode() -> str:
        """Set absolute positioning"""
        return AbsoluteModeCommand().to_gcode()

    @staticmethod
    def status_query() -> str:
        """GRBL real-time status report request"""
        return "?"
