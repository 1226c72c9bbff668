"""
Core immutable types for the touch probe controller.

All value types are frozen dataclasses to prevent accidental mutation.
This keeps probe parameters and emitted command text deterministic and testable.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from enum import Enum
from typing import Dict, Mapping, Optional


# =============================================================================
# Axes, Units, Registers
# =============================================================================


class Axis(Enum):
    """Machine axis. The value is the G-code word letter."""
    X = "X"
    Y = "Y"
    Z = "Z"


class Units(Enum):
    """Measurement units. The value is the G-code unit selector."""
    MM = "G21"
    INCH = "G20"

    @property
    def gcode(self) -> str:
        return self.value


class WorkCoordinateSystem(Enum):
    """
    Work coordinate system registers.

    The value is the P index used by G10 L20 (G54 = P1 ... G59 = P6).
    """
    G54 = 1
    G55 = 2
    G56 = 3
    G57 = 4
    G58 = 5
    G59 = 6

    @property
    def p_value(self) -> int:
        return self.value


# =============================================================================
# Position
# =============================================================================


@dataclass(frozen=True)
class Position:
    """
    Immutable 3D position.

    Units are carried separately (see ProbeParameters.units).
    """
    x: float
    y: float
    z: float

    def get(self, axis: Axis) -> float:
        """Coordinate along one axis."""
        return getattr(self, axis.name.lower())

    def to_dict(self) -> dict:
        """Serialize to dictionary."""
        return {"x": self.x, "y": self.y, "z": self.z}

    @classmethod
    def from_dict(cls, d: dict) -> Position:
        """Deserialize from dictionary."""
        return cls(x=d["x"], y=d["y"], z=d["z"])


# =============================================================================
# Probe Parameters
# =============================================================================


@dataclass(frozen=True)
class ProbeParameters:
    """
    Immutable parameters for one probe cycle.

    Spacing is the signed distance to travel before expecting contact.
    Edge offsets are added on top of the probe tool radius when computing
    the final work offset.
    """
    probe_diameter: float = 6.0
    x_spacing: float = -10.0
    y_spacing: float = 10.0
    z_spacing: float = -5.0
    x_offset: float = 0.0
    y_offset: float = 0.0
    z_offset: float = 0.0
    feed_rate: float = 100.0
    feed_rate_slow: float = 25.0
    retract_height: float = 10.0
    units: Units = Units.MM
    wcs: WorkCoordinateSystem = WorkCoordinateSystem.G54

    def __post_init__(self):
        if self.probe_diameter < 0:
            raise ValueError("probe_diameter must not be negative")
        if self.feed_rate <= 0 or self.feed_rate_slow <= 0:
            raise ValueError("feed rates must be positive")

    @property
    def probe_radius(self) -> float:
        return self.probe_diameter / 2

    def spacing(self, axis: Axis) -> float:
        """Signed travel distance along an axis."""
        return {Axis.X: self.x_spacing, Axis.Y: self.y_spacing, Axis.Z: self.z_spacing}[axis]

    def edge_offset(self, axis: Axis) -> float:
        """User edge offset along an axis."""
        return {Axis.X: self.x_offset, Axis.Y: self.y_offset, Axis.Z: self.z_offset}[axis]

    def to_dict(self) -> dict:
        """Serialize to a JSON-friendly dictionary."""
        d = asdict(self)
        d["units"] = self.units.name
        d["wcs"] = self.wcs.name
        return d

    @classmethod
    def from_dict(cls, d: Mapping) -> ProbeParameters:
        """Deserialize, falling back to defaults for missing keys."""
        values = dict(d)
        if "units" in values:
            values["units"] = Units[values["units"]]
        if "wcs" in values:
            values["wcs"] = WorkCoordinateSystem[values["wcs"]]
        known = cls.__dataclass_fields__.keys()
        return cls(**{k: v for k, v in values.items() if k in known})


DEFAULT_PROBE_PARAMETERS = ProbeParameters()


# =============================================================================
# Commands
# =============================================================================


def format_number(value: float) -> str:
    """
    Format a G-code word value.

    Fixed point, at most 4 decimals, trailing zeros trimmed:
    1 -> "1", -10 -> "-10", 0.5 -> "0.5", 2.6999999 -> "2.7".
    """
    text = f"{value:.4f}".rstrip("0").rstrip(".")
    if text in ("-0", ""):
        return "0"
    return text


@dataclass(frozen=True)
class RapidMoveCommand:
    """
    Single-axis rapid move (G0) with explicit positioning mode and units.

    relative=True  -> "G91 G21 G0 Z1"
    relative=False -> "G90 G21 G0 Z10"
    """
    axis: Axis
    value: float
    units: Units = Units.MM
    relative: bool = True

    def to_gcode(self) -> str:
        mode = "G91" if self.relative else "G90"
        return f"{mode} {self.units.gcode} G0 {self.axis.value}{format_number(self.value)}"


@dataclass(frozen=True)
class SetWorkOffsetCommand:
    """
    Write a work coordinate register (G10 L20).

    Axes are emitted in X, Y, Z order regardless of insertion order.
    """
    wcs: WorkCoordinateSystem
    offsets: Dict[Axis, float]

    def __post_init__(self):
        if not self.offsets:
            raise ValueError("SetWorkOffsetCommand requires at least one axis")

    def to_gcode(self) -> str:
        parts = [f"G10 L20 P{self.wcs.p_value}"]
        for axis in Axis:
            if axis in self.offsets:
                parts.append(f"{axis.value}{format_number(self.offsets[axis])}")
        return " ".join(parts)


@dataclass(frozen=True)
class ProbeCommand:
    """
    Straight probe toward workpiece, alarm if no contact (G38.2).

    Always relative: distance is travel from the current position.
    """
    axis: Axis
    distance: float
    feed_rate: float
    units: Units = Units.MM

    def __post_init__(self):
        if self.feed_rate <= 0:
            raise ValueError("ProbeCommand requires a positive feed rate")

    def to_gcode(self) -> str:
        return (
            f"G91 {self.units.gcode} G38.2 "
            f"{self.axis.value}{format_number(self.distance)} F{format_number(self.feed_rate)}"
        )


@dataclass(frozen=True)
class AbsoluteModeCommand:
    """Restore absolute positioning (G90)."""

    def to_gcode(self) -> str:
        return "G90"


# =============================================================================
# Result Types
# =============================================================================


@dataclass(frozen=True)
class WorkOffsets:
    """Offsets computed by a completed probe cycle."""
    x: Optional[float] = None
    y: Optional[float] = None
    z: Optional[float] = None

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "z": self.z}
