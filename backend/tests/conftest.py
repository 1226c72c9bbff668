"""Pytest configuration and shared fixtures."""

import sys
from pathlib import Path

import pytest

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.backend import MockBackend
from core.types import Position, ProbeParameters


@pytest.fixture
def depth_params() -> ProbeParameters:
    """Depth probe: 5 down, fast/slow 100/25, retract to 10, Z offset 0.5."""
    return ProbeParameters(
        z_spacing=-5,
        feed_rate=100,
        feed_rate_slow=25,
        retract_height=10,
        z_offset=0.5,
    )


@pytest.fixture
def corner_params() -> ProbeParameters:
    """Outside corner: 6mm probe, step off -10 in X, approach +10 in Y."""
    return ProbeParameters(
        probe_diameter=6,
        x_spacing=-10,
        y_spacing=10,
        x_offset=0,
        y_offset=0,
        feed_rate=100,
        feed_rate_slow=25,
    )


@pytest.fixture
def start_position() -> Position:
    return Position(50, 40, -2)


@pytest.fixture
def mock_backend(start_position) -> MockBackend:
    """Ready backend sitting at the start position."""
    return MockBackend(ready=True, position=start_position)
