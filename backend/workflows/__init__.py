"""Workflow layer - state machine engine and probe workflows"""

from .state_machine import (
    StateMachine,
    StateMachineBuilder,
    NoMatchPolicy,
    ApplyResult,
    UnmatchedTransitionError,
    DuplicateTransitionError,
    ReentrantApplyError,
)
from .events import Event
from .context import ProbeContext, CycleOperations
from .depth_probe import DepthState, create_depth_probe
from .outside_corner import CornerState, create_outside_corner_probe, corner_offsets

__all__ = [
    'StateMachine', 'StateMachineBuilder', 'NoMatchPolicy', 'ApplyResult',
    'UnmatchedTransitionError', 'DuplicateTransitionError', 'ReentrantApplyError',
    'Event', 'ProbeContext', 'CycleOperations',
    'DepthState', 'create_depth_probe',
    'CornerState', 'create_outside_corner_probe', 'corner_offsets',
]
