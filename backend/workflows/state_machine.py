"""
State Machine - Generic deterministic workflow engine

A machine is defined once with a builder and then only moves when an
external event is applied:

    machine = (
        StateMachineBuilder(Light.OFF)
        .add_transition(Light.OFF, Switch.FLIP, Light.ON)
        .add_transition(Light.ON, Switch.FLIP, Light.OFF)
        .on_enter(Light.ON, lambda ctx: ctx.count_on())
        .build()
    )
    machine.apply(Switch.FLIP, ctx)

The engine knows nothing about what entry actions do.
"""

from __future__ import annotations

from enum import Enum, auto
from types import MappingProxyType
from typing import Callable, Dict, Generic, List, Mapping, Tuple, TypeVar

from core.logger import log_state


S = TypeVar("S", bound=Enum)
E = TypeVar("E", bound=Enum)
C = TypeVar("C")

Action = Callable[[C], None]


class NoMatchPolicy(Enum):
    """What apply() does when the current state has no edge for an event"""
    IGNORE = auto()
    RAISE = auto()


class ApplyResult(Enum):
    """Outcome of apply()"""
    TRANSITIONED = auto()
    NO_OP = auto()


class UnmatchedTransitionError(Exception):
    """Raised under NoMatchPolicy.RAISE when no edge matches"""

    def __init__(self, state: Enum, event: Enum):
        self.state = state
        self.event = event
        super().__init__(f"No transition from {state.name} on {event.name}")


class DuplicateTransitionError(ValueError):
    """Raised by the builder when (state, event) already has an edge"""


class ReentrantApplyError(RuntimeError):
    """Raised when an entry action calls apply() on its own machine"""


class StateMachine(Generic[S, E, C]):
    """
    Immutable-definition state machine.

    Only the current state changes; the transition and entry-action
    tables are fixed at build time.
    """

    def __init__(
        self,
        initial_state: S,
        transitions: Mapping[Tuple[S, E], S],
        entry_actions: Mapping[S, Tuple[Action, ...]],
        policy: NoMatchPolicy,
    ):
        self._state = initial_state
        self._transitions = MappingProxyType(dict(transitions))
        self._entry_actions = MappingProxyType(dict(entry_actions))
        self._policy = policy
        self._history: List[S] = [initial_state]
        self._applying = False

    @property
    def state(self) -> S:
        """Current state"""
        return self._state

    @property
    def policy(self) -> NoMatchPolicy:
        return self._policy

    @property
    def transitions(self) -> Mapping[Tuple[S, E], S]:
        """Read-only transition table"""
        return self._transitions

    @property
    def history(self) -> List[S]:
        """States visited, starting with the initial state"""
        return self._history.copy()

    def can_apply(self, event: E) -> bool:
        """Whether the current state has an edge for event"""
        return (self._state, event) in self._transitions

    def apply(self, event: E, context: C) -> ApplyResult:
        """
        Apply one external event.

        On a matching edge the state changes first, then the target's entry
        actions run in registration order. If an action raises, the state
        change stands and the exception propagates to the caller.
        """
        if self._applying:
            raise ReentrantApplyError(
                f"apply({event.name}) called from an entry action of {self._state.name}"
            )

        target = self._transitions.get((self._state, event))
        if target is None:
            if self._policy is NoMatchPolicy.RAISE:
                raise UnmatchedTransitionError(self._state, event)
            return ApplyResult.NO_OP

        source = self._state
        self._state = target
        self._history.append(target)
        log_state(f"{source.name} --{event.name}--> {target.name}")

        self._applying = True
        try:
            for action in self._entry_actions.get(target, ()):
                action(context)
        finally:
            self._applying = False

        return ApplyResult.TRANSITIONED


class StateMachineBuilder(Generic[S, E, C]):
    """Fluent definition of a StateMachine"""

    def __init__(self, initial_state: S):
        self._initial_state = initial_state
        self._transitions: Dict[Tuple[S, E], S] = {}
        self._entry_actions: Dict[S, List[Action]] = {}
        self._policy = NoMatchPolicy.IGNORE

    def add_transition(self, source: S, event: E, target: S) -> StateMachineBuilder[S, E, C]:
        key = (source, event)
        if key in self._transitions:
            raise DuplicateTransitionError(
                f"{source.name} already has a transition on {event.name} "
                f"(to {self._transitions[key].name})"
            )
        self._transitions[key] = target
        return self

    def on_enter(self, state: S, action: Action) -> StateMachineBuilder[S, E, C]:
        self._entry_actions.setdefault(state, []).append(action)
        return self

    def no_match_policy(self, policy: NoMatchPolicy) -> StateMachineBuilder[S, E, C]:
        self._policy = policy
        return self

    def build(self) -> StateMachine[S, E, C]:
        """Machine at the initial state; initial entry actions are not run."""
        return StateMachine(
            self._initial_state,
            self._transitions,
            {state: tuple(actions) for state, actions in self._entry_actions.items()},
            self._policy,
        )
