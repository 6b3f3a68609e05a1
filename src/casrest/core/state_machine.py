"""
casrest State Machine Base

Abstract base class for the ticket-flow state machines with:
- Explicit transition tables (anything not listed is rejected)
- Invariant checking before a transition is committed
- Transition history for auditing a single authentication attempt

Design Principles:
1. Context updaters are pure functions (event, context) -> context
2. All state changes go through process_event()
3. One structured log entry per committed transition
4. A machine lives for one call; nothing is shared between requests
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Generic, List, Tuple, TypeVar

import attrs
import structlog
from returns.result import Failure, Result, Success

from casrest.core.exceptions import InvariantViolation


S = TypeVar("S", bound=Enum)  # State type
E = TypeVar("E")  # Event type
C = TypeVar("C")  # Context type


@attrs.define(frozen=True, slots=True)
class Transition(Generic[S, E]):
    """Immutable record of a committed state transition."""

    from_state: S
    event_type: str
    to_state: S
    timestamp: datetime
    event_data: Dict[str, Any] = attrs.Factory(dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "from_state": self.from_state.name,
            "event_type": self.event_type,
            "to_state": self.to_state.name,
            "timestamp": self.timestamp.isoformat(),
            "event_data": self.event_data,
        }


# (state, context) -> bool
InvariantFn = Callable[[Any, Any], bool]

# (next_state, context_updater)
TransitionEntry = Tuple[S, Callable[[Any, Any], Any]]


@attrs.define
class StateMachineBase(ABC, Generic[S, E, C]):
    """
    Base state machine for the CAS ticket lifecycle.

    Usage:
        class MyMachine(StateMachineBase[MyState, Any, MyContext]):
            def initial_state(self) -> MyState:
                return MyState.INITIAL

            def transition_table(self):
                return {
                    (MyState.INITIAL, Started): (MyState.RUNNING, self._on_start),
                }

            @staticmethod
            def _on_start(event: Started, ctx: MyContext) -> MyContext:
                return attrs.evolve(ctx, started=True)
    """

    _state: S = attrs.field(alias="_state")
    _context: C = attrs.field(alias="_context")
    _history: List[Transition[S, E]] = attrs.field(factory=list, alias="_history")
    _invariants: List[Tuple[str, InvariantFn]] = attrs.field(factory=list, alias="_invariants")
    _logger: Any = attrs.field(factory=lambda: structlog.get_logger(), alias="_logger")

    @abstractmethod
    def initial_state(self) -> S:
        """Return the initial state for this state machine."""
        ...

    @abstractmethod
    def transition_table(self) -> Dict[Tuple[S, type], TransitionEntry]:
        """Map (current_state, event_type) to (next_state, context_updater)."""
        ...

    @property
    def machine_name(self) -> str:
        return type(self).__name__

    @property
    def state(self) -> S:
        """Current state (read-only)."""
        return self._state

    @property
    def context(self) -> C:
        """Current context (read-only)."""
        return self._context

    def process_event(self, event: E) -> Result[S, str]:
        """
        Apply an event and move to the next state.

        Returns:
            Success(new_state) if the transition was committed
            Failure(error_message) if no transition exists or the
            context updater failed

        Raises:
            InvariantViolation: If an invariant fails for the new state
        """
        event_type = type(event)
        key = (self._state, event_type)

        table = self.transition_table()
        if key not in table:
            self._logger.warning(
                "invalid_transition",
                machine=self.machine_name,
                current_state=self._state.name,
                event_type=event_type.__name__,
            )
            return Failure(
                f"No transition for state {self._state.name} with event {event_type.__name__}"
            )

        next_state, context_updater = table[key]

        try:
            new_context = context_updater(event, self._context)
        except (TypeError, ValueError, AttributeError) as e:
            self._logger.error(
                "context_update_failed",
                machine=self.machine_name,
                error=str(e),
                current_state=self._state.name,
                event_type=event_type.__name__,
            )
            return Failure(f"Context update failed: {e}")

        for name, invariant in self._invariants:
            if not invariant(next_state, new_context):
                self._logger.error(
                    "invariant_violated",
                    machine=self.machine_name,
                    invariant=name,
                    from_state=self._state.name,
                    to_state=next_state.name,
                )
                raise InvariantViolation(f"Invariant '{name}' violated")

        self._history.append(
            Transition(
                from_state=self._state,
                event_type=event_type.__name__,
                to_state=next_state,
                timestamp=datetime.now(timezone.utc),
                event_data=self._snapshot_event(event),
            )
        )

        self._logger.info(
            "state_transition",
            machine=self.machine_name,
            from_state=self._state.name,
            to_state=next_state.name,
            event_type=event_type.__name__,
        )

        self._state = next_state
        self._context = new_context

        return Success(next_state)

    def add_invariant(self, name: str, invariant: InvariantFn) -> None:
        """
        Register an invariant checked before every transition commits.

        Args:
            name: Human-readable name for error messages
            invariant: Function (state, context) -> bool
        """
        self._invariants.append((name, invariant))

    def get_trace(self) -> List[Transition[S, E]]:
        """Return a copy of the transition history."""
        return list(self._history)

    def visited_states(self) -> List[S]:
        """States in the order they were entered, starting with the initial one."""
        if not self._history:
            return [self._state]
        return [self._history[0].from_state] + [t.to_state for t in self._history]

    def export_trace_json(self) -> str:
        """Export trace as JSON string."""
        return json.dumps(
            {
                "machine": self.machine_name,
                "initial_state": self.initial_state().name,
                "final_state": self._state.name,
                "transitions": [t.to_dict() for t in self._history],
            },
            indent=2,
        )

    def _snapshot_event(self, event: E) -> Dict[str, Any]:
        """Serializable snapshot of the event (private fields excluded)."""
        if attrs.has(type(event)):
            return attrs.asdict(
                event,
                recurse=False,
                filter=lambda attr, value: not attr.name.startswith("_") and attr.repr,
                value_serializer=self._serialize_value,
            )
        return {"type": type(event).__name__}

    @staticmethod
    def _serialize_value(
        inst: type, field: attrs.Attribute, value: Any  # noqa: ARG004
    ) -> Any:
        """Serialize values for JSON export."""
        if isinstance(value, datetime):
            return value.isoformat()
        if isinstance(value, Enum):
            return value.name
        if hasattr(value, "redacted"):
            return value.redacted
        if attrs.has(type(value)):
            return f"<{type(value).__name__}>"
        return value
