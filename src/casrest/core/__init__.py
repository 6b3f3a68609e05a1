"""
casrest Core Module

Provides foundational types and abstractions used across the package.

Components:
- types: Value types (tickets, service URL, validation outcome)
- state_machine: Base state machine with invariant checking
- exceptions: Error taxonomy (transport, protocol, authentication, parse)
"""

from casrest.core.types import (
    AuthenticationResponse,
    Credentials,
    ErrorKind,
    GrantingTicket,
    OutcomeStatus,
    ServiceTicket,
    ServiceURL,
    ValidationOutcome,
)
from casrest.core.state_machine import StateMachineBase, Transition
from casrest.core.exceptions import (
    AuthenticationFailure,
    CASError,
    InvariantViolation,
    ParseError,
    ProtocolError,
    StateError,
    TransportError,
)

__all__ = [
    # Types
    "AuthenticationResponse",
    "Credentials",
    "ErrorKind",
    "GrantingTicket",
    "OutcomeStatus",
    "ServiceTicket",
    "ServiceURL",
    "ValidationOutcome",
    # State Machine
    "StateMachineBase",
    "Transition",
    # Exceptions
    "AuthenticationFailure",
    "CASError",
    "InvariantViolation",
    "ParseError",
    "ProtocolError",
    "StateError",
    "TransportError",
]
