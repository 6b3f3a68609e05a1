"""
casrest Exception Types

Custom exceptions for CAS REST protocol errors.

Each exception carries an ErrorKind so callers can tell a network fault
from a protocol fault or an explicit CAS rejection without isinstance
chains.
"""

from __future__ import annotations

from typing import Optional

from casrest.core.types import ErrorKind


class CASError(Exception):
    """Base exception for all casrest errors."""

    kind: ErrorKind = ErrorKind.PROTOCOL

    def __init__(self, message: str, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CASError):
            return NotImplemented
        return (
            type(self) is type(other)
            and self.message == other.message
            and self.code == other.code
        )

    def __hash__(self) -> int:
        return hash((type(self), self.message, self.code))


class TransportError(CASError):
    """
    Network-level failure.

    Connection refused, DNS failure, TLS failure or timeout while talking
    to the CAS server. Never retried.
    """

    kind = ErrorKind.TRANSPORT


class ProtocolError(CASError):
    """
    Protocol-level error.

    The CAS server answered, but with an unexpected status code or a
    response that cannot be interpreted (e.g. no Location header).
    """

    kind = ErrorKind.PROTOCOL


class AuthenticationFailure(CASError):
    """
    CAS explicitly rejected the ticket.

    Raised from a CAS 2.0+ <cas:authenticationFailure> element, which
    carries a failure code (INVALID_TICKET, INVALID_SERVICE, ...) and a
    human-readable description.
    """

    kind = ErrorKind.AUTHENTICATION_FAILURE

    def __init__(self, code: str, description: str = "") -> None:
        message = f"{code}: {description}" if description else code
        super().__init__(message, code=code)
        self.description = description


class ParseError(CASError):
    """
    Response body could not be parsed.

    Malformed XML, an unexpected document shape, or a CAS 1.0 body that
    is neither the "yes" nor the "no" form.
    """

    kind = ErrorKind.PARSE


class StateError(CASError):
    """
    Invalid state transition.

    This indicates an attempt to perform an operation that is
    not valid in the current protocol state.
    """

    pass


class InvariantViolation(CASError):
    """
    Protocol invariant was violated.

    The state machine reached a state whose context does not satisfy
    a registered invariant.
    """

    pass
