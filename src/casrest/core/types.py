"""
casrest Core Types

Fundamental type definitions for the CAS REST ticket flow.

Design Principles:
- Immutable: All types use frozen attrs for safety
- Validated: Type constraints enforced at construction
- Secret-aware: passwords and ticket values stay out of reprs and logs
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum, auto
from typing import TYPE_CHECKING, Dict, Optional, Tuple, Union

import attrs
import httpx
from attrs import field, validators

if TYPE_CHECKING:
    from casrest.core.exceptions import CASError


# =============================================================================
# ENUMS
# =============================================================================


class ErrorKind(Enum):
    """Classification of a failed CAS exchange."""

    TRANSPORT = auto()
    PROTOCOL = auto()
    AUTHENTICATION_FAILURE = auto()
    PARSE = auto()


class OutcomeStatus(Enum):
    """Terminal status of a service ticket validation."""

    SUCCESS = auto()
    NOT_AUTHENTICATED = auto()
    ERROR = auto()


# =============================================================================
# CREDENTIALS AND TICKETS
# =============================================================================


@attrs.define(frozen=True, slots=True)
class Credentials:
    """
    Username/password pair taken from a Basic Authentication header.

    Consumed once per request. The password never appears in repr().
    """

    username: str = field(validator=validators.instance_of(str))
    password: str = field(validator=validators.instance_of(str), repr=False)


def _redact(value: str, keep: int = 8) -> str:
    if len(value) <= keep:
        return value
    return value[:keep] + "..."


@attrs.define(frozen=True, slots=True)
class GrantingTicket:
    """
    Ticket Granting Ticket issued by POST /v1/tickets.

    INVARIANT: value is non-empty and contains no path separator
    """

    value: str = field(validator=[validators.instance_of(str), validators.min_len(1)])

    def __attrs_post_init__(self) -> None:
        if "/" in self.value:
            raise ValueError(f"Granting ticket must be a single path segment: {self.value!r}")

    @property
    def redacted(self) -> str:
        """Ticket prefix safe for logging."""
        return _redact(self.value)

    def __str__(self) -> str:
        return self.value


@attrs.define(frozen=True, slots=True)
class ServiceTicket:
    """
    Single-use Service Ticket scoped to exactly one service URL.

    INVARIANT: value is non-empty
    """

    value: str = field(validator=[validators.instance_of(str), validators.min_len(1)])

    @property
    def redacted(self) -> str:
        """Ticket prefix safe for logging."""
        return _redact(self.value)

    def __str__(self) -> str:
        return self.value


@attrs.define(frozen=True, slots=True)
class ServiceURL:
    """
    Identifier of the protected resource a Service Ticket is issued for.

    CAS compares the service string byte for byte on issuance and on
    validation, so every request built by this package renders the URL
    through canonical().

    INVARIANT: raw is an absolute URL
    """

    raw: str = field(validator=[validators.instance_of(str), validators.min_len(1)])

    def __attrs_post_init__(self) -> None:
        try:
            url = httpx.URL(self.raw)
        except httpx.InvalidURL as e:
            raise ValueError(f"Invalid service URL {self.raw!r}: {e}") from e
        if not url.scheme or not url.host:
            raise ValueError(f"Service URL must be absolute: {self.raw!r}")

    def canonical(self) -> str:
        """
        Render the URL the same way every time.

        A leftover ``ticket`` query parameter (from a previous CAS redirect)
        is dropped; every other parameter keeps its position.
        """
        url = httpx.URL(self.raw)
        if "ticket" in url.params:
            url = url.copy_remove_param("ticket")
        return str(url)

    def __str__(self) -> str:
        return self.canonical()


def optional_service_url(value: Union[ServiceURL, str, None]) -> Optional[ServiceURL]:
    """attrs converter: str -> ServiceURL, None and ServiceURL unchanged."""
    if value is None or isinstance(value, ServiceURL):
        return value
    return ServiceURL(value)


# =============================================================================
# RESULT TYPES
# =============================================================================


def _freeze_attributes(value: Optional[Dict[str, Tuple[str, ...]]]) -> Dict[str, Tuple[str, ...]]:
    if not value:
        return {}
    return {str(name): tuple(values) for name, values in value.items()}


@attrs.define(frozen=True, slots=True)
class AuthenticationResponse:
    """
    Principal and attributes returned by a successful validation.

    Attributes:
        user: Authenticated principal identifier
        attributes: Attribute name -> values in document order
        authentication_date: When CAS authenticated the user (CAS 3.0)
        is_new_login: True if the user just entered credentials
        is_remembered_login: True if "remember me" was used
        member_of: Group memberships reported by CAS
    """

    user: str = field(validator=[validators.instance_of(str), validators.min_len(1)])
    attributes: Dict[str, Tuple[str, ...]] = field(
        factory=dict, converter=_freeze_attributes
    )
    authentication_date: Optional[datetime] = None
    is_new_login: bool = False
    is_remembered_login: bool = False
    member_of: Tuple[str, ...] = field(default=(), converter=tuple)

    def get_attribute(self, name: str) -> Optional[str]:
        """Return the first value of an attribute, or None."""
        values = self.attributes.get(name)
        if not values:
            return None
        return values[0]

    def has_attribute(self, name: str) -> bool:
        """Check if the attribute was released by CAS."""
        return name in self.attributes


@attrs.define(frozen=True, slots=True)
class ValidationOutcome:
    """
    Result of validating a service ticket.

    Exactly one of:
    - SUCCESS with an AuthenticationResponse
    - NOT_AUTHENTICATED (CAS 1.0 "no"; a conforming negative, not a fault)
    - ERROR with a CASError describing kind and detail
    """

    status: OutcomeStatus = field(validator=validators.instance_of(OutcomeStatus))
    response: Optional[AuthenticationResponse] = None
    error: Optional["CASError"] = None

    def __attrs_post_init__(self) -> None:
        if self.status == OutcomeStatus.SUCCESS:
            if self.response is None or self.error is not None:
                raise ValueError("Successful outcome must carry only a response")
        elif self.status == OutcomeStatus.ERROR:
            if self.error is None or self.response is not None:
                raise ValueError("Error outcome must carry only an error")
        elif self.response is not None or self.error is not None:
            raise ValueError("Not-authenticated outcome carries no payload")

    @classmethod
    def success(cls, response: AuthenticationResponse) -> ValidationOutcome:
        """Create a successful outcome."""
        return cls(status=OutcomeStatus.SUCCESS, response=response)

    @classmethod
    def not_authenticated(cls) -> ValidationOutcome:
        """Create an outcome for an explicit CAS 1.0 denial."""
        return cls(status=OutcomeStatus.NOT_AUTHENTICATED)

    @classmethod
    def failure(cls, error: "CASError") -> ValidationOutcome:
        """Create an error outcome."""
        return cls(status=OutcomeStatus.ERROR, error=error)

    @property
    def is_success(self) -> bool:
        return self.status == OutcomeStatus.SUCCESS

    @property
    def is_not_authenticated(self) -> bool:
        return self.status == OutcomeStatus.NOT_AUTHENTICATED

    @property
    def is_error(self) -> bool:
        return self.status == OutcomeStatus.ERROR

    @property
    def error_kind(self) -> Optional[ErrorKind]:
        """Kind of the carried error, if any."""
        if self.error is None:
            return None
        return self.error.kind

    @property
    def detail(self) -> str:
        """Human-readable summary for logging."""
        if self.status == OutcomeStatus.SUCCESS:
            return f"authenticated as {self.response.user}"
        if self.status == OutcomeStatus.NOT_AUTHENTICATED:
            return "not authenticated"
        return self.error.message
