"""
casrest Protocol Types

CAS REST protocol structures: endpoint layout, validation states and
the events that drive the two ticket-flow state machines.
"""

from __future__ import annotations

from enum import Enum, auto
from typing import Optional

import attrs
import httpx
from attrs import field, validators

from casrest.core.exceptions import CASError
from casrest.core.types import (
    AuthenticationResponse,
    ErrorKind,
    GrantingTicket,
    ServiceTicket,
    ServiceURL,
)

CAS_NAMESPACE = "http://www.yale.edu/tp/cas"


class ResponseMode(Enum):
    """Shape of a validation response body."""

    XML = auto()  # CAS 2.0 / 3.0 serviceValidate
    TEXT = auto()  # CAS 1.0 validate


# =============================================================================
# ENDPOINT LAYOUT
# =============================================================================


def _join(cas_url: httpx.URL, *segments: str) -> httpx.URL:
    """Append path segments to the CAS base URL, keeping its query string."""
    path = cas_url.path.rstrip("/")
    for segment in segments:
        path = f"{path}/{segment.strip('/')}"
    return cas_url.copy_with(path=path)


@attrs.define(frozen=True, slots=True)
class URLScheme:
    """
    Paths of the CAS endpoints relative to the CAS base URL.

    The defaults match a stock Apereo CAS server; override them for
    deployments that mount the REST API or validators elsewhere.
    """

    rest_endpoint: str = field(default="v1/tickets", validator=validators.min_len(1))
    service_validate: str = field(default="serviceValidate", validator=validators.min_len(1))
    validate: str = field(default="validate", validator=validators.min_len(1))

    def granting_ticket_url(self, cas_url: httpx.URL) -> httpx.URL:
        """POST target for credentials: {casBase}/v1/tickets"""
        return _join(cas_url, self.rest_endpoint)

    def service_ticket_url(self, cas_url: httpx.URL, tgt: GrantingTicket) -> httpx.URL:
        """POST target for a service ticket: {casBase}/v1/tickets/{TGT}"""
        return _join(cas_url, self.rest_endpoint, tgt.value)

    def service_validate_url(
        self, cas_url: httpx.URL, service_url: ServiceURL, ticket: ServiceTicket
    ) -> httpx.URL:
        """CAS 2.0+ validation URL with service and ticket appended."""
        return self._validation_url(_join(cas_url, self.service_validate), service_url, ticket)

    def validate_url(
        self, cas_url: httpx.URL, service_url: ServiceURL, ticket: ServiceTicket
    ) -> httpx.URL:
        """CAS 1.0 validation URL with service and ticket appended."""
        return self._validation_url(_join(cas_url, self.validate), service_url, ticket)

    @staticmethod
    def _validation_url(
        endpoint: httpx.URL, service_url: ServiceURL, ticket: ServiceTicket
    ) -> httpx.URL:
        # add, never set: parameters already on the CAS URL are kept
        return endpoint.copy_add_param("service", service_url.canonical()).copy_add_param(
            "ticket", ticket.value
        )


# =============================================================================
# VALIDATION STATE MACHINE
# =============================================================================


class ValidationState(Enum):
    """
    Service ticket validation states.

    INITIAL -> CAS2_ATTEMPT -> (CAS1_ATTEMPT) -> SUCCEEDED | NOT_AUTHENTICATED | FAILED
    """

    INITIAL = auto()
    CAS2_ATTEMPT = auto()
    CAS1_ATTEMPT = auto()
    SUCCEEDED = auto()
    NOT_AUTHENTICATED = auto()
    FAILED = auto()


@attrs.define
class ValidationContext:
    """State carried through one validate_ticket() call."""

    service: str = ""
    ticket: Optional[ServiceTicket] = None
    protocol_version: Optional[int] = None
    fallback_used: bool = False
    response: Optional[AuthenticationResponse] = None
    error: Optional[CASError] = None


@attrs.define(frozen=True, slots=True)
class ValidationStarted:
    """CAS 2.0 serviceValidate request is about to be sent."""

    service: str
    ticket: ServiceTicket


@attrs.define(frozen=True, slots=True)
class EndpointNotFound:
    """serviceValidate answered 404; the server only speaks CAS 1.0."""

    status: int = 404


@attrs.define(frozen=True, slots=True)
class TicketAccepted:
    """CAS confirmed the ticket and named the principal."""

    response: AuthenticationResponse


@attrs.define(frozen=True, slots=True)
class TicketDenied:
    """CAS 1.0 answered "no"."""


@attrs.define(frozen=True, slots=True)
class ValidationFailed:
    """Validation ended with a transport, protocol, parse or CAS failure."""

    error: CASError = field(repr=False)
    kind: ErrorKind = ErrorKind.PROTOCOL
    detail: str = ""


# =============================================================================
# REST FLOW STATE MACHINE
# =============================================================================


class RestFlowState(Enum):
    """
    States of one credentials -> TGT -> ST -> principal cycle.
    """

    INITIAL = auto()
    HAS_CREDENTIALS = auto()
    HAS_TGT = auto()
    HAS_SERVICE_TICKET = auto()
    AUTHENTICATED = auto()
    FAILED = auto()


@attrs.define
class RestFlowContext:
    """State carried through one RestClient.authenticate() call."""

    service: str = ""
    tgt: Optional[GrantingTicket] = None
    service_ticket: Optional[ServiceTicket] = None
    response: Optional[AuthenticationResponse] = None
    failed_stage: Optional[str] = None
    error: Optional[CASError] = None


@attrs.define(frozen=True, slots=True)
class CredentialsAccepted:
    """Credentials were extracted. The username is not recorded."""

    service: str


@attrs.define(frozen=True, slots=True)
class GrantingTicketIssued:
    tgt: GrantingTicket


@attrs.define(frozen=True, slots=True)
class ServiceTicketIssued:
    ticket: ServiceTicket


@attrs.define(frozen=True, slots=True)
class TicketValidated:
    response: AuthenticationResponse


@attrs.define(frozen=True, slots=True)
class StageFailed:
    """A stage of the REST flow did not produce its result."""

    stage: str
    detail: str
    error: Optional[CASError] = field(default=None, repr=False)
