"""
casrest Service Ticket Validator

Validates a service ticket against the CAS server.

Protocol Flow:
1. GET {casBase}/serviceValidate?service=..&ticket=..  (CAS 2.0+, XML)
2. Only if step 1 answered 404:
   GET {casBase}/validate?service=..&ticket=..         (CAS 1.0, text)

CAS 1.0 bodies are exactly "yes\\n<user>\\n" or "no\\n\\n". Any other
framing is a parse error; nothing is guessed.
"""

from __future__ import annotations

from typing import Any, Dict, Tuple, Union

import attrs
import httpx
import structlog
from returns.result import Failure

from casrest.core.exceptions import (
    CASError,
    ParseError,
    ProtocolError,
    StateError,
    TransportError,
)
from casrest.core.state_machine import StateMachineBase, TransitionEntry
from casrest.core.types import (
    AuthenticationResponse,
    ServiceTicket,
    ServiceURL,
    ValidationOutcome,
)
from casrest.protocol.parser import ResponseParser
from casrest.protocol.types import (
    EndpointNotFound,
    ResponseMode,
    TicketAccepted,
    TicketDenied,
    URLScheme,
    ValidationContext,
    ValidationFailed,
    ValidationStarted,
    ValidationState,
)
from casrest.transport.http_transport import HTTPTransport

CAS1_NEGATIVE = "no\n\n"
CAS1_POSITIVE_PREFIX = "yes\n"


# =============================================================================
# VALIDATION STATE MACHINE
# =============================================================================


@attrs.define
class ValidationStateMachine(
    StateMachineBase[ValidationState, Any, ValidationContext]
):
    """
    State machine for one service ticket validation.

    States:
    - INITIAL: Nothing sent yet
    - CAS2_ATTEMPT: serviceValidate request in flight
    - CAS1_ATTEMPT: validate request in flight (reached only from a 404)
    - SUCCEEDED / NOT_AUTHENTICATED / FAILED: terminal

    CAS1_ATTEMPT has no EndpointNotFound transition, so a validation
    falls back at most once.
    """

    def initial_state(self) -> ValidationState:
        return ValidationState.INITIAL

    def transition_table(
        self,
    ) -> Dict[Tuple[ValidationState, type], TransitionEntry]:
        return {
            (ValidationState.INITIAL, ValidationStarted): (
                ValidationState.CAS2_ATTEMPT,
                self._handle_started,
            ),
            # CAS 2.0+
            (ValidationState.CAS2_ATTEMPT, EndpointNotFound): (
                ValidationState.CAS1_ATTEMPT,
                self._handle_not_found,
            ),
            (ValidationState.CAS2_ATTEMPT, TicketAccepted): (
                ValidationState.SUCCEEDED,
                self._handle_accepted,
            ),
            (ValidationState.CAS2_ATTEMPT, ValidationFailed): (
                ValidationState.FAILED,
                self._handle_failed,
            ),
            # CAS 1.0 fallback
            (ValidationState.CAS1_ATTEMPT, TicketAccepted): (
                ValidationState.SUCCEEDED,
                self._handle_accepted,
            ),
            (ValidationState.CAS1_ATTEMPT, TicketDenied): (
                ValidationState.NOT_AUTHENTICATED,
                self._handle_denied,
            ),
            (ValidationState.CAS1_ATTEMPT, ValidationFailed): (
                ValidationState.FAILED,
                self._handle_failed,
            ),
        }

    @staticmethod
    def _handle_started(
        event: ValidationStarted, ctx: ValidationContext
    ) -> ValidationContext:
        return attrs.evolve(ctx, service=event.service, ticket=event.ticket, protocol_version=2)

    @staticmethod
    def _handle_not_found(
        event: EndpointNotFound, ctx: ValidationContext
    ) -> ValidationContext:
        return attrs.evolve(ctx, protocol_version=1, fallback_used=True)

    @staticmethod
    def _handle_accepted(
        event: TicketAccepted, ctx: ValidationContext
    ) -> ValidationContext:
        return attrs.evolve(ctx, response=event.response, error=None)

    @staticmethod
    def _handle_denied(
        event: TicketDenied, ctx: ValidationContext
    ) -> ValidationContext:
        return attrs.evolve(ctx, response=None, error=None)

    @staticmethod
    def _handle_failed(
        event: ValidationFailed, ctx: ValidationContext
    ) -> ValidationContext:
        return attrs.evolve(ctx, response=None, error=event.error)


def success_requires_response(state: ValidationState, ctx: ValidationContext) -> bool:
    """Invariant: SUCCEEDED carries the validated principal."""
    if state == ValidationState.SUCCEEDED:
        return ctx.response is not None and ctx.error is None
    return True


def failure_requires_error(state: ValidationState, ctx: ValidationContext) -> bool:
    """Invariant: FAILED carries the error that caused it."""
    if state == ValidationState.FAILED:
        return ctx.error is not None and ctx.response is None
    return True


def cas1_only_after_not_found(state: ValidationState, ctx: ValidationContext) -> bool:
    """Invariant: the CAS 1.0 endpoint is only used after a CAS 2.0 404."""
    if state == ValidationState.CAS1_ATTEMPT:
        return ctx.fallback_used and ctx.protocol_version == 1
    return True


# =============================================================================
# CAS 1.0 TEXT FORMAT
# =============================================================================


def is_cas1_positive(body: str) -> bool:
    """True for exactly "yes\\n<user>\\n" with a non-empty single-line user."""
    return (
        body.startswith(CAS1_POSITIVE_PREFIX)
        and body.endswith("\n")
        and body.count("\n") == 2
        and len(body) > len(CAS1_POSITIVE_PREFIX) + 1
    )


def cas1_user(body: str) -> str:
    """Principal from a positive CAS 1.0 body: drop "yes\\n" and the final newline."""
    return body[4 : len(body) - 1]


# =============================================================================
# SERVICE TICKET VALIDATOR
# =============================================================================


def _as_service_url(service_url: Union[ServiceURL, str]) -> ServiceURL:
    if isinstance(service_url, ServiceURL):
        return service_url
    return ServiceURL(service_url)


def _as_service_ticket(ticket: Union[ServiceTicket, str]) -> ServiceTicket:
    if isinstance(ticket, ServiceTicket):
        return ticket
    return ServiceTicket(ticket)


@attrs.define
class ServiceTicketValidator:
    """
    Validates service tickets, CAS 2.0+ first with CAS 1.0 fallback.

    Holds only construction-time configuration; every call builds its own
    ValidationStateMachine, so one validator can serve concurrent requests.

    Example:
        validator = ServiceTicketValidator(
            transport=HTTPTransport(),
            cas_url="https://cas.example.com/cas",
        )
        outcome = validator.validate_ticket(
            "https://app.example.com/reports", "ST-1-abc"
        )
        if outcome.is_success:
            print(outcome.response.user)
    """

    transport: HTTPTransport
    cas_url: httpx.URL = attrs.field(converter=httpx.URL)
    url_scheme: URLScheme = attrs.Factory(URLScheme)
    parser: ResponseParser = attrs.Factory(ResponseParser)
    _logger: Any = attrs.Factory(lambda: structlog.get_logger())

    def service_validate_url(
        self, service_url: Union[ServiceURL, str], ticket: Union[ServiceTicket, str]
    ) -> str:
        """CAS 2.0+ validation URL for the given service and ticket."""
        return str(
            self.url_scheme.service_validate_url(
                self.cas_url, _as_service_url(service_url), _as_service_ticket(ticket)
            )
        )

    def validate_url(
        self, service_url: Union[ServiceURL, str], ticket: Union[ServiceTicket, str]
    ) -> str:
        """CAS 1.0 validation URL for the given service and ticket."""
        return str(
            self.url_scheme.validate_url(
                self.cas_url, _as_service_url(service_url), _as_service_ticket(ticket)
            )
        )

    def validate_ticket(
        self,
        service_url: Union[ServiceURL, str],
        ticket: Union[ServiceTicket, str],
    ) -> ValidationOutcome:
        """
        Validate a service ticket for the service it was issued to.

        Args:
            service_url: Service the ticket was issued for (same URL as
                used in the service ticket request)
            ticket: Service ticket to validate

        Returns:
            ValidationOutcome: SUCCESS, NOT_AUTHENTICATED (CAS 1.0 "no")
            or ERROR with a TransportError, ProtocolError,
            AuthenticationFailure or ParseError
        """
        service_url = _as_service_url(service_url)
        ticket = _as_service_ticket(ticket)
        machine = self._new_state_machine()

        self._logger.info(
            "validating_ticket",
            ticket=ticket.redacted,
            service=service_url.canonical(),
        )

        self._advance(machine, ValidationStarted(service=service_url.canonical(), ticket=ticket))
        return self._attempt_cas2(machine, service_url, ticket)

    def _new_state_machine(self) -> ValidationStateMachine:
        machine = ValidationStateMachine(
            _state=ValidationState.INITIAL,
            _context=ValidationContext(),
            _logger=self._logger,
        )
        machine.add_invariant("success_requires_response", success_requires_response)
        machine.add_invariant("failure_requires_error", failure_requires_error)
        machine.add_invariant("cas1_only_after_not_found", cas1_only_after_not_found)
        return machine

    @staticmethod
    def _advance(machine: ValidationStateMachine, event: Any) -> None:
        result = machine.process_event(event)
        if isinstance(result, Failure):
            raise StateError(result.failure())

    def _attempt_cas2(
        self,
        machine: ValidationStateMachine,
        service_url: ServiceURL,
        ticket: ServiceTicket,
    ) -> ValidationOutcome:
        url = self.service_validate_url(service_url, ticket)
        try:
            response = self.transport.get(url)
        except TransportError as e:
            return self._fail(machine, e)

        if response.status_code == httpx.codes.NOT_FOUND:
            self._logger.info("cas2_endpoint_not_found", fallback="cas1")
            self._advance(machine, EndpointNotFound(status=response.status_code))
            return self._attempt_cas1(machine, service_url, ticket)

        body = response.text
        if response.status_code != httpx.codes.OK:
            return self._fail(
                machine,
                ProtocolError(f"cas: validate ticket: {body}", code=str(response.status_code)),
            )

        self._logger.debug(
            "received_authentication_response", protocol=2, length=len(response.content)
        )
        outcome = self.parser.parse(response.content, ResponseMode.XML)
        if outcome.is_success:
            self._advance(machine, TicketAccepted(response=outcome.response))
        else:
            self._advance(
                machine,
                ValidationFailed(error=outcome.error, kind=outcome.error.kind, detail=outcome.detail),
            )
        return outcome

    def _attempt_cas1(
        self,
        machine: ValidationStateMachine,
        service_url: ServiceURL,
        ticket: ServiceTicket,
    ) -> ValidationOutcome:
        url = self.validate_url(service_url, ticket)
        try:
            response = self.transport.get(url)
        except TransportError as e:
            return self._fail(machine, e)

        body = response.text
        if response.status_code != httpx.codes.OK:
            return self._fail(
                machine,
                ProtocolError(f"cas: validate ticket: {body}", code=str(response.status_code)),
            )

        self._logger.debug("received_authentication_response", protocol=1, length=len(body))

        if body == CAS1_NEGATIVE:
            self._advance(machine, TicketDenied())
            return ValidationOutcome.not_authenticated()

        if not is_cas1_positive(body):
            return self._fail(machine, ParseError(f"Unrecognized CAS 1.0 response: {body!r}"))

        success = AuthenticationResponse(user=cas1_user(body))
        self._advance(machine, TicketAccepted(response=success))
        return ValidationOutcome.success(success)

    def _fail(self, machine: ValidationStateMachine, error: CASError) -> ValidationOutcome:
        self._logger.info(
            "ticket_validation_failed",
            kind=error.kind.name,
            error=error.message,
            state=machine.state.name,
        )
        self._advance(
            machine,
            ValidationFailed(error=error, kind=error.kind, detail=error.message),
        )
        return ValidationOutcome.failure(error)
