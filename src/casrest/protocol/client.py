"""
casrest REST Client

High-level CAS REST client.

This module provides a client that:
1. Obtains a TGT from username/password (POST /v1/tickets)
2. Obtains a service ticket for one service URL (POST /v1/tickets/{TGT})
3. Validates the service ticket (serviceValidate, falling back to validate)
4. Runs the three steps as one authentication through RestFlowStateMachine

Nothing is cached: every authenticate() call is a fresh TGT -> ST ->
validation cycle.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Tuple, Union

import attrs
import httpx
import structlog
from returns.result import Failure, Result

from casrest.core.exceptions import CASError, StateError
from casrest.core.state_machine import StateMachineBase, TransitionEntry
from casrest.core.types import (
    GrantingTicket,
    ServiceTicket,
    ServiceURL,
    ValidationOutcome,
    optional_service_url,
)
from casrest.protocol.tickets import GrantingTicketRequester, ServiceTicketRequester
from casrest.protocol.types import (
    CredentialsAccepted,
    GrantingTicketIssued,
    RestFlowContext,
    RestFlowState,
    ServiceTicketIssued,
    StageFailed,
    TicketValidated,
    URLScheme,
)
from casrest.protocol.validator import ServiceTicketValidator
from casrest.transport.http_transport import HTTPTransport


# =============================================================================
# REST FLOW STATE MACHINE
# =============================================================================


@attrs.define
class RestFlowStateMachine(
    StateMachineBase[RestFlowState, Any, RestFlowContext]
):
    """
    State machine for one REST authentication.

    States:
    - INITIAL: Nothing done
    - HAS_CREDENTIALS: Credentials extracted, TGT requested
    - HAS_TGT: TGT issued, ST requested
    - HAS_SERVICE_TICKET: ST issued, validation in progress
    - AUTHENTICATED: Principal validated
    - FAILED: A stage failed or CAS denied the ticket
    """

    def initial_state(self) -> RestFlowState:
        return RestFlowState.INITIAL

    def transition_table(
        self,
    ) -> Dict[Tuple[RestFlowState, type], TransitionEntry]:
        return {
            (RestFlowState.INITIAL, CredentialsAccepted): (
                RestFlowState.HAS_CREDENTIALS,
                self._handle_credentials,
            ),
            (RestFlowState.HAS_CREDENTIALS, GrantingTicketIssued): (
                RestFlowState.HAS_TGT,
                self._handle_granting_ticket,
            ),
            (RestFlowState.HAS_CREDENTIALS, StageFailed): (
                RestFlowState.FAILED,
                self._handle_failure,
            ),
            (RestFlowState.HAS_TGT, ServiceTicketIssued): (
                RestFlowState.HAS_SERVICE_TICKET,
                self._handle_service_ticket,
            ),
            (RestFlowState.HAS_TGT, StageFailed): (
                RestFlowState.FAILED,
                self._handle_failure,
            ),
            (RestFlowState.HAS_SERVICE_TICKET, TicketValidated): (
                RestFlowState.AUTHENTICATED,
                self._handle_validated,
            ),
            (RestFlowState.HAS_SERVICE_TICKET, StageFailed): (
                RestFlowState.FAILED,
                self._handle_failure,
            ),
        }

    @staticmethod
    def _handle_credentials(
        event: CredentialsAccepted, ctx: RestFlowContext
    ) -> RestFlowContext:
        return attrs.evolve(ctx, service=event.service)

    @staticmethod
    def _handle_granting_ticket(
        event: GrantingTicketIssued, ctx: RestFlowContext
    ) -> RestFlowContext:
        return attrs.evolve(ctx, tgt=event.tgt)

    @staticmethod
    def _handle_service_ticket(
        event: ServiceTicketIssued, ctx: RestFlowContext
    ) -> RestFlowContext:
        return attrs.evolve(ctx, service_ticket=event.ticket)

    @staticmethod
    def _handle_validated(
        event: TicketValidated, ctx: RestFlowContext
    ) -> RestFlowContext:
        return attrs.evolve(ctx, response=event.response)

    @staticmethod
    def _handle_failure(
        event: StageFailed, ctx: RestFlowContext
    ) -> RestFlowContext:
        return attrs.evolve(ctx, failed_stage=event.stage, error=event.error)


def service_ticket_requires_tgt(state: RestFlowState, ctx: RestFlowContext) -> bool:
    """Invariant: a service ticket is only held after a TGT was issued."""
    if state == RestFlowState.HAS_SERVICE_TICKET:
        return ctx.tgt is not None and ctx.service_ticket is not None
    return True


def authenticated_requires_response(state: RestFlowState, ctx: RestFlowContext) -> bool:
    """Invariant: AUTHENTICATED carries the validated principal."""
    if state == RestFlowState.AUTHENTICATED:
        return ctx.response is not None and ctx.service_ticket is not None
    return True


def failure_records_stage(state: RestFlowState, ctx: RestFlowContext) -> bool:
    """Invariant: FAILED names the stage that failed."""
    if state == RestFlowState.FAILED:
        return bool(ctx.failed_stage)
    return True


# =============================================================================
# REST CLIENT
# =============================================================================


@attrs.define
class RestClient:
    """
    CAS REST protocol client.

    Provides:
    - TGT acquisition from credentials
    - Service ticket acquisition for a service URL
    - Service ticket validation (CAS 2.0+ with CAS 1.0 fallback)
    - One-call authentication of a username/password pair

    Example:
        client = RestClient(
            cas_url="https://cas.example.com/cas",
            service_url="https://app.example.com/api",
        )
        outcome = client.authenticate("jdoe", "secret")
        if outcome.is_success:
            print(f"Authenticated as {outcome.response.user}")
    """

    cas_url: httpx.URL = attrs.field(converter=httpx.URL)
    service_url: Optional[ServiceURL] = attrs.field(
        default=None, converter=optional_service_url
    )
    transport: HTTPTransport = attrs.Factory(HTTPTransport)
    url_scheme: URLScheme = attrs.Factory(URLScheme)
    _logger: Any = attrs.Factory(lambda: structlog.get_logger())

    _granting_ticket_requester: GrantingTicketRequester = attrs.field(init=False)
    _service_ticket_requester: ServiceTicketRequester = attrs.field(init=False)
    _validator: ServiceTicketValidator = attrs.field(init=False)

    def __attrs_post_init__(self) -> None:
        self._granting_ticket_requester = GrantingTicketRequester(
            transport=self.transport,
            cas_url=self.cas_url,
            url_scheme=self.url_scheme,
            logger=self._logger,
        )
        self._service_ticket_requester = ServiceTicketRequester(
            transport=self.transport,
            cas_url=self.cas_url,
            url_scheme=self.url_scheme,
            logger=self._logger,
        )
        self._validator = ServiceTicketValidator(
            transport=self.transport,
            cas_url=self.cas_url,
            url_scheme=self.url_scheme,
            logger=self._logger,
        )

    @property
    def validator(self) -> ServiceTicketValidator:
        return self._validator

    def _resolve_service(self, service_url: Union[ServiceURL, str, None]) -> ServiceURL:
        resolved = optional_service_url(service_url) or self.service_url
        if resolved is None:
            raise ValueError("No service URL given and none configured on the client")
        return resolved

    def request_granting_ticket(
        self, username: str, password: str
    ) -> Result[GrantingTicket, CASError]:
        """Exchange credentials for a TGT."""
        return self._granting_ticket_requester.request_granting_ticket(username, password)

    def request_service_ticket(
        self,
        tgt: Union[GrantingTicket, str],
        service_url: Union[ServiceURL, str, None] = None,
    ) -> Result[ServiceTicket, CASError]:
        """Exchange a TGT for a service ticket (configured service by default)."""
        return self._service_ticket_requester.request_service_ticket(
            tgt, self._resolve_service(service_url)
        )

    def validate_service_ticket(
        self,
        ticket: Union[ServiceTicket, str],
        service_url: Union[ServiceURL, str, None] = None,
    ) -> ValidationOutcome:
        """Validate a service ticket (configured service by default)."""
        return self._validator.validate_ticket(self._resolve_service(service_url), ticket)

    def service_validate_url(
        self,
        ticket: Union[ServiceTicket, str],
        service_url: Union[ServiceURL, str, None] = None,
    ) -> str:
        """CAS 2.0+ validation URL for a ticket."""
        return self._validator.service_validate_url(self._resolve_service(service_url), ticket)

    def validate_url(
        self,
        ticket: Union[ServiceTicket, str],
        service_url: Union[ServiceURL, str, None] = None,
    ) -> str:
        """CAS 1.0 validation URL for a ticket."""
        return self._validator.validate_url(self._resolve_service(service_url), ticket)

    def authenticate(
        self,
        username: str,
        password: str,
        service_url: Union[ServiceURL, str, None] = None,
    ) -> ValidationOutcome:
        """
        Authenticate a username/password pair for a service.

        Runs TGT request -> ST request -> validation, each feeding the
        next. The first failing stage ends the flow.

        Args:
            username: User name
            password: User password
            service_url: Service to authenticate for (configured service
                by default)

        Returns:
            ValidationOutcome of the validation, or an ERROR outcome
            carrying the failure of an earlier stage
        """
        service = self._resolve_service(service_url)
        machine = self._new_state_machine()

        self._advance(machine, CredentialsAccepted(service=service.canonical()))

        tgt_result = self.request_granting_ticket(username, password)
        if isinstance(tgt_result, Failure):
            return self._fail(machine, "granting_ticket", tgt_result.failure())
        tgt = tgt_result.unwrap()
        self._advance(machine, GrantingTicketIssued(tgt=tgt))

        st_result = self._service_ticket_requester.request_service_ticket(tgt, service)
        if isinstance(st_result, Failure):
            return self._fail(machine, "service_ticket", st_result.failure())
        ticket = st_result.unwrap()
        self._advance(machine, ServiceTicketIssued(ticket=ticket))

        outcome = self._validator.validate_ticket(service, ticket)
        if outcome.is_success:
            self._advance(machine, TicketValidated(response=outcome.response))
            self._logger.info("rest_authentication_succeeded", user=outcome.response.user)
            return outcome

        self._advance(
            machine,
            StageFailed(stage="validation", detail=outcome.detail, error=outcome.error),
        )
        self._logger.info("rest_authentication_failed", stage="validation", error=outcome.detail)
        return outcome

    def _new_state_machine(self) -> RestFlowStateMachine:
        machine = RestFlowStateMachine(
            _state=RestFlowState.INITIAL,
            _context=RestFlowContext(),
            _logger=self._logger,
        )
        machine.add_invariant("service_ticket_requires_tgt", service_ticket_requires_tgt)
        machine.add_invariant("authenticated_requires_response", authenticated_requires_response)
        machine.add_invariant("failure_records_stage", failure_records_stage)
        return machine

    @staticmethod
    def _advance(machine: RestFlowStateMachine, event: Any) -> None:
        result = machine.process_event(event)
        if isinstance(result, Failure):
            raise StateError(result.failure())

    def _fail(
        self, machine: RestFlowStateMachine, stage: str, error: CASError
    ) -> ValidationOutcome:
        self._advance(machine, StageFailed(stage=stage, detail=error.message, error=error))
        self._logger.info(
            "rest_authentication_failed",
            stage=stage,
            kind=error.kind.name,
            error=error.message,
        )
        return ValidationOutcome.failure(error)

    def close(self) -> None:
        """Close the transport."""
        self.transport.close()

    def __enter__(self) -> "RestClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
