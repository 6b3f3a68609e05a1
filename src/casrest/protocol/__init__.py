"""
casrest Protocol Module

Implementation of the CAS REST ticket flow.

Components:
- types: Endpoint layout, states and events
- tickets: TGT and service ticket requesters
- parser: CAS 2.0/3.0 XML response parser
- validator: Service ticket validation with CAS 1.0 fallback
- client: RestClient composing the full flow
"""

from casrest.protocol.types import (
    CAS_NAMESPACE,
    ResponseMode,
    RestFlowState,
    URLScheme,
    ValidationState,
)
from casrest.protocol.parser import ResponseParser, parse_service_response
from casrest.protocol.tickets import (
    GrantingTicketRequester,
    ServiceTicketRequester,
    granting_ticket_from_location,
)
from casrest.protocol.validator import (
    ServiceTicketValidator,
    ValidationStateMachine,
)
from casrest.protocol.client import RestClient, RestFlowStateMachine

__all__ = [
    # Types
    "CAS_NAMESPACE",
    "ResponseMode",
    "RestFlowState",
    "URLScheme",
    "ValidationState",
    # Parser
    "ResponseParser",
    "parse_service_response",
    # Requesters
    "GrantingTicketRequester",
    "ServiceTicketRequester",
    "granting_ticket_from_location",
    # Validator
    "ServiceTicketValidator",
    "ValidationStateMachine",
    # Client
    "RestClient",
    "RestFlowStateMachine",
]
