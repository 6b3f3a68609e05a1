"""
casrest Ticket Requesters

The two ticket-issuing exchanges of the CAS REST API.

Protocol Flow:
1. Client -> CAS: POST /v1/tickets (username, password)
   CAS -> Client: 201 Created, Location: .../v1/tickets/{TGT}
2. Client -> CAS: POST /v1/tickets/{TGT} (service)
   CAS -> Client: 200 OK, body = {ST}

Neither exchange is retried. Errors are returned as Failure values.
"""

from __future__ import annotations

from typing import Any, Union

import attrs
import httpx
import structlog
from returns.result import Failure, Result, Success

from casrest.core.exceptions import CASError, ProtocolError, TransportError
from casrest.core.types import GrantingTicket, ServiceTicket, ServiceURL
from casrest.protocol.types import URLScheme
from casrest.transport.http_transport import HTTPTransport


def granting_ticket_from_location(location: str) -> GrantingTicket:
    """
    Extract the TGT from a Location header.

    Examples:
        "https://cas.example.com/cas/v1/tickets/TGT-1-abc" -> TGT-1-abc
        "/cas/v1/tickets/TGT-1-abc/" -> TGT-1-abc

    Raises:
        ProtocolError: If the location has no usable final path segment
    """
    try:
        path = httpx.URL(location.strip()).path
    except httpx.InvalidURL as e:
        raise ProtocolError(f"Unparseable Location header {location!r}") from e

    segment = path.rstrip("/").rsplit("/", 1)[-1]
    if not segment:
        raise ProtocolError(f"Location header {location!r} does not name a granting ticket")
    return GrantingTicket(segment)


@attrs.define
class GrantingTicketRequester:
    """
    Exchanges credentials for a Ticket Granting Ticket.

    Example:
        requester = GrantingTicketRequester(transport, "https://cas.example.com/cas")
        result = requester.request_granting_ticket("jdoe", "secret")
        if isinstance(result, Success):
            tgt = result.unwrap()
    """

    transport: HTTPTransport
    cas_url: httpx.URL = attrs.field(converter=httpx.URL)
    url_scheme: URLScheme = attrs.Factory(URLScheme)
    _logger: Any = attrs.Factory(lambda: structlog.get_logger())

    def request_granting_ticket(
        self, username: str, password: str
    ) -> Result[GrantingTicket, CASError]:
        """
        POST credentials to the ticket endpoint.

        Args:
            username: User name
            password: User password (sent once, never logged)

        Returns:
            Success(GrantingTicket) on 201 Created with a Location header,
            Failure(TransportError | ProtocolError) otherwise
        """
        url = str(self.url_scheme.granting_ticket_url(self.cas_url))
        self._logger.info("requesting_granting_ticket", url=url)

        try:
            response = self.transport.post_form(
                url, {"username": username, "password": password}
            )
        except TransportError as e:
            return Failure(e)

        if response.status_code != httpx.codes.CREATED:
            self._logger.info(
                "granting_ticket_rejected",
                status=response.status_code,
            )
            return Failure(
                ProtocolError(
                    f"cas: request granting ticket: unexpected status {response.status_code}",
                    code=str(response.status_code),
                )
            )

        location = response.headers.get("Location")
        if not location:
            return Failure(ProtocolError("cas: request granting ticket: missing Location header"))

        try:
            tgt = granting_ticket_from_location(location)
        except ProtocolError as e:
            return Failure(e)

        self._logger.info("granting_ticket_issued", tgt=tgt.redacted)
        return Success(tgt)


@attrs.define
class ServiceTicketRequester:
    """
    Exchanges a Ticket Granting Ticket for a Service Ticket.

    Issues exactly one request per call and makes no assumption about
    whether the server allows the TGT to be reused afterwards.
    """

    transport: HTTPTransport
    cas_url: httpx.URL = attrs.field(converter=httpx.URL)
    url_scheme: URLScheme = attrs.Factory(URLScheme)
    _logger: Any = attrs.Factory(lambda: structlog.get_logger())

    def request_service_ticket(
        self,
        tgt: Union[GrantingTicket, str],
        service_url: Union[ServiceURL, str],
    ) -> Result[ServiceTicket, CASError]:
        """
        POST the service URL to the TGT resource.

        The service is sent in canonical form, the same form the
        validator later puts in the validation query.

        Returns:
            Success(ServiceTicket) on 200 OK with a non-empty body,
            Failure(TransportError | ProtocolError) otherwise
        """
        if not isinstance(tgt, GrantingTicket):
            tgt = GrantingTicket(tgt)
        if not isinstance(service_url, ServiceURL):
            service_url = ServiceURL(service_url)

        url = str(self.url_scheme.service_ticket_url(self.cas_url, tgt))
        service = service_url.canonical()
        self._logger.info("requesting_service_ticket", tgt=tgt.redacted, service=service)

        try:
            response = self.transport.post_form(url, {"service": service})
        except TransportError as e:
            return Failure(e)

        if response.status_code != httpx.codes.OK:
            self._logger.info(
                "service_ticket_rejected",
                status=response.status_code,
                service=service,
            )
            return Failure(
                ProtocolError(
                    f"cas: request service ticket: unexpected status {response.status_code}",
                    code=str(response.status_code),
                )
            )

        value = response.text.strip()
        if not value:
            return Failure(ProtocolError("cas: request service ticket: empty response body"))

        ticket = ServiceTicket(value)
        self._logger.info("service_ticket_issued", ticket=ticket.redacted, service=service)
        return Success(ticket)
