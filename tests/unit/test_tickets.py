"""
Unit tests for casrest.protocol.tickets module.

Tests the TGT and service ticket exchanges of the CAS REST API.
"""

import pytest
from returns.result import Failure, Success

from casrest.core.exceptions import ProtocolError
from casrest.core.types import ErrorKind, GrantingTicket, ServiceURL
from casrest.protocol.tickets import (
    GrantingTicketRequester,
    ServiceTicketRequester,
    granting_ticket_from_location,
)
from casrest.protocol.types import URLScheme
from casrest.transport.http_transport import DEFAULT_USER_AGENT

from tests.helpers import SERVICE_URL, ST, TGT, form


@pytest.fixture
def tgt_requester(transport, cas_url) -> GrantingTicketRequester:
    return GrantingTicketRequester(transport=transport, cas_url=cas_url)


@pytest.fixture
def st_requester(transport, cas_url) -> ServiceTicketRequester:
    return ServiceTicketRequester(transport=transport, cas_url=cas_url)


class TestGrantingTicketFromLocation:
    """Tests for extracting the TGT from a Location header."""

    @pytest.mark.parametrize(
        "location",
        [
            "https://cas.example.com/cas/v1/tickets/TGT-1-abc",
            "/cas/v1/tickets/TGT-1-abc",
            "/cas/v1/tickets/TGT-1-abc/",
            "  https://cas.example.com/cas/v1/tickets/TGT-1-abc  ",
        ],
    )
    def test_last_path_segment(self, location):
        assert granting_ticket_from_location(location) == GrantingTicket("TGT-1-abc")

    @pytest.mark.parametrize("location", ["https://cas.example.com", "/", ""])
    def test_no_segment(self, location):
        with pytest.raises(ProtocolError):
            granting_ticket_from_location(location)


class TestGrantingTicketRequester:
    """Tests for POST {casBase}/v1/tickets."""

    def test_success(self, tgt_requester, cas_server):
        result = tgt_requester.request_granting_ticket("alice", "S3cr3t!pass")

        assert isinstance(result, Success)
        assert result.unwrap() == GrantingTicket(TGT)

    def test_request_form(self, tgt_requester, cas_server):
        tgt_requester.request_granting_ticket("alice", "S3cr3t!pass")

        request = cas_server.requests[0]
        assert request.method == "POST"
        assert str(request.url) == "https://cas.example.com/cas/v1/tickets"
        assert request.headers["Content-Type"] == "application/x-www-form-urlencoded"
        assert form(request) == {"username": ["alice"], "password": ["S3cr3t!pass"]}

    def test_user_agent_sent(self, tgt_requester, cas_server):
        tgt_requester.request_granting_ticket("alice", "S3cr3t!pass")

        assert cas_server.requests[0].headers["User-Agent"] == DEFAULT_USER_AGENT

    @pytest.mark.parametrize("status", [200, 400, 401, 415, 500])
    def test_status_other_than_201(self, tgt_requester, cas_server, status):
        cas_server.grant_status = status

        result = tgt_requester.request_granting_ticket("alice", "wrong")

        assert isinstance(result, Failure)
        assert result.failure().kind == ErrorKind.PROTOCOL
        assert result.failure().code == str(status)

    def test_missing_location(self, tgt_requester, cas_server):
        cas_server.send_location = False

        result = tgt_requester.request_granting_ticket("alice", "S3cr3t!pass")

        assert isinstance(result, Failure)
        assert "Location" in result.failure().message

    def test_transport_error(self, tgt_requester, cas_server):
        cas_server.unreachable = "/v1/tickets"

        result = tgt_requester.request_granting_ticket("alice", "S3cr3t!pass")

        assert result.failure().kind == ErrorKind.TRANSPORT

    def test_custom_rest_endpoint(self, transport, cas_server):
        requester = GrantingTicketRequester(
            transport=transport,
            cas_url="https://cas.example.com/cas",
            url_scheme=URLScheme(rest_endpoint="api/v2/tickets"),
        )

        requester.request_granting_ticket("alice", "S3cr3t!pass")

        assert cas_server.paths == ["/cas/api/v2/tickets"]


class TestServiceTicketRequester:
    """Tests for POST {casBase}/v1/tickets/{TGT}."""

    def test_success(self, st_requester, cas_server, service_url):
        result = st_requester.request_service_ticket(GrantingTicket(TGT), service_url)

        assert result.unwrap().value == ST
        request = cas_server.requests[0]
        assert request.url.path == f"/cas/v1/tickets/{TGT}"
        assert form(request) == {"service": [SERVICE_URL]}

    def test_body_whitespace_stripped(self, st_requester, cas_server, service_url):
        cas_server.service_ticket = f"\n{ST}\r\n"

        result = st_requester.request_service_ticket(TGT, service_url)

        assert result.unwrap().value == ST

    def test_service_sent_in_canonical_form(self, st_requester, cas_server):
        st_requester.request_service_ticket(
            TGT, ServiceURL("https://app.example.com/reports?page=2&ticket=ST-0-old")
        )

        assert form(cas_server.requests[0]) == {
            "service": ["https://app.example.com/reports?page=2"]
        }

    def test_empty_body(self, st_requester, cas_server, service_url):
        cas_server.service_ticket = "  \n"

        result = st_requester.request_service_ticket(TGT, service_url)

        assert isinstance(result, Failure)
        assert result.failure().kind == ErrorKind.PROTOCOL

    @pytest.mark.parametrize("status", [201, 400, 404, 500])
    def test_status_other_than_200(self, st_requester, cas_server, service_url, status):
        cas_server.service_ticket_status = status

        result = st_requester.request_service_ticket(TGT, service_url)

        assert result.failure().code == str(status)

    def test_transport_error(self, st_requester, cas_server, service_url):
        cas_server.unreachable = TGT

        result = st_requester.request_service_ticket(TGT, service_url)

        assert result.failure().kind == ErrorKind.TRANSPORT

    def test_single_request_per_call(self, st_requester, cas_server, service_url):
        st_requester.request_service_ticket(TGT, service_url)
        st_requester.request_service_ticket(TGT, service_url)

        assert len(cas_server.requests) == 2
