"""
Pytest configuration and shared fixtures for casrest tests.
"""

import pytest

from casrest.config import CASConfig
from casrest.core.types import Credentials, ServiceTicket, ServiceURL
from casrest.protocol.client import RestClient
from casrest.protocol.validator import ServiceTicketValidator
from casrest.transport.http_transport import HTTPTransport

from tests.helpers import CAS_URL, SERVICE_URL, FakeCASServer


# =============================================================================
# URL AND CREDENTIAL FIXTURES
# =============================================================================


@pytest.fixture
def cas_url() -> str:
    """Base URL of the fake CAS server."""
    return CAS_URL


@pytest.fixture
def service_url() -> ServiceURL:
    """Protected service the tickets are issued for."""
    return ServiceURL(SERVICE_URL)


@pytest.fixture
def credentials() -> Credentials:
    """Test user credentials."""
    return Credentials(username="alice", password="S3cr3t!pass")


@pytest.fixture
def service_ticket() -> ServiceTicket:
    """Service ticket as issued by the fake server."""
    return ServiceTicket("ST-1-x9Rk2PqLmN7vB4tYw0hj")


# =============================================================================
# CAS SERVER FIXTURES
# =============================================================================


@pytest.fixture
def cas_server() -> FakeCASServer:
    """Scriptable CAS server; tests adjust its responses before use."""
    return FakeCASServer()


@pytest.fixture
def transport(cas_server: FakeCASServer) -> HTTPTransport:
    """Transport whose requests are answered by cas_server."""
    transport = HTTPTransport(client=cas_server.http_client())
    yield transport
    transport.client.close()


@pytest.fixture
def validator(transport: HTTPTransport, cas_url: str) -> ServiceTicketValidator:
    """Service ticket validator talking to the fake server."""
    return ServiceTicketValidator(transport=transport, cas_url=cas_url)


@pytest.fixture
def rest_client(transport: HTTPTransport, cas_url: str, service_url: ServiceURL) -> RestClient:
    """REST client with a configured service URL."""
    return RestClient(cas_url=cas_url, service_url=service_url, transport=transport)


@pytest.fixture
def cas_config(cas_url: str) -> CASConfig:
    """Configuration with a fixed service URL."""
    return CASConfig(cas_url=cas_url, service_url=SERVICE_URL)
