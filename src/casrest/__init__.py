"""
casrest - CAS REST Authentication for WSGI Applications

This package authenticates users against a Central Authentication Service
(CAS) through its REST API and exposes the result to WSGI applications
via HTTP Basic Authentication.

Ticket Flow:
- Credentials -> Ticket Granting Ticket (POST /v1/tickets)
- TGT -> Service Ticket (POST /v1/tickets/{TGT})
- Service Ticket -> principal (serviceValidate, falling back to the
  CAS 1.0 validate endpoint when serviceValidate is not found)

Example Usage:
    from casrest import CASConfig, create_rest_handler, get_authentication_response

    def app(environ, start_response):
        user = get_authentication_response(environ).user
        start_response("200 OK", [("Content-Type", "text/plain")])
        return [f"Hello {user}".encode()]

    config = CASConfig(
        cas_url="https://cas.example.com/cas",
        service_url="https://app.example.com/",
    )
    protected = create_rest_handler(app, config)
"""

from casrest.core.types import (
    AuthenticationResponse,
    ErrorKind,
    OutcomeStatus,
    ServiceURL,
    ValidationOutcome,
)
from casrest.config import CASConfig, create_rest_client
from casrest.protocol.client import RestClient
from casrest.middleware.rest_handler import (
    RestAuthHandler,
    create_rest_handler,
    get_authentication_response,
)

__version__ = "0.1.0"

__all__ = [
    # Main API
    "CASConfig",
    "RestAuthHandler",
    "RestClient",
    "create_rest_client",
    "create_rest_handler",
    "get_authentication_response",
    # Types
    "AuthenticationResponse",
    "ErrorKind",
    "OutcomeStatus",
    "ServiceURL",
    "ValidationOutcome",
    # Metadata
    "__version__",
]
