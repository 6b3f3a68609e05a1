"""
casrest REST Authentication Middleware

WSGI middleware that turns HTTP Basic Authentication credentials into a
CAS REST login.

Flow per request:
1. Read username/password from the Authorization header
2. RestClient.authenticate(): TGT -> service ticket -> validation
3. Success: attach the AuthenticationResponse to the WSGI environ and
   call the wrapped application
4. Anything else: 401 with a Basic challenge; the wrapped application
   is not called

Failure details are logged, never sent to the client.
"""

from __future__ import annotations

import base64
from typing import Any, Callable, Dict, Iterable, List, Optional
from wsgiref.util import request_uri

import attrs
import httpx
import structlog

from casrest.config import DEFAULT_REALM, CASConfig, create_rest_client
from casrest.core.types import (
    AuthenticationResponse,
    Credentials,
    ServiceURL,
    optional_service_url,
)
from casrest.protocol.client import RestClient

# WSGI environ key holding the AuthenticationResponse of the current request
AUTHENTICATION_ENVIRON_KEY = "casrest.authentication"

StartResponse = Callable[..., Any]
WSGIApplication = Callable[[Dict[str, Any], StartResponse], Iterable[bytes]]


def parse_basic_authorization(header: Optional[str]) -> Optional[Credentials]:
    """
    Decode an HTTP Basic Authorization header.

    Examples:
        "Basic amRvZTpzZWNyZXQ=" -> Credentials("jdoe", "secret")
        "Bearer abc" -> None

    Returns:
        Credentials, or None if the header is absent or malformed
    """
    if not header:
        return None

    scheme, _, encoded = header.strip().partition(" ")
    encoded = encoded.strip()
    if scheme.lower() != "basic" or not encoded:
        return None

    try:
        decoded = base64.b64decode(encoded, validate=True).decode("utf-8")
    except ValueError:
        # binascii.Error and UnicodeDecodeError are ValueErrors too
        return None

    username, separator, password = decoded.partition(":")
    if not separator or not username:
        return None
    return Credentials(username=username, password=password)


def quote_realm(realm: str) -> str:
    """Escape a realm for use inside a quoted-string (RFC 7230 quoted-pair)."""
    return realm.replace("\\", "\\\\").replace('"', '\\"')


def get_authentication_response(environ: Dict[str, Any]) -> Optional[AuthenticationResponse]:
    """AuthenticationResponse attached to this request, if it was authenticated."""
    return environ.get(AUTHENTICATION_ENVIRON_KEY)


@attrs.define
class RestAuthHandler:
    """
    Basic Authentication over the CAS REST API, as WSGI middleware.

    Wraps exactly one WSGI application. Holds no per-request state: the
    authentication result lives in the request's own environ.

    Example:
        client = RestClient(cas_url="https://cas.example.com/cas")
        app = RestAuthHandler(application=my_app, client=client)

        def my_app(environ, start_response):
            user = get_authentication_response(environ).user
            ...
    """

    application: WSGIApplication
    client: RestClient
    service_url: Optional[ServiceURL] = attrs.field(
        default=None, converter=optional_service_url
    )
    realm: str = DEFAULT_REALM
    _logger: Any = attrs.Factory(lambda: structlog.get_logger())

    @property
    def challenge(self) -> str:
        """WWW-Authenticate header value sent with every 401."""
        return f'Basic realm="{quote_realm(self.realm)}"'

    def __call__(
        self, environ: Dict[str, Any], start_response: StartResponse
    ) -> Iterable[bytes]:
        self._logger.info(
            "cas_handling_request",
            method=environ.get("REQUEST_METHOD"),
            path=environ.get("PATH_INFO"),
        )

        credentials = parse_basic_authorization(environ.get("HTTP_AUTHORIZATION"))
        if credentials is None:
            self._logger.info("cas_basic_auth_missing")
            return self._unauthorized(start_response)

        try:
            service = self._service_for(environ)
        except ValueError as e:
            self._logger.warning("cas_service_url_invalid", error=str(e))
            return self._unauthorized(start_response)

        outcome = self.client.authenticate(credentials.username, credentials.password, service)
        if not outcome.is_success:
            self._logger.info(
                "cas_rest_authentication_failed",
                status=outcome.status.name,
                kind=outcome.error_kind.name if outcome.error_kind else None,
                error=outcome.detail,
            )
            return self._unauthorized(start_response)

        environ[AUTHENTICATION_ENVIRON_KEY] = outcome.response
        environ["REMOTE_USER"] = outcome.response.user
        self._logger.info("cas_request_authenticated", user=outcome.response.user)

        return self.application(environ, start_response)

    def _service_for(self, environ: Dict[str, Any]) -> ServiceURL:
        if self.service_url is not None:
            return self.service_url
        return ServiceURL(request_uri(environ, include_query=False))

    def _unauthorized(self, start_response: StartResponse) -> List[bytes]:
        body = b"401 Unauthorized\n"
        start_response(
            "401 Unauthorized",
            [
                ("WWW-Authenticate", self.challenge),
                ("Content-Type", "text/plain; charset=utf-8"),
                ("Content-Length", str(len(body))),
            ],
        )
        return [body]


def create_rest_handler(
    application: WSGIApplication,
    config: CASConfig,
    http_client: Optional[httpx.Client] = None,
) -> RestAuthHandler:
    """
    Wrap a WSGI application with CAS REST Basic Authentication.

    Args:
        application: WSGI application to protect
        config: CAS configuration
        http_client: Optional preconfigured httpx.Client

    Returns:
        RestAuthHandler wrapping the application
    """
    return RestAuthHandler(
        application=application,
        client=create_rest_client(config, http_client),
        service_url=config.service_url,
        realm=config.realm,
    )
