"""
Test helpers: an in-process CAS server and response builders.
"""

from __future__ import annotations

import base64
from typing import Dict, List, Optional, Sequence, Tuple, Union
from urllib.parse import parse_qs
from wsgiref.util import setup_testing_defaults

import attrs
import httpx

CAS_URL = "https://cas.example.com/cas"
SERVICE_URL = "https://app.example.com/reports"
TGT = "TGT-1-nCNbV4Wg7ZkqzJ3bU1cd"
ST = "ST-1-x9Rk2PqLmN7vB4tYw0hj"


def success_xml(
    user: str,
    attributes: Sequence[Tuple[str, str]] = (),
) -> str:
    """serviceValidate success document; attributes may repeat."""
    attribute_xml = "".join(
        f"<cas:{name}>{value}</cas:{name}>" for name, value in attributes
    )
    attributes_block = f"<cas:attributes>{attribute_xml}</cas:attributes>" if attributes else ""
    return (
        "<cas:serviceResponse xmlns:cas='http://www.yale.edu/tp/cas'>"
        "<cas:authenticationSuccess>"
        f"<cas:user>{user}</cas:user>"
        f"{attributes_block}"
        "</cas:authenticationSuccess>"
        "</cas:serviceResponse>"
    )


def failure_xml(code: str, description: str) -> str:
    """serviceValidate failure document."""
    return (
        "<cas:serviceResponse xmlns:cas='http://www.yale.edu/tp/cas'>"
        f"<cas:authenticationFailure code=\"{code}\">\n"
        f"    {description}\n"
        "</cas:authenticationFailure>"
        "</cas:serviceResponse>"
    )


def form(request: httpx.Request) -> Dict[str, List[str]]:
    """Decoded form body of a recorded request."""
    return parse_qs(request.content.decode("utf-8"))


@attrs.define
class FakeCASServer:
    """
    Scriptable CAS server for httpx.MockTransport.

    Every request is recorded in `requests`. Set `unreachable` to a path
    suffix to make requests to it fail with a connection error.
    """

    tgt: str = TGT
    service_ticket: str = ST
    grant_status: int = 201
    grant_location: Optional[str] = None
    send_location: bool = True
    service_ticket_status: int = 200
    service_validate_status: int = 200
    service_validate_body: Union[str, bytes] = attrs.Factory(lambda: success_xml("alice"))
    validate_status: int = 200
    validate_body: str = "yes\nalice\n"
    unreachable: Optional[str] = None
    requests: List[httpx.Request] = attrs.Factory(list)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if self.unreachable and path.endswith(self.unreachable):
            raise httpx.ConnectError("connection refused", request=request)

        if request.method == "POST" and path.endswith("/v1/tickets"):
            headers = {}
            if self.grant_status == 201 and self.send_location:
                headers["Location"] = self.grant_location or f"{CAS_URL}/v1/tickets/{self.tgt}"
            return httpx.Response(self.grant_status, headers=headers, text="")

        if request.method == "POST" and "/v1/tickets/" in path:
            return httpx.Response(self.service_ticket_status, text=self.service_ticket)

        if request.method == "GET" and path.endswith("/serviceValidate"):
            if isinstance(self.service_validate_body, bytes):
                return httpx.Response(
                    self.service_validate_status,
                    headers={"Content-Type": "application/xml"},
                    content=self.service_validate_body,
                )
            return httpx.Response(self.service_validate_status, text=self.service_validate_body)

        if request.method == "GET" and path.endswith("/validate"):
            return httpx.Response(self.validate_status, text=self.validate_body)

        return httpx.Response(404, text="not found")

    def http_client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handler))

    @property
    def paths(self) -> List[str]:
        return [r.url.path for r in self.requests]


def basic_auth(username: str, password: str) -> str:
    token = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")
    return f"Basic {token}"


def make_environ(authorization: Optional[str] = None, path: str = "/reports") -> Dict[str, object]:
    """Minimal WSGI environ for a GET request to app.example.com."""
    environ: Dict[str, object] = {
        "REQUEST_METHOD": "GET",
        "SCRIPT_NAME": "",
        "PATH_INFO": path,
        "HTTP_HOST": "app.example.com",
        "wsgi.url_scheme": "https",
        "SERVER_PORT": "443",
    }
    setup_testing_defaults(environ)
    if authorization is not None:
        environ["HTTP_AUTHORIZATION"] = authorization
    return environ


@attrs.define
class StartResponseRecorder:
    """Captures what a WSGI application passed to start_response."""

    status: Optional[str] = None
    headers: List[Tuple[str, str]] = attrs.Factory(list)

    def __call__(self, status: str, headers: List[Tuple[str, str]], exc_info=None):
        self.status = status
        self.headers = list(headers)
        return lambda data: None

    def header(self, name: str) -> Optional[str]:
        for key, value in self.headers:
            if key.lower() == name.lower():
                return value
        return None
