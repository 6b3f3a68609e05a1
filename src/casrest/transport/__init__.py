"""
casrest Transport Layer

Network transport for CAS server communication.

Components:
- http_transport: Blocking httpx-based transport with uniform timeout
"""

from casrest.transport.http_transport import (
    DEFAULT_TIMEOUT,
    DEFAULT_USER_AGENT,
    HTTPTransport,
)

__all__ = [
    "DEFAULT_TIMEOUT",
    "DEFAULT_USER_AGENT",
    "HTTPTransport",
]
