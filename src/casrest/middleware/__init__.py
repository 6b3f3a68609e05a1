"""
casrest Middleware

WSGI integration of the CAS REST flow.

Components:
- rest_handler: Basic Authentication -> CAS REST middleware
"""

from casrest.middleware.rest_handler import (
    AUTHENTICATION_ENVIRON_KEY,
    RestAuthHandler,
    create_rest_handler,
    get_authentication_response,
    parse_basic_authorization,
    quote_realm,
)

__all__ = [
    "AUTHENTICATION_ENVIRON_KEY",
    "RestAuthHandler",
    "create_rest_handler",
    "get_authentication_response",
    "parse_basic_authorization",
    "quote_realm",
]
