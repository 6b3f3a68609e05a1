#!/usr/bin/env python3
"""
Basic Authentication Gateway Example

Demonstrates how to protect a WSGI application with casrest so that
clients authenticate with HTTP Basic credentials checked against a CAS
server's REST API.

Features:
1. Configuration from CAS_* environment variables
2. structlog console logging of every CAS exchange
3. The authenticated principal and attributes inside the application

Requirements:
- A CAS server with the REST API enabled
- CAS_URL set (e.g. https://cas.example.com/cas); CAS_SERVICE_URL optional

Try it:
    CAS_URL=https://cas.example.com/cas python basic_auth_gateway_example.py
    curl -u jdoe:secret http://localhost:8080/reports
"""

import logging
import sys
from wsgiref.simple_server import make_server

import structlog

from casrest import CASConfig, create_rest_handler, get_authentication_response

HOST = "localhost"
PORT = 8080


def configure_logging(level: int = logging.INFO) -> None:
    """Render structlog events on the console."""
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
    )


def reports_app(environ, start_response):
    """Protected application: greets the CAS principal."""
    response = get_authentication_response(environ)

    lines = [f"Hello {response.user}"]
    for name, values in sorted(response.attributes.items()):
        lines.append(f"  {name}: {', '.join(values)}")
    if response.member_of:
        lines.append(f"  groups: {', '.join(response.member_of)}")

    body = ("\n".join(lines) + "\n").encode("utf-8")
    start_response(
        "200 OK",
        [("Content-Type", "text/plain; charset=utf-8"), ("Content-Length", str(len(body)))],
    )
    return [body]


def main():
    """Serve the protected application until interrupted."""
    configure_logging()

    try:
        config = CASConfig.from_env()
    except ValueError as e:
        print(f"Configuration error: {e}")
        sys.exit(1)

    application = create_rest_handler(reports_app, config)

    print("=" * 70)
    print("casrest - Basic Authentication Gateway")
    print("=" * 70)
    print(f"   CAS Server: {config.cas_url}")
    print(f"   Service URL: {config.service_url or '(request URL)'}")
    print(f"   Realm: {config.realm}")
    print(f"   Listening on http://{HOST}:{PORT}/")
    print()

    with make_server(HOST, PORT, application) as server:
        try:
            server.serve_forever()
        except KeyboardInterrupt:
            print("\nShutting down")
        finally:
            application.client.close()


if __name__ == "__main__":
    main()
