"""
Unit tests for casrest.config module.
"""

import pytest

from casrest.config import DEFAULT_REALM, CASConfig, create_rest_client
from casrest.protocol.types import URLScheme
from casrest.transport.http_transport import DEFAULT_TIMEOUT, DEFAULT_USER_AGENT

from tests.helpers import SERVICE_URL, form


class TestCASConfig:
    """Tests for CASConfig defaults and validation."""

    def test_defaults(self):
        config = CASConfig(cas_url="https://cas.example.com/cas")
        assert config.service_url is None
        assert config.timeout == DEFAULT_TIMEOUT
        assert config.verify_tls
        assert config.user_agent == DEFAULT_USER_AGENT
        assert config.realm == DEFAULT_REALM == "CAS Protected Area"
        assert config.url_scheme == URLScheme()

    def test_timeout_must_be_positive(self):
        with pytest.raises(ValueError):
            CASConfig(cas_url="https://cas.example.com/cas", timeout=0)

    def test_realm_with_line_break_rejected(self):
        with pytest.raises(ValueError):
            CASConfig(cas_url="https://cas.example.com/cas", realm="CAS\r\nX-Injected: 1")

    def test_empty_cas_url_rejected(self):
        with pytest.raises(ValueError):
            CASConfig(cas_url="")


class TestFromEnv:
    """Tests for CASConfig.from_env()."""

    def test_all_values(self):
        config = CASConfig.from_env(
            {
                "CAS_URL": "https://cas.example.com/cas",
                "CAS_SERVICE_URL": SERVICE_URL,
                "CAS_TIMEOUT": "2.5",
                "CAS_VERIFY_TLS": "false",
                "CAS_USER_AGENT": "reports-gateway/1.0",
                "CAS_REALM": "Reports",
            }
        )
        assert config.cas_url == "https://cas.example.com/cas"
        assert config.service_url == SERVICE_URL
        assert config.timeout == 2.5
        assert not config.verify_tls
        assert config.user_agent == "reports-gateway/1.0"
        assert config.realm == "Reports"

    def test_only_url(self):
        config = CASConfig.from_env({"CAS_URL": "https://cas.example.com/cas"})
        assert config.service_url is None
        assert config.verify_tls

    def test_missing_url(self):
        with pytest.raises(ValueError, match="CAS_URL"):
            CASConfig.from_env({})

    def test_bad_boolean(self):
        with pytest.raises(ValueError, match="CAS_VERIFY_TLS"):
            CASConfig.from_env({"CAS_URL": "https://cas.example.com/cas", "CAS_VERIFY_TLS": "maybe"})

    def test_custom_prefix(self):
        config = CASConfig.from_env({"SSO_URL": "https://sso.example.com/cas"}, prefix="SSO_")
        assert config.cas_url == "https://sso.example.com/cas"

    def test_reads_process_environment(self, monkeypatch):
        monkeypatch.setenv("CAS_URL", "https://cas.example.com/cas")
        monkeypatch.setenv("CAS_TIMEOUT", "3")
        config = CASConfig.from_env()
        assert config.timeout == 3.0


class TestCreateRestClient:
    """Tests for building a client from configuration."""

    def test_transport_settings(self):
        config = CASConfig(
            cas_url="https://cas.example.com/cas",
            timeout=4.0,
            user_agent="reports-gateway/1.0",
        )
        client = create_rest_client(config)
        assert client.transport.timeout == 4.0
        assert client.transport.user_agent == "reports-gateway/1.0"
        client.close()

    def test_uses_injected_http_client(self, cas_config, cas_server):
        client = create_rest_client(cas_config, http_client=cas_server.http_client())

        outcome = client.authenticate("alice", "S3cr3t!pass")

        assert outcome.is_success
        assert form(cas_server.requests[1])["service"] == [SERVICE_URL]
        assert cas_server.requests[0].headers["User-Agent"] == DEFAULT_USER_AGENT
