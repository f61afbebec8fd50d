"""
Tests for token types and the configurable variant.
"""

import pytest

from bearer.config import Settings
from bearer.exceptions import InvalidConfigurationError
from bearer.services.token_types import (
    AbstractTokenType,
    ConfigurableTokenType,
    build_token_type_registry,
)


class TestDefaultTokenTypes:
    @pytest.fixture
    def registry(self, settings: Settings):
        return build_token_type_registry(settings)

    def test_secret(self, registry):
        sk = registry.get("sk")
        assert sk.name() == "Secret"
        assert sk.prefix() == "sk"
        assert sk.default_abilities() == ["*"]
        assert sk.default_expiration() is None
        assert sk.is_server_side_only()
        assert not sk.is_client_side()
        assert not sk.allows_domain_restriction()

    def test_publishable(self, registry):
        pk = registry.get("pk")
        assert pk.default_abilities() == ["read"]
        assert pk.default_expiration() == 43200
        assert pk.default_rate_limit() == 1000
        assert pk.is_client_side()
        assert pk.allows_domain_restriction()

    def test_restricted(self, registry):
        rk = registry.get("rk")
        assert rk.default_abilities() == []
        assert rk.default_expiration() == 525600
        assert rk.default_rate_limit() == 100
        assert rk.is_server_side_only()


class TestConfigurableTokenType:
    def test_from_config_minimal(self):
        token_type = ConfigurableTokenType.from_config({"name": "Webhook", "prefix": "wh"})
        assert token_type.prefix() == "wh"
        assert token_type.default_abilities() == ["*"]
        assert token_type.default_expiration() is None
        assert token_type.is_client_side()

    def test_domain_restrictable_override(self):
        token_type = ConfigurableTokenType.from_config(
            {
                "name": "Server",
                "prefix": "sv",
                "server_side_only": True,
                "domain_restrictable": True,
            }
        )
        assert token_type.is_server_side_only()
        assert token_type.allows_domain_restriction()

    @pytest.mark.parametrize(
        "config",
        [
            {"prefix": "wh"},
            {"name": "", "prefix": "wh"},
            {"name": "Webhook"},
            {"name": "Webhook", "prefix": "w_h"},
            {"name": "Webhook", "prefix": "wh", "abilities": "read"},
            {"name": "Webhook", "prefix": "wh", "expiration": -1},
            {"name": "Webhook", "prefix": "wh", "rate_limit": "fast"},
            {"name": "Webhook", "prefix": "wh", "server_side_only": "yes"},
            {"name": "Webhook", "prefix": "wh", "domain_restrictable": 1},
        ],
    )
    def test_invalid_config(self, config):
        with pytest.raises(InvalidConfigurationError):
            ConfigurableTokenType.from_config(config)

    def test_abilities_are_copied(self):
        token_type = AbstractTokenType("Custom", "cu", default_abilities=["a"])
        token_type.default_abilities().append("b")
        assert token_type.default_abilities() == ["a"]
