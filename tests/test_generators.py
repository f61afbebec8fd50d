"""
Tests for token generators.

Covers the `{prefix}_{environment}_{random}` format, parse() and uniqueness.
"""

import pytest

from bearer.exceptions import NotRegisteredError
from bearer.services.generators import (
    RandomTokenGenerator,
    SeamTokenGenerator,
    UuidTokenGenerator,
    build_generator_registry,
    check_environment,
)


class TestSeamTokenGenerator:
    def test_format(self):
        token = SeamTokenGenerator().generate("sk", "test")
        prefix, environment, secret = token.split("_")
        assert prefix == "sk"
        assert environment == "test"
        assert len(secret) == SeamTokenGenerator.SECRET_LENGTH
        assert all(c in SeamTokenGenerator.BASE58_ALPHABET for c in secret)

    def test_base58_excludes_ambiguous_characters(self):
        for ambiguous in "0OIl":
            assert ambiguous not in SeamTokenGenerator.BASE58_ALPHABET

    def test_parse(self):
        generator = SeamTokenGenerator()
        token = generator.generate("pk", "live")
        components = generator.parse(token)
        assert components is not None
        assert components.prefix == "pk"
        assert components.environment == "live"
        assert components.full_token == token

    def test_unique(self):
        generator = SeamTokenGenerator()
        tokens = {generator.generate("sk", "test") for _ in range(500)}
        assert len(tokens) == 500

    @pytest.mark.parametrize(
        "token",
        [
            "",
            "sk",
            "sk_test",
            "sk__abc",
            "_test_abc",
            "sk_test_",
            "sk_test_abc_def",
            "sk_test_0OIl",
        ],
    )
    def test_parse_rejects_malformed(self, token: str):
        assert SeamTokenGenerator().parse(token) is None


class TestUuidTokenGenerator:
    def test_generate_and_parse(self):
        generator = UuidTokenGenerator()
        token = generator.generate("rk", "test")
        assert token.startswith("rk_test_")
        components = generator.parse(token)
        assert components is not None
        assert len(components.secret) == 36

    def test_parse_rejects_non_uuid(self):
        assert UuidTokenGenerator().parse("rk_test_not-a-uuid") is None


class TestRandomTokenGenerator:
    def test_generate_has_checksum(self):
        generator = RandomTokenGenerator()
        token = generator.generate("sk", "live")
        secret = token.split("_")[2]
        assert len(secret) == 48
        assert secret[40:] == RandomTokenGenerator.checksum(secret[:40])

    def test_parse_accepts_generated(self):
        generator = RandomTokenGenerator()
        assert generator.parse(generator.generate("sk", "live")) is not None

    def test_parse_rejects_bad_checksum(self):
        generator = RandomTokenGenerator()
        token = generator.generate("sk", "live")
        tampered = token[:-8] + ("0" * 8 if not token.endswith("0" * 8) else "1" * 8)
        assert generator.parse(tampered) is None

    def test_parse_rejects_wrong_length(self):
        assert RandomTokenGenerator().parse("sk_live_abc") is None


class TestCheckEnvironment:
    @pytest.mark.parametrize("environment", ["test", "live", "pre-prod", "eu1"])
    def test_accepts_tags_without_separator(self, environment: str):
        assert check_environment(environment) == environment
        token = SeamTokenGenerator().generate("sk", environment)
        components = SeamTokenGenerator().parse(token)
        assert components is not None
        assert components.environment == environment

    @pytest.mark.parametrize("environment", ["", "pre_prod", "_", "live_"])
    def test_rejects_separator(self, environment: str):
        with pytest.raises(ValueError):
            check_environment(environment)


class TestGeneratorRegistry:
    def test_builtins_registered(self):
        registry = build_generator_registry()
        assert registry.names() == ["seam", "uuid", "random"]
        assert isinstance(registry.default(), SeamTokenGenerator)

    def test_configured_default(self):
        registry = build_generator_registry(default="uuid")
        assert isinstance(registry.default(), UuidTokenGenerator)

    def test_unknown_generator(self):
        with pytest.raises(NotRegisteredError):
            build_generator_registry().get("sequential")
