"""
Tests for token hashers.
"""

import hashlib

import pytest

from bearer.services.hashers import (
    Argon2TokenHasher,
    Sha256TokenHasher,
    Sha512TokenHasher,
    build_hasher_registry,
)


class TestDigestHashers:
    @pytest.mark.parametrize(
        ("hasher", "algorithm"),
        [(Sha256TokenHasher(), "sha256"), (Sha512TokenHasher(), "sha512")],
    )
    def test_hash_matches_hashlib(self, hasher, algorithm):
        assert hasher.hash("sk_test_abc") == hashlib.new(algorithm, b"sk_test_abc").hexdigest()

    @pytest.mark.parametrize("hasher", [Sha256TokenHasher(), Sha512TokenHasher()])
    def test_verify(self, hasher):
        digest = hasher.hash("sk_test_abc")
        assert hasher.verify("sk_test_abc", digest)
        assert not hasher.verify("sk_test_abd", digest)
        assert hasher.deterministic

    def test_hash_is_not_plaintext(self):
        assert Sha256TokenHasher().hash("secret") != "secret"


class TestArgon2Hasher:
    def test_verify_round_trip(self):
        hasher = Argon2TokenHasher()
        hashed = hasher.hash("sk_test_abc")
        assert hasher.verify("sk_test_abc", hashed)
        assert not hasher.verify("sk_test_xyz", hashed)

    def test_salted_hashes_differ(self):
        hasher = Argon2TokenHasher()
        assert hasher.hash("same") != hasher.hash("same")
        assert not hasher.deterministic

    def test_invalid_hash_returns_false(self):
        assert not Argon2TokenHasher().verify("sk_test_abc", "not-an-argon2-hash")


class TestHasherRegistry:
    def test_sha256_is_default(self):
        assert isinstance(build_hasher_registry().default(), Sha256TokenHasher)

    def test_configured_default(self):
        assert isinstance(build_hasher_registry(default="sha512").default(), Sha512TokenHasher)
