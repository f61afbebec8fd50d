"""
Tests for ORM model helpers and domain dataclasses (no database).
"""

from dataclasses import FrozenInstanceError
from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest
from sqlalchemy.orm.attributes import set_committed_value

from bearer.db.models import AccessToken, AccessTokenGroup, UTCDateTime
from bearer.models.domain import EntityRef, NewAccessToken, RevocationOutcome

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def make_token(**kwargs) -> AccessToken:
    defaults = {
        "id": uuid4(),
        "owner_type": "user",
        "owner_id": "u1",
        "type": "sk",
        "environment": "test",
        "name": "key",
        "prefix": "sk",
        "token": "hash",
        "abilities": ["read"],
        "depth": 0,
    }
    defaults.update(kwargs)
    return AccessToken(**defaults)


class TestAbilities:
    def test_can_and_cant(self):
        token = make_token(abilities=["users:read"])
        assert token.can("users:read")
        assert token.cant("users:write")

    def test_wildcard_grants_everything(self):
        assert make_token(abilities=["*"]).can("anything")

    @pytest.mark.parametrize(
        ("requested", "parent", "expected"),
        [
            ([], [], True),
            (["read"], ["read", "write"], True),
            (["read", "admin"], ["read", "write"], False),
            (["admin"], ["*"], True),
            (["*"], ["read"], False),
        ],
    )
    def test_subset(self, requested, parent, expected):
        assert AccessToken.are_abilities_subset(requested, parent) is expected


class TestLifecycleChecks:
    def test_fresh_token_is_valid(self):
        token = make_token()
        assert token.is_valid(NOW)
        assert not token.is_revoked(NOW)
        assert not token.is_expired(NOW)

    def test_expired_at_boundary(self):
        token = make_token(expires_at=NOW)
        assert token.is_expired(NOW)
        assert not token.is_valid(NOW)
        assert not token.is_expired(NOW - timedelta(seconds=1))

    def test_past_revocation(self):
        token = make_token(revoked_at=NOW - timedelta(minutes=1))
        assert token.is_revoked(NOW)
        assert not token.is_valid(NOW)

    def test_scheduled_revocation_is_valid_until_reached(self):
        token = make_token(revoked_at=NOW + timedelta(minutes=30))
        assert token.is_valid(NOW)
        assert not token.is_valid(NOW + timedelta(minutes=31))

    def test_can_derive(self):
        assert make_token(depth=0).can_derive(3, NOW)
        assert not make_token(depth=3).can_derive(3, NOW)
        assert not make_token(expires_at=NOW - timedelta(days=1)).can_derive(3, NOW)

    def test_scheduled_revocation_blocks_derivation(self):
        assert not make_token(revoked_at=NOW + timedelta(hours=1)).can_derive(3, NOW)

    def test_is_root(self):
        assert make_token().is_root()
        assert not make_token(parent_id=uuid4(), depth=1).is_root()


class TestGroupHelpers:
    def test_helper_token(self):
        sk = make_token(type="sk")
        pk = make_token(type="pk", prefix="pk")
        group = AccessTokenGroup(owner_type="user", owner_id="u1", name="G")
        set_committed_value(group, "tokens", [sk, pk])
        helpers = {"secret": "sk", "publishable": "pk", "restricted": "rk"}
        assert group.helper_token("secret", helpers) is sk
        assert group.helper_token("publishable", helpers) is pk
        assert group.helper_token("restricted", helpers) is None
        assert group.helper_token("unknown", helpers) is None


class TestUTCDateTime:
    def test_naive_values_become_utc(self):
        decorator = UTCDateTime()
        naive = datetime(2026, 1, 1, 10, 0)
        assert decorator.process_result_value(naive, None) == naive.replace(tzinfo=UTC)
        assert decorator.process_bind_param(naive, None).tzinfo == UTC

    def test_none_passthrough(self):
        assert UTCDateTime().process_bind_param(None, None) is None


class TestDomainModels:
    def test_entity_ref(self):
        ref = EntityRef("user", "42")
        assert str(ref) == "user:42"
        with pytest.raises(FrozenInstanceError):
            ref.id = "43"  # type: ignore[misc]

    @pytest.mark.parametrize(("type_tag", "entity_id"), [("", "1"), ("user", "")])
    def test_entity_ref_validation(self, type_tag, entity_id):
        with pytest.raises(ValueError):
            EntityRef(type_tag, entity_id)

    def test_new_access_token_masks_secret(self):
        new = NewAccessToken(access_token=make_token(), plain_text_token="sk_test_secret")
        assert "sk_test_secret" not in repr(new)

    def test_revocation_outcome_defaults(self):
        outcome = RevocationOutcome(mode="none", affected_count=1)
        assert outcome.token_ids == ()
        assert outcome.group_id is None
        assert outcome.details == {}
