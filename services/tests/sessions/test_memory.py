"""Tests for the in-process session store."""

from dataclasses import replace
from datetime import datetime, timedelta

import pytest

from riverwatch.sessions.memory import MemorySessionStore
from riverwatch.sessions.protocol import SessionRecord, SessionStore, utc_now


class TestMemorySessionStore:
    def test_satisfies_protocol(self):
        assert isinstance(MemorySessionStore(ttl_seconds=60), SessionStore)

    async def test_create_returns_empty_record(self, store):
        record = await store.create()

        assert record.authenticated is False
        assert record.access_token is None
        assert record.auth_state is None
        assert len(record.session_id) >= 43

    async def test_create_sets_absolute_expiry(self, store):
        record = await store.create()

        created = datetime.fromisoformat(record.created_at)
        expires = datetime.fromisoformat(record.expires_at)
        assert expires - created == timedelta(seconds=store.ttl_seconds)

    async def test_session_ids_are_unique(self, store):
        ids = {(await store.create()).session_id for _ in range(20)}
        assert len(ids) == 20

    async def test_get_unknown_returns_none(self, store):
        assert await store.get("nope") is None

    async def test_get_returns_created(self, store):
        record = await store.create()
        assert await store.get(record.session_id) == record

    async def test_mutate_persists(self, store):
        record = await store.create()

        updated = await store.mutate(record.session_id, lambda r: replace(r, auth_state="s"))

        assert updated.auth_state == "s"
        assert (await store.get(record.session_id)).auth_state == "s"

    async def test_mutate_does_not_extend_expiry(self, store):
        record = await store.create()

        updated = await store.mutate(record.session_id, lambda r: replace(r, authenticated=True))

        assert updated.expires_at == record.expires_at

    async def test_mutate_rejects_lifetime_change(self, store):
        record = await store.create()

        with pytest.raises(ValueError):
            await store.mutate(record.session_id, lambda r: replace(r, expires_at="2999-01-01"))

    async def test_mutate_unknown_returns_none(self, store):
        assert await store.mutate("nope", lambda r: r) is None

    async def test_destroy(self, store):
        record = await store.create()

        assert await store.destroy(record.session_id) is True
        assert await store.get(record.session_id) is None
        assert await store.destroy(record.session_id) is False

    async def test_expired_record_is_absent(self, store):
        record = await store.create()
        past = (utc_now() - timedelta(seconds=1)).isoformat()
        store._records[record.session_id] = replace(record, expires_at=past)

        assert await store.get(record.session_id) is None
        assert await store.mutate(record.session_id, lambda r: r) is None
        assert len(store) == 0

    async def test_close_clears(self, store):
        await store.create()
        await store.close()
        assert len(store) == 0


class TestSessionRecord:
    def test_repr_hides_tokens(self):
        record = replace(
            SessionRecord.new(60),
            access_token="secret-access",
            refresh_token="secret-refresh",
            auth_state="secret-state",
        )
        text = repr(record)
        assert "secret-access" not in text
        assert "secret-refresh" not in text
        assert "secret-state" not in text

    def test_dict_roundtrip(self):
        record = replace(SessionRecord.new(60), user_profile={"sub": "u1"}, authenticated=True)
        assert SessionRecord.from_dict(record.to_dict()) == record

    def test_unparseable_expiry_counts_as_expired(self):
        record = replace(SessionRecord.new(60), expires_at="garbage")
        assert record.is_expired() is True
