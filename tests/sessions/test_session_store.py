"""Tests for the in-memory session store."""

import asyncio

import pytest

from ctrlw.errors import ConflictError, NotFoundError
from ctrlw.sessions.models import PairingSession, SessionStatus
from ctrlw.sessions.store import MemorySessionStore

NOW = 1_700_000_000.0


def make_session(code: str = "123456", ttl: float = 30) -> PairingSession:
    return PairingSession.create(code, ttl, now=NOW)


@pytest.fixture
def store() -> MemorySessionStore:
    return MemorySessionStore()


class TestInsert:
    """Tests for insert uniqueness."""

    @pytest.mark.asyncio
    async def test_insert_and_get(self, store):
        session = make_session()
        await store.insert(session)

        loaded = await store.get(session.session_id)
        assert loaded == session
        assert loaded is not session

    @pytest.mark.asyncio
    async def test_duplicate_active_code_conflicts(self, store):
        await store.insert(make_session("111111"))
        with pytest.raises(ConflictError):
            await store.insert(make_session("111111"))

    @pytest.mark.asyncio
    async def test_duplicate_session_id_conflicts(self, store):
        session = make_session("111111")
        await store.insert(session)
        clone = session.copy()
        clone.pairing_code = "222222"
        with pytest.raises(ConflictError):
            await store.insert(clone)

    @pytest.mark.asyncio
    async def test_code_reusable_after_session_closes(self, store):
        """Uniqueness only applies among active sessions."""
        session = make_session("111111")
        await store.insert(session)
        session.status = SessionStatus.CLOSED
        assert await store.replace(session, expected_version=0)

        await store.insert(make_session("111111"))

    @pytest.mark.asyncio
    async def test_code_reusable_after_delete(self, store):
        session = make_session("111111")
        await store.insert(session)
        assert await store.delete(session.session_id)

        await store.insert(make_session("111111"))

    @pytest.mark.asyncio
    async def test_concurrent_inserts_same_code(self, store):
        """Exactly one of many concurrent inserts of a code wins."""
        results = await asyncio.gather(
            *(store.insert(make_session("555555")) for _ in range(5)),
            return_exceptions=True,
        )
        wins = [r for r in results if isinstance(r, PairingSession)]
        conflicts = [r for r in results if isinstance(r, ConflictError)]
        assert len(wins) == 1
        assert len(conflicts) == 4


class TestReplace:
    """Tests for compare-and-swap replace."""

    @pytest.mark.asyncio
    async def test_replace_bumps_version(self, store):
        session = make_session()
        await store.insert(session)
        session.add_participant("a", "dev", NOW)

        assert await store.replace(session, expected_version=0)
        assert session.version == 1
        assert (await store.get(session.session_id)).version == 1

    @pytest.mark.asyncio
    async def test_stale_version_rejected(self, store):
        session = make_session()
        await store.insert(session)
        first = await store.get(session.session_id)
        second = await store.get(session.session_id)

        first.add_participant("a", "dev", NOW)
        second.add_participant("b", "dev", NOW)

        assert await store.replace(first, expected_version=0)
        assert not await store.replace(second, expected_version=0)

        stored = await store.get(session.session_id)
        assert [p.connection_id for p in stored.participants] == ["a"]

    @pytest.mark.asyncio
    async def test_replace_missing_session(self, store):
        assert not await store.replace(make_session(), expected_version=0)

    @pytest.mark.asyncio
    async def test_find_active_by_code_tracks_status(self, store):
        session = make_session("777777")
        await store.insert(session)
        assert (await store.find_active_by_code("777777")).session_id == session.session_id

        session.status = SessionStatus.EXPIRED
        await store.replace(session, expected_version=0)
        assert await store.find_active_by_code("777777") is None


class TestCounters:
    """Tests for atomic increments."""

    @pytest.mark.asyncio
    async def test_increment_touches_activity(self, store):
        session = make_session()
        await store.insert(session)

        assert await store.increment(session.session_id, "message_count", NOW + 9) == 1
        stored = await store.get(session.session_id)
        assert stored.message_count == 1
        assert stored.last_activity == NOW + 9

    @pytest.mark.asyncio
    async def test_concurrent_increments_not_lost(self, store):
        session = make_session()
        await store.insert(session)

        await asyncio.gather(
            *(store.increment(session.session_id, "file_count", NOW) for _ in range(50))
        )
        assert (await store.get(session.session_id)).file_count == 50

    @pytest.mark.asyncio
    async def test_increment_unknown_counter(self, store):
        session = make_session()
        await store.insert(session)
        with pytest.raises(ValueError):
            await store.increment(session.session_id, "version", NOW)

    @pytest.mark.asyncio
    async def test_increment_missing_session(self, store):
        with pytest.raises(NotFoundError):
            await store.increment("missing", "message_count", NOW)

    @pytest.mark.asyncio
    async def test_increment_after_deadline_before_sweep(self, store):
        session = make_session(ttl=1)
        await store.insert(session)

        with pytest.raises(NotFoundError):
            await store.increment(session.session_id, "message_count", NOW + 120)
        with pytest.raises(NotFoundError):
            await store.touch(session.session_id, NOW + 120)
        assert (await store.get(session.session_id)).message_count == 0

    @pytest.mark.asyncio
    async def test_increment_on_closed_session(self, store):
        session = make_session()
        await store.insert(session)
        session.status = SessionStatus.CLOSED
        await store.replace(session, expected_version=0)

        with pytest.raises(NotFoundError):
            await store.increment(session.session_id, "file_count", NOW)

    @pytest.mark.asyncio
    async def test_touch_missing_session(self, store):
        with pytest.raises(NotFoundError):
            await store.touch("missing", NOW)


class TestListing:
    """Tests for scans."""

    @pytest.mark.asyncio
    async def test_list_reapable(self, store):
        short = make_session("111111", ttl=1)
        long = make_session("222222", ttl=60)
        await store.insert(short)
        await store.insert(long)

        expired = await store.list_reapable(NOW + 120)
        assert [s.session_id for s in expired] == [short.session_id]

    @pytest.mark.asyncio
    async def test_list_reapable_includes_terminal_sessions(self, store):
        closed = make_session("111111", ttl=1)
        marked = make_session("222222", ttl=60)
        await store.insert(closed)
        await store.insert(marked)
        closed.status = SessionStatus.CLOSED
        marked.status = SessionStatus.EXPIRED
        await store.replace(closed, expected_version=0)
        await store.replace(marked, expected_version=0)

        assert [s.session_id for s in await store.list_reapable(NOW)] == [marked.session_id]

        reapable = {s.session_id for s in await store.list_reapable(NOW + 120)}
        assert reapable == {closed.session_id, marked.session_id}

    @pytest.mark.asyncio
    async def test_list_active_excludes_terminal(self, store):
        active = make_session("111111")
        closed = make_session("222222")
        await store.insert(active)
        await store.insert(closed)
        closed.status = SessionStatus.CLOSED
        await store.replace(closed, expected_version=0)

        assert [s.session_id for s in await store.list_active()] == [active.session_id]
        assert len(store) == 2
