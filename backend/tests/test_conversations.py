"""
Tests for the employer conversation store

Tests cover:
- Load from scoped keys, with malformed or absent state
- Legacy unscoped key purge
- Candidate merge and history retention
- Send ordering and failed deliveries
- Unread counters (mark read, record unread, totals)
- Write-back serialization across concurrent stores
"""

import asyncio
import gc
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from app.services.conversations import (
    LEGACY_UNSCOPED_KEYS,
    ConversationStore,
    StoreNotReadyError,
    StoreState,
    UnknownCandidateError,
    _scope_locks,
    merge_logs,
    parse_messages,
    parse_unread,
    scope_lock,
)
from app.services.marketplace import MarketplaceError, MessageDeliveryError


class TickingClock:
    """Clock advancing one second per call."""

    def __init__(self):
        self.now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self):
        self.now += timedelta(seconds=1)
        return self.now


class RewindingClock:
    """Clock stepping one second backwards per call."""

    def __init__(self):
        self.now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self):
        self.now -= timedelta(seconds=1)
        return self.now


@pytest.fixture
def transport():
    client = AsyncMock()
    client.send_message = AsyncMock(return_value=None)
    return client


@pytest.fixture
def store(memory_storage, transport):
    return ConversationStore(storage=memory_storage, transport=transport, clock=TickingClock())


CANDIDATES = [{"_id": "A", "full_name": "Alice"}, {"_id": "B", "name": "Bob"}]


class TestLoad:
    """Test restoring persisted state."""

    @pytest.mark.asyncio
    async def test_absent_keys_are_empty(self, store):
        await store.load({"id": "emp1"})

        assert store.state == StoreState.READY
        assert store.conversations == []
        assert store.unread == {}
        assert store.total_unread() == 0

    @pytest.mark.asyncio
    async def test_reads_scoped_keys(self, storage_factory, transport):
        storage = storage_factory({
            "employer_messages_emp1": [
                {"id": "2", "candidateId": "A", "candidateName": "Alice", "text": "hi", "timestamp": "2024-01-02"},
            ],
            "employer_unread_emp1": {"A": 3},
            "employer_unread_emp2": {"B": 9},
        })
        store = ConversationStore(storage=storage, transport=transport)

        await store.load({"_id": "emp1"})

        assert [entry.text for entry in store.conversations] == ["hi"]
        assert store.unread == {"A": 3}
        assert store.messages_key == "employer_messages_emp1"

    @pytest.mark.asyncio
    async def test_malformed_state_is_empty(self, memory_storage, transport):
        """Corrupt JSON and wrong shapes never reach the caller as errors."""
        memory_storage.data["employer_messages_anonymous"] = "{not json"
        memory_storage.data["employer_unread_anonymous"] = "[1, 2]"
        store = ConversationStore(storage=memory_storage, transport=transport)

        await store.load(None)

        assert store.scope == "anonymous"
        assert store.conversations == []
        assert store.unread == {}

    @pytest.mark.asyncio
    async def test_purges_legacy_keys_once_per_process(self, storage_factory, transport):
        """Stores built per request must not repeat the purge."""
        storage = storage_factory({key: "x" for key in LEGACY_UNSCOPED_KEYS})
        first = ConversationStore(storage=storage, transport=transport)

        await first.load("emp1")
        assert all(key not in storage.data for key in LEGACY_UNSCOPED_KEYS)

        storage.data["employer_logo_url"] = '"y"'
        second = ConversationStore(storage=storage, transport=transport)
        assert await second.initialize() == 0
        await second.load("emp2")
        assert "employer_logo_url" in storage.data

    @pytest.mark.asyncio
    async def test_non_decimal_ids_do_not_break_load(self, storage_factory, transport):
        """Superscript digits pass str.isdigit but are not integer ids."""
        storage = storage_factory({
            "employer_messages_emp1": [
                {"id": "\u00b2", "candidateId": "A", "text": "odd", "timestamp": "2024-01-01"},
                {"id": "5", "candidateId": "A", "text": "ok", "timestamp": "2023-01-01"},
            ],
        })
        store = ConversationStore(storage=storage, transport=transport, clock=TickingClock())

        await store.load("emp1")
        store.merge(CANDIDATES)
        entry = await store.send("A", "new")

        assert [e.text for e in store.conversations] == ["new", "ok", "odd"]
        assert int(entry.id) > 5

    @pytest.mark.asyncio
    async def test_requires_load(self, store):
        with pytest.raises(StoreNotReadyError):
            await store.send("A", "hello")

    @pytest.mark.asyncio
    async def test_deactivate(self, store):
        await store.load("emp1")
        store.merge(CANDIDATES)
        store.deactivate()

        assert store.state == StoreState.IDLE
        assert store.candidates == []
        with pytest.raises(StoreNotReadyError):
            store.merge(CANDIDATES)


class TestMerge:
    """Test candidate merging."""

    @pytest.mark.asyncio
    async def test_deduplicates_candidates(self, store):
        await store.load("emp1")

        merged = store.merge(CANDIDATES + [{"id": "A", "name": "Alice Again"}, {"name": "no id"}])

        assert [(c.id, c.name) for c in merged] == [("A", "Alice"), ("B", "Bob")]

    @pytest.mark.asyncio
    async def test_merge_from_applications(self, store, sample_applications):
        await store.load("emp1")

        merged = store.merge_applications(sample_applications)

        assert [c.id for c in merged] == ["s1", "s2", "s3"]

    @pytest.mark.asyncio
    async def test_history_survives_stale_candidate_list(self, store):
        """Conversations stay visible when their candidate drops out."""
        await store.load("emp1")
        store.merge(CANDIDATES)
        await store.send("A", "Hello Alice")

        store.merge([{"_id": "B", "name": "Bob"}])

        assert [e.candidate_id for e in store.conversations] == ["A"]
        assert [p.id for p in store.conversation_partners()] == ["A"]
        with pytest.raises(UnknownCandidateError):
            await store.send("A", "Still there?")


class TestSend:
    """Test sending messages."""

    @pytest.mark.asyncio
    async def test_newest_first_ordering(self, store, memory_storage, transport):
        """A, B, A yields a newest-first log of three entries."""
        await store.load("emp1")
        store.merge(CANDIDATES)

        await store.send("A", "one")
        await store.send("B", "two")
        last = await store.send("A", "three")

        persisted = memory_storage.load("employer_messages_emp1")
        assert [item["text"] for item in persisted] == ["three", "two", "one"]
        assert persisted[0]["id"] == last.id
        assert persisted[0]["candidateName"] == "Alice"
        assert transport.send_message.await_count == 3

    @pytest.mark.asyncio
    async def test_newest_first_when_clock_steps_back(self, memory_storage, transport):
        """Ordering follows send order even if wall-clock time goes backwards."""
        store = ConversationStore(storage=memory_storage, transport=transport, clock=RewindingClock())
        await store.load("emp1")
        store.merge(CANDIDATES)

        await store.send("A", "first")
        await store.send("B", "second")

        persisted = memory_storage.load("employer_messages_emp1")
        assert [item["text"] for item in persisted] == ["second", "first"]
        assert [e.text for e in store.conversations] == ["second", "first"]

    @pytest.mark.asyncio
    async def test_failed_delivery_leaves_log_unchanged(self, store, memory_storage, transport):
        """A transport failure raises and records nothing."""
        await store.load("emp1")
        store.merge(CANDIDATES)
        await store.send("A", "delivered")
        transport.send_message.side_effect = MarketplaceError("503")

        with pytest.raises(MessageDeliveryError):
            await store.send("B", "lost")

        assert len(store.conversations) == 1
        assert len(memory_storage.load("employer_messages_emp1")) == 1

    @pytest.mark.asyncio
    async def test_rejects_empty_text(self, store, transport):
        await store.load("emp1")
        store.merge(CANDIDATES)

        with pytest.raises(ValueError):
            await store.send("A", "   ")
        transport.send_message.assert_not_called()

    @pytest.mark.asyncio
    async def test_rejects_unknown_candidate(self, store, transport):
        await store.load("emp1")
        store.merge(CANDIDATES)

        with pytest.raises(UnknownCandidateError):
            await store.send("Z", "hello")
        transport.send_message.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_transport(self, memory_storage):
        store = ConversationStore(storage=memory_storage)
        await store.load("emp1")
        store.merge(CANDIDATES)

        with pytest.raises(MessageDeliveryError):
            await store.send("A", "hello")

    @pytest.mark.asyncio
    async def test_write_failure_keeps_memory_state(self, storage_factory, transport):
        """Best-effort persistence: the send still succeeds."""
        storage = storage_factory(fail_writes=True)
        store = ConversationStore(storage=storage, transport=transport)
        await store.load("emp1")
        store.merge(CANDIDATES)

        entry = await store.send("A", "hello")

        assert store.conversations == [entry]
        assert "employer_messages_emp1" not in storage.data

    @pytest.mark.asyncio
    async def test_concurrent_stores_do_not_lose_sends(self, memory_storage, transport):
        """Two stores for one employer merge each other's writes."""
        clock = TickingClock()
        first = ConversationStore(storage=memory_storage, transport=transport, clock=clock)
        second = ConversationStore(storage=memory_storage, transport=transport, clock=clock)
        for s in (first, second):
            await s.load("emp1")
            s.merge(CANDIDATES)

        await asyncio.gather(first.send("A", "from first"), second.send("B", "from second"))

        persisted = memory_storage.load("employer_messages_emp1")
        assert sorted(item["text"] for item in persisted) == ["from first", "from second"]
        assert len({item["id"] for item in persisted}) == 2

    @pytest.mark.asyncio
    async def test_scopes_are_isolated(self, memory_storage, transport):
        one = ConversationStore(storage=memory_storage, transport=transport)
        two = ConversationStore(storage=memory_storage, transport=transport)
        await one.load("emp1")
        await two.load("emp2")
        one.merge(CANDIDATES)

        await one.send("A", "private")
        await two.load("emp2")

        assert two.conversations == []
        assert "employer_messages_emp2" not in memory_storage.data


class TestUnread:
    """Test unread counters."""

    @pytest.mark.asyncio
    async def test_mark_read_keeps_key(self, storage_factory, transport):
        storage = storage_factory({"employer_unread_emp1": {"cand1": 3}})
        store = ConversationStore(storage=storage, transport=transport)
        await store.load("emp1")
        assert store.total_unread() == 3

        unread = await store.mark_read("cand1")

        assert unread == {"cand1": 0}
        assert store.total_unread() == 0
        assert storage.load("employer_unread_emp1") == {"cand1": 0}

    @pytest.mark.asyncio
    async def test_mark_read_never_contacted(self, store):
        await store.load("emp1")

        assert await store.mark_read("new") == {"new": 0}

    @pytest.mark.asyncio
    async def test_record_unread_accumulates(self, store):
        await store.load("emp1")

        await store.record_unread("A")
        unread = await store.record_unread("A", 2)

        assert unread == {"A": 3}
        assert store.total_unread() == 3


    @pytest.mark.asyncio
    async def test_record_unread_rejects_non_positive_count(self, store, memory_storage):
        """No event means no counter is created."""
        await store.load("emp1")

        for count in (0, -2):
            with pytest.raises(ValueError):
                await store.record_unread("A", count)

        assert store.unread == {}
        assert "employer_unread_emp1" not in memory_storage.data


class TestHelpers:
    """Test parsing and merge helpers."""

    def test_parse_messages_drops_junk(self):
        raw = [
            {"id": "1", "candidateId": "A", "text": "ok", "timestamp": "t"},
            {"id": "2"},
            "junk",
        ]
        assert [e.id for e in parse_messages(raw)] == ["1"]
        assert parse_messages({"not": "a list"}) == []

    def test_parse_unread_drops_junk(self):
        assert parse_unread({"A": 2, "B": "3", "C": "x", "D": True, "E": -1}) == {"A": 2, "B": 3, "E": 0}

    def test_parse_unread_drops_non_finite_and_non_decimal(self):
        raw = {"A": float("inf"), "B": float("nan"), "C": "\u00b2", "D": 2.7}
        assert parse_unread(raw) == {"D": 2}

    def test_merge_logs_orders_by_id_before_timestamp(self):
        """Generated ids win over timestamps; non-numeric ids sort last."""
        entries = parse_messages([
            {"id": "legacy", "candidateId": "A", "text": "l", "timestamp": "2030-01-01"},
            {"id": "10", "candidateId": "A", "text": "a", "timestamp": "2024-01-02"},
            {"id": "11", "candidateId": "A", "text": "b", "timestamp": "2024-01-01"},
        ])

        assert [e.id for e in merge_logs(entries)] == ["11", "10", "legacy"]

    def test_scope_locks_are_released(self):
        """Locks nobody holds are dropped from the registry."""
        lock = scope_lock("emp-transient")
        assert scope_lock("emp-transient") is lock

        del lock
        gc.collect()

        assert "emp-transient" not in _scope_locks

    def test_merge_logs_union_newest_first(self):
        older = parse_messages([{"id": "1", "candidateId": "A", "text": "a", "timestamp": "2024-01-01"}])
        newer = parse_messages([{"id": "2", "candidateId": "B", "text": "b", "timestamp": "2024-01-02"}])

        merged = merge_logs(older, newer, older)

        assert [e.id for e in merged] == ["2", "1"]
