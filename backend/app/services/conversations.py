"""
Conversation Store - Employer message log and unread counters

Keeps the employer-facing log of sent messages and the per-candidate unread
map, persisted in key-value storage under the employer's identity scope and
merged with a freshly fetched candidate list each time the messages view
is activated.

Lifecycle:
    IDLE --load()--> LOADING --> READY --deactivate()--> IDLE

Storage keys (scope = resolve_identity_scope(user), "anonymous" fallback):
    employer_messages_{scope} - conversation entries, newest first
    employer_unread_{scope}   - candidate id -> unread count

Legacy unscoped keys (employer_logo_url, employer_dashboard_tab, ...) leaked
state between accounts sharing a browser; they are deleted once per process,
the first time any store is initialized.

Invariants:
    - The log is append-only and newest-first
    - send() delivers remotely before touching the log, so a failed
      delivery never leaves a local "sent" record
    - markRead() sets a counter to 0 and keeps the key
    - Every mutation writes the whole list/map back in one operation,
      serialized per scope by an asyncio.Lock

Persistence failures degrade to empty state on read and are ignored on
write; delivery failures are raised to the caller.
"""

import asyncio
import logging
import math
import weakref
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Protocol

from pydantic import ValidationError

from app.middleware.metrics import record_send_failure
from app.schemas.records import CandidateRef, ConversationEntry
from app.services.marketplace import MarketplaceError, MessageDeliveryError
from app.services.records import unique_candidates
from app.services.resolver import ANONYMOUS_SCOPE, key_value, resolve_identity_scope, scoped_key
from app.services.storage import KeyValueStorage

logger = logging.getLogger(__name__)

MESSAGES_PREFIX = "employer_messages"
UNREAD_PREFIX = "employer_unread"

LEGACY_UNSCOPED_KEYS = (
    "employer_logo_url",
    "employer_dashboard_tab",
    "employer_sidebar_collapsed",
    "employer_logo_shape",
)


class StoreState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"


class MessageTransport(Protocol):
    async def send_message(self, candidate_id: str, text: str) -> Any:
        ...


class UnknownCandidateError(ValueError):
    """The candidate is not in the current candidate list."""


class StoreNotReadyError(RuntimeError):
    """The store must be loaded before it can be used."""


_scope_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

# Legacy keys are shared by every scope, so one purge per process is enough
_legacy_purged = False


def scope_lock(scope: str) -> asyncio.Lock:
    """
    One lock per identity scope, shared by every store in the process.

    Locks live only while some coroutine holds a reference, so scopes that
    are no longer in use do not accumulate.
    """
    lock = _scope_locks.get(scope)
    if lock is None:
        lock = asyncio.Lock()
        _scope_locks[scope] = lock
    return lock


def reset_scope_locks() -> None:
    _scope_locks.clear()


def reset_legacy_purge() -> None:
    global _legacy_purged
    _legacy_purged = False


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def numeric_id(entry_id: str) -> Optional[int]:
    """Integer value of a generated entry id; None for legacy/non-numeric ids."""
    return int(entry_id) if entry_id.isdecimal() else None


def parse_messages(raw: Any) -> List[ConversationEntry]:
    """Persisted log -> entries; anything unreadable is dropped."""
    if not isinstance(raw, list):
        return []
    entries = []
    skipped = 0
    for item in raw:
        if not isinstance(item, Mapping):
            skipped += 1
            continue
        try:
            entries.append(ConversationEntry.model_validate(item))
        except ValidationError:
            skipped += 1
    if skipped:
        logger.debug(f"Skipped {skipped} malformed conversation entries")
    return entries


def parse_unread(raw: Any) -> Dict[str, int]:
    """Persisted unread map -> {candidate_id: count >= 0}; junk values dropped."""
    if not isinstance(raw, Mapping):
        return {}
    unread = {}
    for candidate_id, value in raw.items():
        if isinstance(value, bool):
            continue
        if isinstance(value, int):
            unread[str(candidate_id)] = max(value, 0)
        elif isinstance(value, float) and math.isfinite(value):
            unread[str(candidate_id)] = max(int(value), 0)
        elif isinstance(value, str) and value.strip().isdecimal():
            unread[str(candidate_id)] = int(value.strip())
    return unread


def _entry_order(entry: ConversationEntry):
    # Generated ids are monotonic; timestamps only order legacy entries
    number = numeric_id(entry.id)
    return (number is not None, number or 0, entry.timestamp)


def _highest_id(entries: Iterable[ConversationEntry]) -> int:
    return max((n for n in (numeric_id(e.id) for e in entries) if n is not None), default=0)


def merge_logs(*logs: Iterable[ConversationEntry]) -> List[ConversationEntry]:
    """Union of logs by entry id, newest first."""
    by_id: Dict[str, ConversationEntry] = {}
    for log in logs:
        for entry in log:
            by_id.setdefault(entry.id, entry)
    return sorted(by_id.values(), key=_entry_order, reverse=True)


class ConversationStore:
    """
    Message log and unread counters for one employer.

    Attributes:
        storage: Key-value storage for persisted state
        transport: Delivers messages (MarketplaceClient in production)
        state: IDLE, LOADING or READY
        scope: Identity scope of the loaded employer
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        transport: Optional[MessageTransport] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.storage = storage
        self.transport = transport
        self.state = StoreState.IDLE
        self.scope = ANONYMOUS_SCOPE
        self._clock = clock
        self._messages: List[ConversationEntry] = []
        self._unread: Dict[str, int] = {}
        self._candidates: Dict[str, CandidateRef] = {}
        self._last_id = 0

    @property
    def messages_key(self) -> str:
        return scoped_key(MESSAGES_PREFIX, self.scope)

    @property
    def unread_key(self) -> str:
        return scoped_key(UNREAD_PREFIX, self.scope)

    @property
    def conversations(self) -> List[ConversationEntry]:
        """Sent messages, newest first."""
        return list(self._messages)

    @property
    def unread(self) -> Dict[str, int]:
        return dict(self._unread)

    @property
    def candidates(self) -> List[CandidateRef]:
        """Candidates that can be messaged (from the last merge)."""
        return list(self._candidates.values())

    async def initialize(self) -> int:
        """
        Purge legacy unscoped keys, once per process.

        Returns:
            Number of legacy keys removed
        """
        global _legacy_purged
        if _legacy_purged:
            return 0
        removed = await self.storage.delete(*LEGACY_UNSCOPED_KEYS)
        _legacy_purged = True
        if removed:
            logger.info(f"Purged {removed} legacy unscoped keys")
        return removed

    async def load(self, employer: Any = None) -> None:
        """
        Restore the persisted log and unread map for an employer.

        Args:
            employer: User mapping/object or identifier string; None is anonymous
        """
        await self.initialize()
        self.scope = resolve_identity_scope(employer)
        self.state = StoreState.LOADING

        stored_messages = await self.storage.get_json(self.messages_key, family="messages")
        stored_unread = await self.storage.get_json(self.unread_key, family="unread")

        self._messages = parse_messages(stored_messages)
        self._unread = parse_unread(stored_unread)
        self._candidates = {}
        self._last_id = _highest_id(self._messages)
        self.state = StoreState.READY
        logger.debug(
            f"Loaded {len(self._messages)} messages and {len(self._unread)} unread counters "
            f"for scope {self.scope}"
        )

    def deactivate(self) -> None:
        """View left: drop the candidate list and stop serving until reloaded."""
        self._candidates = {}
        self.state = StoreState.IDLE

    def _require_ready(self) -> None:
        if self.state != StoreState.READY:
            raise StoreNotReadyError(f"Conversation store is {self.state.value}, load() it first")

    def merge(self, candidates: Iterable[Any]) -> List[CandidateRef]:
        """
        Replace the messageable candidate list with a fresh one.

        Candidates are de-duplicated by id (first wins). History is left
        alone: conversations with candidates missing from the fresh list
        stay visible.

        Returns:
            The candidates that can now be messaged
        """
        self._require_ready()
        fresh: Dict[str, CandidateRef] = {}
        for candidate in candidates or ():
            if isinstance(candidate, CandidateRef):
                ref = candidate
            else:
                candidate_id = key_value(candidate, ("id", "_id"))
                if not candidate_id:
                    continue
                name = key_value(candidate, ("full_name", "name"), kind="id") or "Unknown"
                ref = CandidateRef(id=candidate_id, name=name.strip() or "Unknown")
            fresh.setdefault(ref.id, ref)
        self._candidates = fresh
        return self.candidates

    def merge_applications(self, applications: Iterable[Any]) -> List[CandidateRef]:
        """Merge the candidates derived from an application list."""
        return self.merge(unique_candidates(applications))

    def conversation_partners(self) -> List[CandidateRef]:
        """Everyone with history, whether or not still in the candidate list."""
        partners: Dict[str, CandidateRef] = {}
        for entry in self._messages:
            partners.setdefault(
                entry.candidate_id,
                CandidateRef(id=entry.candidate_id, name=entry.candidate_name),
            )
        return list(partners.values())

    def _next_id(self, now: datetime) -> str:
        candidate = int(now.timestamp() * 1000)
        if candidate <= self._last_id:
            candidate = self._last_id + 1
        self._last_id = candidate
        return str(candidate)

    async def send(self, candidate_id: str, text: str) -> ConversationEntry:
        """
        Deliver a message, then record it.

        Raises:
            ValueError: Empty message text
            UnknownCandidateError: Candidate not in the merged candidate list
            MessageDeliveryError: Remote delivery failed; the log is unchanged
        """
        self._require_ready()
        body = (text or "").strip()
        if not body:
            raise ValueError("Message text is empty")

        candidate = self._candidates.get(str(candidate_id))
        if candidate is None:
            raise UnknownCandidateError(f"Candidate {candidate_id} is not available for messaging")
        if self.transport is None:
            raise MessageDeliveryError("No message transport configured")

        try:
            await self.transport.send_message(candidate.id, body)
        except MarketplaceError as e:
            record_send_failure()
            logger.warning(f"Message to candidate {candidate.id} not delivered: {e}")
            if isinstance(e, MessageDeliveryError):
                raise
            raise MessageDeliveryError(str(e)) from e

        now = self._clock()
        async with scope_lock(self.scope):
            persisted = parse_messages(
                await self.storage.get_json(self.messages_key, family="messages")
            )
            self._last_id = max(self._last_id, _highest_id(persisted))
            entry = ConversationEntry(
                id=self._next_id(now),
                candidate_id=candidate.id,
                candidate_name=candidate.name,
                text=body,
                timestamp=now.isoformat(),
            )
            self._messages = merge_logs([entry], self._messages, persisted)
            await self._write_messages()
        return entry

    async def mark_read(self, candidate_id: str) -> Dict[str, int]:
        """Reset a candidate's unread count to 0, keeping the key."""
        self._require_ready()
        return await self._update_unread(str(candidate_id), lambda current: 0)

    async def record_unread(self, candidate_id: str, count: int = 1) -> Dict[str, int]:
        """
        Register unread-triggering events for a candidate.

        Raises:
            ValueError: count below 1 (no event, so no counter is created)
        """
        self._require_ready()
        increment = int(count)
        if increment < 1:
            raise ValueError(f"Unread count must be at least 1, got {count}")
        return await self._update_unread(str(candidate_id), lambda current: current + increment)

    async def _update_unread(self, candidate_id: str, update: Callable[[int], int]) -> Dict[str, int]:
        async with scope_lock(self.scope):
            stored = await self.storage.get_json(self.unread_key, family="unread")
            unread = parse_unread(stored) if stored is not None else dict(self._unread)
            unread[candidate_id] = max(update(unread.get(candidate_id, 0)), 0)
            self._unread = unread
            await self._write_unread()
        return self.unread

    def total_unread(self) -> int:
        return sum(self._unread.values())

    async def _write_messages(self) -> None:
        payload = [entry.model_dump(by_alias=True) for entry in self._messages]
        if not await self.storage.set_json(self.messages_key, payload, family="messages"):
            logger.warning(f"Conversation log for scope {self.scope} kept in memory only")

    async def _write_unread(self) -> None:
        if not await self.storage.set_json(self.unread_key, self._unread, family="unread"):
            logger.warning(f"Unread counters for scope {self.scope} kept in memory only")
