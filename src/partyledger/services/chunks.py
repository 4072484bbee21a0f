from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Iterable, Optional, Sequence

from partyledger.db.models import ChunkBalances, ChunkRef, Expense, ExpenseChunk, Party
from partyledger.db.store import DocumentHandle, DocumentNotFound, DocumentStore
from partyledger.logging import get_logger

DEFAULT_MAX_SIZE = 500


class ChunkState(str, Enum):
    OPEN = "open"
    SEALED = "sealed"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def append_expense(chunk: ExpenseChunk, expense: Expense) -> None:
    chunk.expenses.insert(0, expense)


def is_full(chunk: ExpenseChunk) -> bool:
    return len(chunk.expenses) >= chunk.max_size


def chunk_state(party: Party, chunk_id: str) -> ChunkState:
    if party.chunk_refs and party.chunk_refs[0].chunk_id == chunk_id:
        return ChunkState.OPEN
    return ChunkState.SEALED


def collect_expenses(chunks: Iterable[ExpenseChunk]) -> list[Expense]:
    ordered = sorted(chunks, key=lambda chunk: chunk.created_at, reverse=True)
    return [expense for chunk in ordered for expense in chunk.expenses]


def next_chunk_ids(party: Party, loaded: Sequence[str], count: int = 1) -> list[str]:
    loaded_set = set(loaded)
    return [ref.chunk_id for ref in party.chunk_refs if ref.chunk_id not in loaded_set][:count]


class ChunkManager:
    """Creates, fills and rolls over the expense chunks of a party.

    Only the head of ``party.chunk_refs`` takes new expenses; the list is only
    ever prepended to.
    """

    def __init__(
        self,
        store: DocumentStore,
        max_size: int = DEFAULT_MAX_SIZE,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        self.store = store
        self.max_size = max_size
        self._clock = clock
        self._log = get_logger(__name__)

    def current_chunk(self, party: Party) -> Optional[ChunkRef]:
        return party.chunk_refs[0] if party.chunk_refs else None

    def load_chunk(self, chunk_id: str) -> ExpenseChunk:
        chunk = self.store.find(chunk_id).doc()
        if chunk is None:
            raise DocumentNotFound(chunk_id)
        return chunk

    def create_chunk(self, party_handle: DocumentHandle[Party]) -> ChunkRef:
        now = self._clock()
        chunk_handle = self.store.create(
            ExpenseChunk(id="", party_id=party_handle.id, created_at=now, max_size=self.max_size)
        )
        balances_handle = self.store.create(ChunkBalances(id="", party_id=party_handle.id))
        ref = ChunkRef(chunk_id=chunk_handle.id, created_at=now, balances_id=balances_handle.id)

        party_handle.change(lambda party: party.chunk_refs.insert(0, ref))
        self._log.info("chunk.created", party_id=party_handle.id, chunk_id=ref.chunk_id)
        return ref

    def rollover_if_full(self, party_handle: DocumentHandle[Party], chunk_ref: ChunkRef) -> ChunkRef:
        chunk = self.load_chunk(chunk_ref.chunk_id)
        if not is_full(chunk):
            return chunk_ref
        self._log.info("chunk.rollover", party_id=party_handle.id, sealed_chunk_id=chunk_ref.chunk_id)
        return self.create_chunk(party_handle)

    def open_chunk(self, party_handle: DocumentHandle[Party]) -> ChunkRef:
        party = party_handle.doc()
        if party is None:
            raise DocumentNotFound(party_handle.id)
        ref = self.current_chunk(party)
        if ref is None:
            return self.create_chunk(party_handle)
        return self.rollover_if_full(party_handle, ref)

    def append(self, chunk_ref: ChunkRef, expense: Expense) -> None:
        self.store.find(chunk_ref.chunk_id).change(lambda chunk: append_expense(chunk, expense))
