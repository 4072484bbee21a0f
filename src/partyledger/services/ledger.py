from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Iterable, Mapping, Optional

from partyledger.config import Settings, get_settings
from partyledger.db.models import ChunkBalances, ChunkRef, Expense, ExpenseChunk, Participant, Party, ShareSpec
from partyledger.db.store import DocumentHandle, DocumentStore
from partyledger.diagnostics import DiagnosticSink, log_diagnostic
from partyledger.logging import get_logger
from partyledger.money import Money
from partyledger.services.balance import BalancesByParticipant, compute_balances, merge_balances
from partyledger.services.chunks import ChunkManager, collect_expenses
from partyledger.services.hashing import calculate_expense_hash
from partyledger.services.identifiers import ExpenseIdGenerator, decode_expense_id, encode_expense_id
from partyledger.services.locator import find_expense_by_id
from partyledger.services.validation import validate_expense


class PartyNotFound(LookupError):
    pass


class ExpenseNotFound(LookupError):
    pass


@dataclass(slots=True)
class ExpenseDraft:
    name: str
    paid_at: datetime
    paid_by: dict[str, Money]
    shares: dict[str, ShareSpec]
    photos: tuple[str, ...] = ()
    is_transfer: bool = False


@dataclass(slots=True)
class PartyLedger:
    """Write and read operations on one document store.

    Every write keeps the per-chunk balances document in sync, so reading
    party balances is a merge of precomputed chunk results.
    """

    store: DocumentStore
    settings: Settings = field(default_factory=get_settings)
    id_generator: ExpenseIdGenerator = field(default_factory=ExpenseIdGenerator)
    report: DiagnosticSink = log_diagnostic
    chunks: ChunkManager = field(init=False)

    def __post_init__(self) -> None:
        self.chunks = ChunkManager(self.store, max_size=self.settings.chunk_max_size)

    def _party_handle(self, party_id: str) -> tuple[DocumentHandle[Party], Party]:
        handle = self.store.find(party_id)
        party = handle.doc()
        if party is None:
            raise PartyNotFound(party_id)
        return handle, party

    def _chunk_ref(self, party: Party, chunk_id: str) -> Optional[ChunkRef]:
        for ref in party.chunk_refs:
            if ref.chunk_id == chunk_id:
                return ref
        return None

    def create_party(
        self,
        name: str,
        currency: str,
        participants: Iterable[Participant] = (),
        description: str = "",
    ) -> Party:
        party = Party(
            id="",
            name=name,
            currency=currency,
            participants={p.id: p for p in participants},
            description=description,
        )
        handle = self.store.create(party)
        get_logger(__name__).info("party.created", party_id=handle.id, participants=len(party.participants))
        return party

    def add_participant(self, party_id: str, participant: Participant) -> None:
        handle, _ = self._party_handle(party_id)

        def mutate(doc: Party) -> None:
            doc.participants[participant.id] = participant

        handle.change(mutate)

    def archive_participant(self, party_id: str, participant_id: str) -> None:
        handle, party = self._party_handle(party_id)
        if participant_id not in party.participants:
            raise LookupError(participant_id)

        def mutate(doc: Party) -> None:
            doc.participants[participant_id].archived = True

        handle.change(mutate)

    def add_expense(self, party_id: str, draft: ExpenseDraft) -> Expense:
        handle, party = self._party_handle(party_id)
        validate_expense(party, draft.paid_by, draft.shares)

        chunk_ref = self.chunks.open_chunk(handle)
        expense_id = encode_expense_id(chunk_ref.chunk_id, generator=self.id_generator)
        expense = Expense(
            id=expense_id,
            name=draft.name,
            paid_at=draft.paid_at,
            paid_by=dict(draft.paid_by),
            shares=dict(draft.shares),
            photos=tuple(draft.photos),
            is_transfer=draft.is_transfer,
        )
        expense = replace(expense, hash=calculate_expense_hash(expense))

        self.chunks.append(chunk_ref, expense)
        self.recalculate_chunk_balances(party, chunk_ref)
        get_logger(__name__).info("expense.created", party_id=party_id, expense_id=expense.id)
        return expense

    def get_expense(self, party_id: str, expense_id: str) -> Optional[Expense]:
        _, party = self._party_handle(party_id)
        ref = self._chunk_ref(party, decode_expense_id(expense_id).chunk_id)
        if ref is None:
            return None
        expense, _ = find_expense_by_id(self.chunks.load_chunk(ref.chunk_id).expenses, expense_id)
        return expense

    def _locate(self, party: Party, expense_id: str) -> tuple[ChunkRef, int]:
        ref = self._chunk_ref(party, decode_expense_id(expense_id).chunk_id)
        if ref is None:
            raise ExpenseNotFound(expense_id)
        _, index = find_expense_by_id(self.chunks.load_chunk(ref.chunk_id).expenses, expense_id)
        if index < 0:
            raise ExpenseNotFound(expense_id)
        return ref, index

    def update_expense(self, party_id: str, expense: Expense) -> Expense:
        _, party = self._party_handle(party_id)
        validate_expense(party, expense.paid_by, expense.shares)
        ref, index = self._locate(party, expense.id)

        updated = replace(expense, hash=calculate_expense_hash(expense))

        def mutate(chunk: ExpenseChunk) -> None:
            chunk.expenses[index] = updated

        self.store.find(ref.chunk_id).change(mutate)
        self.recalculate_chunk_balances(party, ref)
        get_logger(__name__).info("expense.updated", party_id=party_id, expense_id=expense.id)
        return updated

    def delete_expense(self, party_id: str, expense_id: str) -> None:
        _, party = self._party_handle(party_id)
        ref, index = self._locate(party, expense_id)

        def mutate(chunk: ExpenseChunk) -> None:
            del chunk.expenses[index]

        self.store.find(ref.chunk_id).change(mutate)
        self.recalculate_chunk_balances(party, ref)
        get_logger(__name__).info("expense.deleted", party_id=party_id, expense_id=expense_id)

    def list_expenses(self, party_id: str) -> list[Expense]:
        _, party = self._party_handle(party_id)
        return collect_expenses(self.chunks.load_chunk(ref.chunk_id) for ref in party.chunk_refs)

    def recalculate_chunk_balances(self, party: Party, chunk_ref: ChunkRef) -> BalancesByParticipant:
        chunk = self.chunks.load_chunk(chunk_ref.chunk_id)
        balances = compute_balances(chunk.expenses, party.participants, report=self.report)

        def mutate(doc: ChunkBalances) -> None:
            doc.balances = balances

        self.store.find(chunk_ref.balances_id).change(mutate)
        return balances

    def recalculate_all_balances(self, party_id: str) -> None:
        _, party = self._party_handle(party_id)
        for ref in party.chunk_refs:
            self.recalculate_chunk_balances(party, ref)

    def balances(self, party_id: str) -> BalancesByParticipant:
        _, party = self._party_handle(party_id)
        batches: list[Mapping] = []
        for ref in party.chunk_refs:
            doc = self.store.find(ref.balances_id).doc()
            if doc is not None:
                batches.append(doc.balances)
        # a zero batch over the current participants lists newcomers too
        batches.append(compute_balances([], party.participants, report=self.report))
        return merge_balances(*batches)
