from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import Field, TypeAdapter

from partyledger.money import Money


@dataclass(frozen=True, slots=True)
class ExactShare:
    amount: Money
    kind: Literal["exact"] = "exact"


@dataclass(frozen=True, slots=True)
class DivideShare:
    weight: Decimal
    kind: Literal["divide"] = "divide"

    def __post_init__(self) -> None:
        if isinstance(self.weight, (bool, float)):
            raise TypeError("divide weight must be an int or Decimal")
        weight = Decimal(self.weight)
        if weight < 0:
            raise ValueError("divide weight must not be negative")
        object.__setattr__(self, "weight", weight)


ShareSpec = Annotated[Union[ExactShare, DivideShare], Field(discriminator="kind")]


def exact(amount: int | Money) -> ExactShare:
    return ExactShare(amount if isinstance(amount, Money) else Money(amount))


def divide(weight: int | Decimal) -> DivideShare:
    return DivideShare(Decimal(weight))


@dataclass(frozen=True, slots=True)
class Expense:
    id: str
    name: str
    paid_at: datetime
    paid_by: dict[str, Money]
    shares: dict[str, ShareSpec]
    photos: tuple[str, ...] = ()
    is_transfer: bool = False
    hash: str = ""

    @property
    def total(self) -> Money:
        return Money.total(self.paid_by.values())


@dataclass(slots=True)
class Participant:
    id: str
    name: str
    archived: bool = False


@dataclass(frozen=True, slots=True)
class ChunkRef:
    chunk_id: str
    created_at: datetime
    balances_id: str


@dataclass(slots=True)
class Party:
    id: str
    name: str
    currency: str
    participants: dict[str, Participant] = field(default_factory=dict)
    # newest chunk first
    chunk_refs: list[ChunkRef] = field(default_factory=list)
    description: str = ""

    def active_participants(self) -> dict[str, Participant]:
        return {pid: p for pid, p in self.participants.items() if not p.archived}

    def archived_participants(self) -> dict[str, Participant]:
        return {pid: p for pid, p in self.participants.items() if p.archived}


@dataclass(slots=True)
class ExpenseChunk:
    id: str
    party_id: str
    created_at: datetime
    max_size: int
    # newest first, sorted descending by local id
    expenses: list[Expense] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class PairDiff:
    diff_unsplit: Money


@dataclass(frozen=True, slots=True)
class Balance:
    participant_id: str
    user_owes: Money
    owed_to_user: Money
    diffs: dict[str, PairDiff]
    balance: Money
    visual_ratio: float = 0.0


@dataclass(slots=True)
class ChunkBalances:
    id: str
    party_id: str
    balances: dict[str, Balance] = field(default_factory=dict)


DOCUMENT_TYPES: dict[str, type] = {
    "party": Party,
    "expense_chunk": ExpenseChunk,
    "chunk_balances": ChunkBalances,
}

_ADAPTERS: dict[str, TypeAdapter[Any]] = {name: TypeAdapter(cls) for name, cls in DOCUMENT_TYPES.items()}


def document_type(doc: Any) -> str:
    for name, cls in DOCUMENT_TYPES.items():
        if isinstance(doc, cls):
            return name
    raise TypeError(f"Unsupported document: {type(doc).__name__}")


def dump_document(doc: Any) -> dict[str, Any]:
    return _ADAPTERS[document_type(doc)].dump_python(doc, mode="json")


def load_document(doc_type: str, data: Any) -> Any:
    adapter: Optional[TypeAdapter[Any]] = _ADAPTERS.get(doc_type)
    if adapter is None:
        raise ValueError(f"Unknown document type: {doc_type}")
    return adapter.validate_python(data)
