from datetime import datetime, timezone
from decimal import Decimal

import pytest

from partyledger.db.models import (
    DivideShare,
    ExactShare,
    Expense,
    ExpenseChunk,
    dump_document,
    load_document,
)
from partyledger.money import Money


def test_chunk_document_serializes_money_as_integers():
    chunk = ExpenseChunk(
        id="c1",
        party_id="p1",
        created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        max_size=500,
        expenses=[
            Expense(
                id="01J:c1",
                name="Pizza",
                paid_at=datetime(2024, 1, 1, 20, 0, tzinfo=timezone.utc),
                paid_by={"a": Money(2400)},
                shares={"a": ExactShare(Money(400)), "b": DivideShare(Decimal("1.5"))},
                photos=("photo-1",),
            )
        ],
    )

    data = dump_document(chunk)
    expense = data["expenses"][0]
    assert expense["paid_by"] == {"a": 2400}
    assert expense["shares"]["a"] == {"amount": 400, "kind": "exact"}
    assert expense["shares"]["b"]["kind"] == "divide"

    restored = load_document("expense_chunk", data)
    assert restored == chunk
    assert isinstance(restored.expenses[0].shares["b"], DivideShare)


def test_unknown_document_type():
    with pytest.raises(ValueError):
        load_document("photo", {})
    with pytest.raises(TypeError):
        dump_document(object())
