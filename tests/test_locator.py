import random
from datetime import datetime, timedelta, timezone

import pytest

from partyledger.db.models import Expense, divide
from partyledger.money import Money
from partyledger.services.identifiers import ExpenseIdGenerator, encode_expense_id
from partyledger.services.locator import find_expense_by_id

START = datetime(2024, 1, 1, tzinfo=timezone.utc)


def newest_first(count: int, chunk_id: str = "chunk") -> list[Expense]:
    generator = ExpenseIdGenerator()
    expenses = [
        Expense(
            id=encode_expense_id(chunk_id, START + timedelta(seconds=i), generator=generator),
            name=f"expense {i}",
            paid_at=START,
            paid_by={"a": Money(100)},
            shares={"a": divide(1)},
        )
        for i in range(count)
    ]
    expenses.reverse()
    return expenses


@pytest.mark.parametrize("count", [1, 2, 500])
def test_finds_first_last_middle_and_random(count):
    expenses = newest_first(count)
    positions = {0, count - 1, count // 2, random.Random(count).randrange(count)}
    for position in positions:
        expense, index = find_expense_by_id(expenses, expenses[position].id)
        assert index == position
        assert expense is expenses[position]


@pytest.mark.parametrize("count", [0, 1, 2, 500])
def test_absent_id(count):
    expenses = newest_first(count)
    outsider = newest_first(1, chunk_id="other")[0]
    assert find_expense_by_id(expenses, outsider.id) == (None, -1)


def test_every_element_is_found():
    expenses = newest_first(37)
    for position, expense in enumerate(expenses):
        assert find_expense_by_id(expenses, expense.id) == (expense, position)
