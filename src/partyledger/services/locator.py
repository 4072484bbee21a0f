from __future__ import annotations

from typing import Optional, Sequence

from partyledger.db.models import Expense
from partyledger.services.identifiers import decode_expense_id


def find_expense_by_id(expenses: Sequence[Expense], expense_id: str) -> tuple[Optional[Expense], int]:
    """Binary search for an expense in one chunk.

    ``expenses`` MUST be sorted newest first, i.e. descending by local id, which
    is how chunks store them. Sortedness is not checked; on unsorted input the
    search may miss an expense that is present.

    Returns ``(expense, index)``, or ``(None, -1)`` when the id is not in the
    sequence (for instance because it lives in another chunk).
    """
    target = decode_expense_id(expense_id).local_id

    start = 0
    end = len(expenses) - 1
    while start <= end:
        mid = (start + end) // 2
        expense = expenses[mid]
        mid_id = decode_expense_id(expense.id).local_id

        if mid_id == target:
            return expense, mid
        if mid_id > target:
            start = mid + 1
        else:
            end = mid - 1

    return None, -1
