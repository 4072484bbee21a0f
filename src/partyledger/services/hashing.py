from __future__ import annotations

import hashlib

from partyledger.db.models import DivideShare, Expense, ExactShare


def _serialize_share(share: ExactShare | DivideShare) -> str:
    if isinstance(share, ExactShare):
        return f"exact:{share.amount.units}"
    return f"divide:{share.weight.normalize()}"


def calculate_expense_hash(expense: Expense) -> str:
    """Stable digest of the expense content, used to spot concurrent edits."""
    paid_by = ",".join(f"{pid}:{amount.units}" for pid, amount in sorted(expense.paid_by.items()))
    shares = ",".join(f"{pid}:{_serialize_share(share)}" for pid, share in sorted(expense.shares.items()))
    payload = "|".join(
        [
            expense.id,
            expense.name,
            expense.paid_at.isoformat(),
            paid_by,
            shares,
            ",".join(expense.photos),
            "transfer" if expense.is_transfer else "",
        ]
    )
    return hashlib.blake2b(payload.encode("utf-8"), digest_size=8).hexdigest()
