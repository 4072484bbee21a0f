from __future__ import annotations

from typing import Iterable, Mapping

from partyledger.db.models import DivideShare, ExactShare, Party, ShareSpec
from partyledger.money import Money


class ExpenseValidationError(ValueError):
    pass


def is_known_participant(party: Party, participant_id: str) -> bool:
    return participant_id in party.participants


def assert_known_participants(party: Party, participant_ids: Iterable[str]) -> None:
    unknown = sorted(pid for pid in set(participant_ids) if not is_known_participant(party, pid))
    if unknown:
        raise ExpenseValidationError(f"Unknown participants: {', '.join(unknown)}")


def validate_expense(party: Party, paid_by: Mapping[str, Money], shares: Mapping[str, ShareSpec]) -> None:
    """Reject inconsistent expenses before they are written.

    Once stored, an expense is always resolved leniently; this is the only
    place where a bad split stops anything.
    """
    if not paid_by:
        raise ExpenseValidationError("An expense needs at least one payer")
    if not shares:
        raise ExpenseValidationError("An expense needs at least one share")

    for payer, amount in paid_by.items():
        if amount.units <= 0:
            raise ExpenseValidationError(f"Payer {payer} must pay a positive amount")

    assert_known_participants(party, [*paid_by, *shares])

    total = Money.total(paid_by.values())
    exact_total = Money.total(s.amount for s in shares.values() if isinstance(s, ExactShare))
    if exact_total > total:
        raise ExpenseValidationError(
            f"Exact shares ({exact_total.units}) exceed the amount paid ({total.units})"
        )
    if all(isinstance(s, ExactShare) for s in shares.values()) and exact_total != total:
        raise ExpenseValidationError(
            f"Exact shares ({exact_total.units}) do not add up to the amount paid ({total.units})"
        )
    for participant, share in shares.items():
        if isinstance(share, DivideShare) and share.weight <= 0:
            raise ExpenseValidationError(f"Divide share of {participant} needs a positive weight")
