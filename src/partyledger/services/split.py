from __future__ import annotations

from dataclasses import dataclass, field
from fractions import Fraction
from typing import Mapping, Sequence

from partyledger.db.models import DivideShare, ExactShare, Expense, ShareSpec
from partyledger.diagnostics import Diagnostic, DiagnosticCode, DiagnosticSink, log_diagnostic
from partyledger.money import Money


@dataclass(slots=True)
class ResolvedDistribution:
    payer: str
    total_paid: Money
    paid_for: dict[str, Money] = field(default_factory=dict)


def _partition(shares: Mapping[str, ShareSpec]) -> tuple[dict[str, ExactShare], dict[str, DivideShare]]:
    exacts: dict[str, ExactShare] = {}
    divides: dict[str, DivideShare] = {}
    for participant, share in shares.items():
        if isinstance(share, ExactShare):
            exacts[participant] = share
        else:
            divides[participant] = share
    return exacts, divides


def distribute_rounding_error(allocations: dict[str, Money], error: int) -> dict[str, Money]:
    """Spread ``error`` minor units over ``allocations`` one unit at a time.

    A positive error goes to the smallest allocations first, a negative one is
    taken from the largest first. Equal allocations are ordered by participant
    id, so the outcome never depends on mapping order.
    """
    if error == 0 or not allocations:
        return allocations

    if error > 0:
        ordered = sorted(allocations, key=lambda pid: (allocations[pid].units, pid))
    else:
        ordered = sorted(allocations, key=lambda pid: (-allocations[pid].units, pid))

    step = 1 if error > 0 else -1
    adjusted = dict(allocations)
    for i in range(abs(error)):
        participant = ordered[i % len(ordered)]
        adjusted[participant] = Money(adjusted[participant].units + step)
    return adjusted


def _total_weight(divides: Mapping[str, DivideShare]) -> Fraction:
    return sum((Fraction(share.weight) for share in divides.values()), Fraction(0))


def _divide_remainder(amount_left: Money, divides: Mapping[str, DivideShare]) -> dict[str, Money]:
    total_weight = _total_weight(divides)
    if total_weight <= 0:
        return {}

    provisional = {
        participant: amount_left.scale(Fraction(share.weight) / total_weight)
        for participant, share in divides.items()
    }
    error = amount_left.units - Money.total(provisional.values()).units
    return distribute_rounding_error(provisional, error)


def _absorb_remainder(allocations: dict[str, Money], amount_left: Money, payer: str) -> dict[str, Money]:
    """Fold ``amount_left`` into the exact allocations, proportionally to their amounts.

    With nothing to scale against, the payer keeps the remainder for themself,
    which leaves every balance untouched.
    """
    base = Money.total(allocations.values())
    if base.units <= 0 or any(amount.is_negative() for amount in allocations.values()):
        adjusted = dict(allocations)
        adjusted[payer] = adjusted.get(payer, Money.zero()) + amount_left
        return adjusted

    target = base + amount_left
    factor = Fraction(target.units, base.units)
    scaled = {participant: amount.scale(factor) for participant, amount in allocations.items()}
    return distribute_rounding_error(scaled, target.units - Money.total(scaled.values()).units)


def resolve_shares(
    paid_by: Mapping[str, Money],
    shares: Mapping[str, ShareSpec],
    report: DiagnosticSink = log_diagnostic,
    expense_id: str | None = None,
) -> list[ResolvedDistribution]:
    if not paid_by:
        report(
            Diagnostic(
                DiagnosticCode.NO_PAYER,
                "Nobody paid for this expense",
                {"expense_id": expense_id},
            )
        )
        return []

    total = Money.total(paid_by.values())
    exacts, divides = _partition(shares)
    divides_absorb = _total_weight(divides) > 0
    # exact shares alone cover the total: leftovers are pure rounding
    exact_covers_total = not divides_absorb and Money.total(s.amount for s in exacts.values()) == total

    rows: list[ResolvedDistribution] = []
    for payer, partial in paid_by.items():
        factor = Fraction(partial.units, total.units) if total.units else Fraction(0)
        paid_for: dict[str, Money] = {}

        for participant, share in exacts.items():
            paid_for[participant] = share.amount.scale(factor)
        amount_left = partial - Money.total(paid_for.values())

        if exact_covers_total and not amount_left.is_zero():
            paid_for = distribute_rounding_error(paid_for, amount_left.units)
            amount_left = Money.zero()

        if amount_left.is_negative():
            report(
                Diagnostic(
                    DiagnosticCode.NEGATIVE_REMAINDER,
                    "Exact shares exceed the amount paid",
                    {"expense_id": expense_id, "payer": payer, "amount_left": amount_left.units},
                )
            )

        if divides_absorb:
            paid_for.update(_divide_remainder(amount_left, divides))
        elif not amount_left.is_zero():
            if not amount_left.is_negative():
                report(
                    Diagnostic(
                        DiagnosticCode.UNALLOCATED_REMAINDER,
                        "Exact shares leave part of the amount paid unallocated",
                        {"expense_id": expense_id, "payer": payer, "amount_left": amount_left.units},
                    )
                )
            paid_for = _absorb_remainder(paid_for, amount_left, payer)

        rows.append(ResolvedDistribution(payer=payer, total_paid=partial, paid_for=paid_for))

    return rows


def resolve_expense(expense: Expense, report: DiagnosticSink = log_diagnostic) -> list[ResolvedDistribution]:
    return resolve_shares(expense.paid_by, expense.shares, report=report, expense_id=expense.id)


def expense_unit_shares(paid_by: Mapping[str, Money], shares: Mapping[str, ShareSpec]) -> dict[str, Money]:
    """Amount each participant carries for the whole expense, all payers combined."""
    total = Money.total(paid_by.values())
    exacts, divides = _partition(shares)

    amounts = {participant: share.amount for participant, share in exacts.items()}
    remaining = total - Money.total(amounts.values())
    if _total_weight(divides) > 0:
        amounts.update(_divide_remainder(remaining, divides))
    elif not remaining.is_zero() and paid_by:
        amounts = _absorb_remainder(amounts, remaining, min(paid_by))
    return amounts


def merge_distributions(rows: Sequence[ResolvedDistribution]) -> dict[str, Money]:
    """Sum ``paid_for`` across rows, giving what each participant consumed."""
    result: dict[str, Money] = {}
    for row in rows:
        for participant, amount in row.paid_for.items():
            result[participant] = result.get(participant, Money.zero()) + amount
    return result
