from __future__ import annotations

from dataclasses import replace
from typing import Iterable, Mapping, Sequence

from partyledger.db.models import Balance, Expense, PairDiff
from partyledger.diagnostics import Diagnostic, DiagnosticCode, DiagnosticSink, log_diagnostic
from partyledger.money import Money
from partyledger.services.split import ResolvedDistribution, resolve_expense
from partyledger.services.stats import DebtMatrix

BalancesByParticipant = dict[str, Balance]


def resolve_all(expenses: Iterable[Expense], report: DiagnosticSink = log_diagnostic) -> list[ResolvedDistribution]:
    distributions: list[ResolvedDistribution] = []
    for expense in expenses:
        distributions.extend(resolve_expense(expense, report=report))
    return distributions


def with_visual_ratios(balances: Mapping[str, Balance]) -> BalancesByParticipant:
    """Scale every balance against the one with the largest magnitude.

    On a tie in magnitude the positive balance is the reference. When every
    balance is zero there is no reference and all ratios are 0.
    """
    if not balances:
        return {}

    reference = max(balances.values(), key=lambda b: (abs(b.balance.units), b.balance.units)).balance
    return {
        pid: replace(b, visual_ratio=(b.balance.units / reference.units) if reference.units else 0.0)
        for pid, b in balances.items()
    }


def _report_unknown(
    distributions: Sequence[ResolvedDistribution], ids: Sequence[str], report: DiagnosticSink
) -> None:
    known = set(ids)
    unknown: set[str] = set()
    for row in distributions:
        unknown.update(pid for pid in (row.payer, *row.paid_for) if pid not in known)
    for pid in sorted(unknown):
        report(
            Diagnostic(
                DiagnosticCode.UNKNOWN_PARTICIPANT,
                "Expense references a participant outside the balance set",
                {"participant_id": pid},
            )
        )


def compute_balances(
    expenses: Iterable[Expense],
    participant_ids: Iterable[str],
    report: DiagnosticSink = log_diagnostic,
) -> BalancesByParticipant:
    ids = sorted(set(participant_ids))
    distributions = resolve_all(expenses, report=report)
    _report_unknown(distributions, ids, report)
    matrix = DebtMatrix.from_distributions(distributions)

    balances: BalancesByParticipant = {}
    for participant_id in ids:
        stats = matrix.stats_for(participant_id, ids)
        balances[participant_id] = Balance(
            participant_id=participant_id,
            user_owes=stats.user_owes,
            owed_to_user=stats.owed_to_user,
            diffs=stats.diffs,
            balance=stats.balance,
        )
    return with_visual_ratios(balances)


def merge_balances(*batches: Mapping[str, Balance]) -> BalancesByParticipant:
    """Combine balances computed over separate sets of expenses.

    Pairwise diffs and net balances add up. ``user_owes`` and ``owed_to_user``
    are derived again from the merged diffs, so a debt that one batch creates
    and another cancels does not show up on both sides. The result is the same
    as computing balances once over all the expenses with the union of the
    participant ids.
    """
    diffs: dict[str, dict[str, int]] = {}
    nets: dict[str, int] = {}
    for batch in batches:
        for pid, balance in batch.items():
            nets[pid] = nets.get(pid, 0) + balance.balance.units
            merged = diffs.setdefault(pid, {})
            for other, diff in balance.diffs.items():
                merged[other] = merged.get(other, 0) + diff.diff_unsplit.units

    ids = sorted(nets)
    result: BalancesByParticipant = {}
    for pid in ids:
        pair = diffs[pid]
        for other in ids:
            if other != pid:
                pair.setdefault(other, 0)
        owes = sum(-value for value in pair.values() if value < 0)
        owed = sum(value for value in pair.values() if value > 0)
        result[pid] = Balance(
            participant_id=pid,
            user_owes=Money(owes),
            owed_to_user=Money(owed),
            diffs={other: PairDiff(Money(value)) for other, value in sorted(pair.items())},
            balance=Money(nets[pid]),
        )
    return with_visual_ratios(result)


def impact_on_balance(expense: Expense, participant_id: str, report: DiagnosticSink = log_diagnostic) -> Money:
    """Net change of one participant's balance caused by a single expense."""
    involved: Sequence[str] = sorted({*expense.paid_by, *expense.shares, participant_id})
    matrix = DebtMatrix.from_distributions(resolve_expense(expense, report=report))
    return matrix.stats_for(participant_id, involved).balance
