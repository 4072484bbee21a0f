from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Iterable, Sequence

from partyledger.db.models import PairDiff
from partyledger.money import Money
from partyledger.services.split import ResolvedDistribution


@dataclass(frozen=True, slots=True)
class PairwiseStats:
    user_owes: Money
    owed_to_user: Money
    diffs: dict[str, PairDiff]

    @property
    def balance(self) -> Money:
        return self.owed_to_user - self.user_owes


class DebtMatrix:
    """Totals of what each payer covered for each beneficiary."""

    def __init__(self) -> None:
        self._covered: dict[str, dict[str, int]] = defaultdict(lambda: defaultdict(int))

    @classmethod
    def from_distributions(cls, distributions: Iterable[ResolvedDistribution]) -> DebtMatrix:
        matrix = cls()
        for row in distributions:
            matrix.add(row)
        return matrix

    def add(self, row: ResolvedDistribution) -> None:
        covered = self._covered[row.payer]
        for beneficiary, amount in row.paid_for.items():
            covered[beneficiary] += amount.units

    def covered(self, payer: str, beneficiary: str) -> Money:
        if payer not in self._covered:
            return Money.zero()
        return Money(self._covered[payer].get(beneficiary, 0))

    def diff(self, user: str, other: str) -> Money:
        # positive: other owes user
        return self.covered(user, other) - self.covered(other, user)

    def stats_for(self, participant_id: str, participant_ids: Sequence[str]) -> PairwiseStats:
        diffs: dict[str, PairDiff] = {}
        owes = 0
        owed = 0
        for other in participant_ids:
            if other == participant_id:
                continue
            diff = self.diff(participant_id, other)
            diffs[other] = PairDiff(diff_unsplit=diff)
            if diff.units < 0:
                owes -= diff.units
            elif diff.units > 0:
                owed += diff.units
        return PairwiseStats(user_owes=Money(owes), owed_to_user=Money(owed), diffs=diffs)


def compute_pairwise_stats(
    participant_id: str,
    participant_ids: Sequence[str],
    distributions: Iterable[ResolvedDistribution],
) -> PairwiseStats:
    return DebtMatrix.from_distributions(distributions).stats_for(participant_id, participant_ids)
