from __future__ import annotations

from dataclasses import dataclass
from typing import List, Mapping

from partyledger.db.models import Balance
from partyledger.money import Money


@dataclass(frozen=True, slots=True)
class Transfer:
    from_participant: str
    to_participant: str
    amount: Money


def settle(balances: Mapping[str, Balance]) -> List[Transfer]:
    creditors: list[tuple[str, int]] = []
    debtors: list[tuple[str, int]] = []

    for participant_id, balance in balances.items():
        if balance.balance.units > 0:
            creditors.append((participant_id, balance.balance.units))
        elif balance.balance.units < 0:
            debtors.append((participant_id, -balance.balance.units))

    creditors.sort(key=lambda x: (-x[1], x[0]))
    debtors.sort(key=lambda x: (-x[1], x[0]))

    transfers: list[Transfer] = []
    i, j = 0, 0

    while i < len(creditors) and j < len(debtors):
        cred_id, cred_amount = creditors[i]
        debt_id, debt_amount = debtors[j]

        transfer_amount = min(cred_amount, debt_amount)
        transfers.append(Transfer(from_participant=debt_id, to_participant=cred_id, amount=Money(transfer_amount)))

        cred_amount -= transfer_amount
        debt_amount -= transfer_amount

        if cred_amount == 0:
            i += 1
        else:
            creditors[i] = (cred_id, cred_amount)

        if debt_amount == 0:
            j += 1
        else:
            debtors[j] = (debt_id, debt_amount)

    return transfers
