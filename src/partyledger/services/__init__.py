from partyledger.services.balance import compute_balances, impact_on_balance, merge_balances
from partyledger.services.chunks import ChunkManager, append_expense
from partyledger.services.identifiers import MalformedIdentifier, decode_expense_id, encode_expense_id
from partyledger.services.locator import find_expense_by_id
from partyledger.services.split import ResolvedDistribution, resolve_expense, resolve_shares

__all__ = [
    "ChunkManager",
    "MalformedIdentifier",
    "ResolvedDistribution",
    "append_expense",
    "compute_balances",
    "decode_expense_id",
    "encode_expense_id",
    "find_expense_by_id",
    "impact_on_balance",
    "merge_balances",
    "resolve_expense",
    "resolve_shares",
]
