"""Shared-expense ledger: exact splits, balances and chunked expense storage."""

from partyledger.db.models import Balance, DivideShare, ExactShare, Expense, divide, exact
from partyledger.money import Money

__all__ = ["Balance", "DivideShare", "ExactShare", "Expense", "Money", "divide", "exact"]
