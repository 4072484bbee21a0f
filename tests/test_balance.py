import random
from datetime import datetime, timezone

import pytest

from partyledger.db.models import Expense, divide, exact
from partyledger.diagnostics import DiagnosticCode, DiagnosticCollector
from partyledger.money import Money
from partyledger.services.balance import compute_balances, impact_on_balance, merge_balances
from partyledger.services.identifiers import ExpenseIdGenerator, encode_expense_id
from partyledger.services.stats import compute_pairwise_stats
from partyledger.services.split import resolve_shares

_ids = ExpenseIdGenerator()


def make_expense(paid_by, shares, chunk_id="test") -> Expense:
    return Expense(
        id=encode_expense_id(chunk_id, generator=_ids),
        name="",
        paid_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        paid_by={k: Money(v) for k, v in paid_by.items()},
        shares=shares,
    )


def test_simple_expense_balances():
    expense = make_expense({"user1": 100}, {"user1": divide(1), "user2": divide(1)})
    balances = compute_balances([expense], ["user1", "user2"])

    assert balances["user1"].balance == Money(50)
    assert balances["user1"].owed_to_user == Money(50)
    assert balances["user1"].user_owes == Money(0)
    assert balances["user1"].diffs["user2"].diff_unsplit == Money(50)
    assert balances["user2"].balance == Money(-50)
    assert balances["user2"].user_owes == Money(50)
    assert balances["user1"].visual_ratio == 1.0
    assert balances["user2"].visual_ratio == -1.0


def test_balances_sum_to_zero():
    expenses = [
        make_expense({"a": 3000}, {"a": divide(1), "b": divide(1), "c": divide(1)}),
        make_expense({"b": 1500}, {"a": exact(700), "c": exact(800)}),
        make_expense({"c": 999, "a": 1}, {"a": divide(2), "b": divide(1)}),
    ]
    balances = compute_balances(expenses, ["a", "b", "c"])
    assert sum(b.balance.units for b in balances.values()) == 0


def test_all_zero_balances_have_zero_ratio():
    expense = make_expense({"a": 100}, {"a": exact(100)})
    balances = compute_balances([expense], ["a", "b"])
    assert all(b.balance == Money(0) for b in balances.values())
    assert all(b.visual_ratio == 0 for b in balances.values())


def test_empty_expense_list():
    balances = compute_balances([], ["a", "b"])
    assert set(balances) == {"a", "b"}
    assert balances["a"].diffs["b"].diff_unsplit == Money(0)


def test_expense_without_payer_does_not_break_reporting():
    broken = make_expense({}, {"a": divide(1)})
    ok = make_expense({"a": 10}, {"b": exact(10)})
    balances = compute_balances([broken, ok], ["a", "b"])
    assert balances["a"].balance == Money(10)


def test_permutation_does_not_change_result():
    expenses = [
        make_expense({"a": 1001}, {"a": divide(1), "b": divide(1), "c": divide(1)}),
        make_expense({"b": 333, "c": 667}, {"a": exact(100), "b": divide(3), "c": divide(1)}),
        make_expense({"c": 50}, {"a": exact(50)}),
    ]
    reference = compute_balances(expenses, ["a", "b", "c"])
    rng = random.Random(7)
    for _ in range(10):
        shuffled = expenses[:]
        rng.shuffle(shuffled)
        assert compute_balances(shuffled, ["c", "b", "a"]) == reference


def _random_expenses(rng: random.Random, participants: list[str], count: int) -> list[Expense]:
    expenses = []
    for _ in range(count):
        payers = rng.sample(participants, rng.randint(1, min(2, len(participants))))
        paid_by = {p: rng.randint(1, 10_000) for p in payers}
        sharers = rng.sample(participants, rng.randint(1, len(participants)))
        shares = {p: divide(rng.randint(1, 3)) for p in sharers}
        expenses.append(make_expense(paid_by, shares))
    return expenses


@pytest.mark.parametrize("seed", [1, 2, 3])
def test_merge_equals_single_pass_overlapping(seed):
    rng = random.Random(seed)
    batch_a = _random_expenses(rng, ["a", "b", "c"], 20)
    batch_b = _random_expenses(rng, ["b", "c", "d"], 20)

    merged = merge_balances(
        compute_balances(batch_a, ["a", "b", "c"]),
        compute_balances(batch_b, ["b", "c", "d"]),
    )
    assert merged == compute_balances(batch_a + batch_b, ["a", "b", "c", "d"])


def test_merge_equals_single_pass_disjoint():
    rng = random.Random(11)
    batch_a = _random_expenses(rng, ["a", "b"], 10)
    batch_b = _random_expenses(rng, ["c", "d"], 10)

    merged = merge_balances(compute_balances(batch_a, ["a", "b"]), compute_balances(batch_b, ["c", "d"]))
    assert merged == compute_balances(batch_a + batch_b, ["a", "b", "c", "d"])


def test_merge_cancelling_debts():
    first = compute_balances([make_expense({"a": 100}, {"b": exact(100)})], ["a", "b"])
    second = compute_balances([make_expense({"b": 100}, {"a": exact(100)})], ["a", "b"])
    merged = merge_balances(first, second)

    assert merged["a"].user_owes == Money(0)
    assert merged["a"].owed_to_user == Money(0)
    assert merged["a"].balance == Money(0)
    assert merged["a"].visual_ratio == 0


def test_merge_does_not_mutate_inputs():
    first = compute_balances([make_expense({"a": 100}, {"b": exact(100)})], ["a", "b"])
    snapshot = dict(first)
    merge_balances(first, first)
    assert first == snapshot
    assert first["a"].balance == Money(100)


def test_visual_ratio_uses_largest_magnitude():
    expenses = [
        make_expense({"a": 300}, {"b": exact(100), "c": exact(200)}),
    ]
    balances = compute_balances(expenses, ["a", "b", "c"])
    assert balances["a"].visual_ratio == 1.0
    assert balances["c"].visual_ratio == pytest.approx(-2 / 3)
    assert balances["b"].visual_ratio == pytest.approx(-1 / 3)


def test_pairwise_stats_contract():
    rows = resolve_shares({"a": Money(90)}, {"a": divide(1), "b": divide(1), "c": divide(1)})
    stats = compute_pairwise_stats("b", ["a", "b", "c"], rows)
    assert stats.user_owes == Money(30)
    assert stats.owed_to_user == Money(0)
    assert stats.diffs["a"].diff_unsplit == Money(-30)
    assert stats.diffs["c"].diff_unsplit == Money(0)


def test_impact_for_reimbursement():
    expense = make_expense({"user1": 28942}, {"user2": exact(28942)})
    assert impact_on_balance(expense, "user2") == Money(-28942)
    assert impact_on_balance(expense, "user1") == Money(28942)


def test_impact_when_not_involved():
    expense = make_expense({"user1": 10000}, {"user2": exact(10000)})
    assert impact_on_balance(expense, "user3") == Money(0)


def test_impact_when_user_pays_half():
    expense = make_expense({"user1": 10000}, {"user1": exact(5000), "user2": exact(5000)})
    assert impact_on_balance(expense, "user1") == Money(5000)


def test_unknown_participant_is_reported_not_counted():
    sink = DiagnosticCollector()
    expense = make_expense({"a": 100}, {"a": divide(1), "ghost": divide(1)})
    balances = compute_balances([expense], ["a", "b"], report=sink)

    assert sink.codes() == [DiagnosticCode.UNKNOWN_PARTICIPANT]
    assert sink.items[0].context == {"participant_id": "ghost"}
    assert balances["a"].balance == Money(0)
