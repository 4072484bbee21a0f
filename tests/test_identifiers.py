from datetime import datetime, timezone

import pytest

from partyledger.services.identifiers import (
    SEPARATOR,
    ExpenseIdGenerator,
    MalformedIdentifier,
    decode_expense_id,
    encode_expense_id,
    expense_timestamp,
)


class FrozenClock:
    def __init__(self, ms: int) -> None:
        self.ms = ms

    def __call__(self) -> int:
        return self.ms * 1_000_000


def test_encode_decode():
    expense_id = encode_expense_id("chunk42")
    decoded = decode_expense_id(expense_id)
    assert decoded.chunk_id == "chunk42"
    assert len(decoded.local_id) == 26
    assert expense_id == f"{decoded.local_id}{SEPARATOR}chunk42"


def test_decode_without_separator_fails_loudly():
    with pytest.raises(MalformedIdentifier):
        decode_expense_id("01HXYZNOCHUNK")
    with pytest.raises(MalformedIdentifier):
        decode_expense_id(":chunk")
    with pytest.raises(ValueError):
        decode_expense_id("local:")


def test_chunk_id_may_not_contain_separator():
    with pytest.raises(ValueError):
        encode_expense_id("bad:chunk")


def test_ids_sort_by_creation_time():
    generator = ExpenseIdGenerator()
    older = encode_expense_id("c", datetime(2023, 5, 1, tzinfo=timezone.utc), generator=generator)
    newer = encode_expense_id("c", datetime(2024, 5, 1, tzinfo=timezone.utc), generator=generator)
    assert decode_expense_id(older).local_id < decode_expense_id(newer).local_id


def test_same_millisecond_ids_are_monotonic():
    generator = ExpenseIdGenerator(clock=FrozenClock(1_700_000_000_000))
    ids = [generator.new_local_id() for _ in range(100)]
    assert ids == sorted(ids)
    assert len(set(ids)) == 100
    assert {i[:10] for i in ids} == {ids[0][:10]}


def test_clock_going_backwards_stays_monotonic():
    clock = FrozenClock(1_700_000_000_000)
    generator = ExpenseIdGenerator(clock=clock)
    first = generator.new_local_id()
    clock.ms -= 5
    second = generator.new_local_id()
    assert second > first


def test_timestamp_round_trip():
    moment = datetime(2024, 2, 29, 12, 30, 15, 123000, tzinfo=timezone.utc)
    expense_id = encode_expense_id("c", moment, generator=ExpenseIdGenerator())
    assert expense_timestamp(expense_id) == moment


def test_millisecond_timestamp_accepted():
    local_id = ExpenseIdGenerator().new_local_id(0)
    assert local_id.startswith("0000000000")
