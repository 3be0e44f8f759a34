import json
import random
from decimal import Decimal

import pytest

import logic
from logic import Party, Split

TOLERANCE = Decimal("1e-9")


def assert_sums_to_hundred(allocation):
    assert abs(logic.total_percentage(allocation) - 100) < TOLERANCE


def even(*ids):
    return tuple(Party(party_id, Decimal(100) / len(ids)) for party_id in ids)


def test_new_allocation_is_two_even_parties():
    allocation = logic.new_allocation()
    assert allocation == (Party("A", 50), Party("B", 50))


@pytest.mark.parametrize("count", [0, 1, 27])
def test_new_allocation_rejects_bad_counts(count):
    with pytest.raises(logic.PartyCapacityError):
        logic.new_allocation(count)


def test_party_coerces_percentage_to_decimal():
    party = Party("A", 12.5)
    assert isinstance(party.percentage, Decimal)
    assert party.percentage == Decimal("12.5")


# --- Normalizer ---


def test_normalize_scales_proportionally():
    allocation = logic.normalize((Party("A", 30), Party("B", 10)))
    assert [p.id for p in allocation] == ["A", "B"]
    assert allocation[0].percentage == 75
    assert allocation[1].percentage == 25


def test_normalize_keeps_allocation_already_at_hundred():
    allocation = (Party("A", 80), Party("B", 20))
    assert logic.normalize(allocation) == allocation


def test_normalize_all_zero_distributes_evenly():
    allocation = logic.normalize((Party("A", 0), Party("B", 0), Party("C", 0)))
    assert len({p.percentage for p in allocation}) == 1
    assert_sums_to_hundred(allocation)


# --- Party membership ---


def test_add_party_gives_three_equal_shares():
    allocation = logic.add_party(logic.new_allocation())
    assert [p.id for p in allocation] == ["A", "B", "C"]
    assert len({p.percentage for p in allocation}) == 1
    assert abs(allocation[0].percentage - Decimal("33.3333333333")) < Decimal("1e-9")
    assert_sums_to_hundred(allocation)


def test_add_party_resets_uneven_shares():
    allocation = logic.add_party((Party("A", 90), Party("B", 10)))
    assert allocation == even("A", "B", "C")


def test_add_party_past_z_raises_capacity_error():
    allocation = logic.new_allocation(logic.MAX_PARTIES)
    assert allocation[-1].id == "Z"
    with pytest.raises(logic.PartyCapacityError):
        logic.add_party(allocation)


def test_remove_party_drops_last_and_evens_out():
    allocation = logic.remove_party((Party("A", 20), Party("B", 30), Party("C", 50)))
    assert allocation == (Party("A", 50), Party("B", 50))


def test_remove_party_at_minimum_is_a_no_op():
    allocation = logic.new_allocation()
    assert logic.remove_party(allocation) is allocation
    assert len(logic.remove_party(allocation)) == 2


def test_add_then_remove_restores_uniform_distribution():
    allocation = logic.set_percentage(logic.new_allocation(3), "A", 60)
    restored = logic.remove_party(logic.add_party(allocation))
    assert restored == even("A", "B", "C")


def test_set_percentage_two_parties():
    allocation = logic.set_percentage(logic.new_allocation(), "A", 80)
    assert allocation == (Party("A", 80), Party("B", 20))


def test_set_percentage_rescales_others_proportionally():
    allocation = (Party("A", 50), Party("B", 30), Party("C", 20))
    allocation = logic.set_percentage(allocation, "A", 0)
    assert allocation == (Party("A", 0), Party("B", 60), Party("C", 40))


def test_set_percentage_others_at_zero_share_remainder_evenly():
    allocation = (Party("A", 100), Party("B", 0), Party("C", 0))
    allocation = logic.set_percentage(allocation, "A", 40)
    assert allocation == (Party("A", 40), Party("B", 30), Party("C", 30))


def test_set_percentage_clamps_to_range():
    allocation = logic.set_percentage(logic.new_allocation(), "B", 150)
    assert allocation == (Party("A", 0), Party("B", 100))
    allocation = logic.set_percentage(allocation, "B", -5)
    assert allocation == (Party("A", 100), Party("B", 0))


def test_set_percentage_unknown_party_raises():
    allocation = logic.new_allocation()
    with pytest.raises(logic.PartyNotFoundError) as excinfo:
        logic.set_percentage(allocation, "Q", 10)
    assert excinfo.value.party_id == "Q"
    assert allocation == (Party("A", 50), Party("B", 50))


def test_random_operation_sequences_keep_sum_at_hundred():
    rng = random.Random(1234)
    allocation = logic.new_allocation()
    for _ in range(500):
        operation = rng.choice(["add", "remove", "set", "set"])
        if operation == "add" and len(allocation) < logic.MAX_PARTIES:
            allocation = logic.add_party(allocation)
        elif operation == "remove":
            allocation = logic.remove_party(allocation)
        else:
            party = rng.choice(allocation)
            value = Decimal(rng.randint(0, 1000)) / 10
            allocation = logic.set_percentage(allocation, party.id, value)
        assert logic.MIN_PARTIES <= len(allocation) <= logic.MAX_PARTIES
        assert all(-TOLERANCE <= p.percentage <= 100 + TOLERANCE for p in allocation)
        assert_sums_to_hundred(allocation)


# --- Split calculator ---


def test_compute_splits_even():
    splits = logic.compute_splits(100, logic.new_allocation())
    assert splits == (Split("A", 50), Split("B", 50))


def test_compute_splits_sum_matches_amount():
    allocation = logic.set_percentage(logic.new_allocation(7), "C", Decimal("12.3"))
    splits = logic.compute_splits(Decimal("99.99"), allocation)
    assert len(splits) == len(allocation)
    assert [s.id for s in splits] == [p.id for p in allocation]
    assert sum(s.amount for s in splits) == Decimal("99.99")


@pytest.mark.parametrize("amount", [0, -5, float("nan"), float("inf"), "abc"])
def test_compute_splits_rejects_bad_amounts(amount):
    with pytest.raises(logic.CalculationError):
        logic.compute_splits(amount, logic.new_allocation())


def test_add_expense_dinner():
    ledger = logic.add_expense("Dinner", 100, logic.new_allocation(), ())
    assert len(ledger) == 1
    expense = ledger[0]
    assert expense.description == "Dinner"
    assert expense.amount == 100
    assert [(s.id, s.amount) for s in expense.splits] == [("A", 50.0), ("B", 50.0)]


def test_add_expense_accepts_expressions():
    ledger = logic.add_expense("Taxi", "90/2", logic.new_allocation(), ())
    assert ledger[0].amount == Decimal("45")


@pytest.mark.parametrize(
    "description, amount",
    [("Dinner", 0), ("Dinner", -5), ("", 100), ("   ", 100), ("Dinner", "lots"), ("Dinner", "")],
)
def test_add_expense_invalid_input_leaves_ledger_unchanged(description, amount):
    ledger = logic.add_expense("Lunch", 20, logic.new_allocation(), ())
    assert logic.add_expense(description, amount, logic.new_allocation(), ledger) is ledger
    assert len(ledger) == 1


def test_recorded_splits_are_not_affected_by_later_changes():
    allocation = logic.new_allocation()
    ledger = logic.add_expense("Dinner", 100, allocation, ())
    allocation = logic.add_party(allocation)
    ledger = logic.add_expense("Museum", 30, allocation, ledger)
    assert [s.id for s in ledger[0].splits] == ["A", "B"]
    assert [round(s.amount, 2) for s in ledger[1].splits] == [10, 10, 10]


def test_party_totals_and_ledger_total():
    allocation = logic.new_allocation()
    ledger = logic.add_expense("Dinner", 100, allocation, ())
    ledger = logic.add_expense("Taxi", 30, logic.add_party(allocation), ledger)
    totals = logic.party_totals(ledger)
    assert list(totals) == ["A", "B", "C"]
    assert {k: round(v, 2) for k, v in totals.items()} == {"A": 60, "B": 60, "C": 10}
    assert logic.ledger_total(ledger) == 130


# --- Expressions and settings ---


def test_safe_decimal_eval():
    assert logic.safe_decimal_eval("15/2") == Decimal("7.5")
    assert logic.safe_decimal_eval("") == 0
    with pytest.raises(logic.CalculationError):
        logic.safe_decimal_eval("__import__('os')")
    with pytest.raises(logic.CalculationError):
        logic.safe_decimal_eval("1e400")


def test_load_settings_fills_defaults(tmp_path):
    path = tmp_path / "splitsy.json"
    path.write_text(json.dumps({"currency": "€"}))
    assert logic.load_settings(str(path)) == {"currency": "€", "parties": 2}


def test_load_settings_reads_party_count(tmp_path):
    path = tmp_path / "splitsy.json"
    path.write_text(json.dumps({"parties": 4, "theme": "ignored"}))
    assert logic.load_settings(str(path))["parties"] == 4


@pytest.mark.parametrize("raw", [{"parties": 1}, {"parties": 27}, {"parties": "3"}, {"currency": 5}, [1, 2]])
def test_load_settings_rejects_bad_values(tmp_path, raw):
    path = tmp_path / "splitsy.json"
    path.write_text(json.dumps(raw))
    with pytest.raises(logic.SplitsyError):
        logic.load_settings(str(path))


def test_load_settings_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        logic.load_settings(str(tmp_path / "missing.json"))


@pytest.mark.parametrize("value", [float("nan"), "nan", "inf"])
def test_set_percentage_rejects_non_finite_values(value):
    allocation = logic.new_allocation()
    with pytest.raises(logic.CalculationError):
        logic.set_percentage(allocation, "A", value)


def test_safe_decimal_eval_arithmetic():
    assert logic.safe_decimal_eval("(1 + 2) * 3") == 9
    assert logic.safe_decimal_eval("-5 + 0.5") == Decimal("-4.5")
    assert logic.safe_decimal_eval("0.1 + 0.2") == Decimal("0.3")


@pytest.mark.parametrize("expression", ["9**9**9", "2**10", "10 // 3", "1/0", "x", "'5'", "True"])
def test_safe_decimal_eval_rejects_unsupported_expressions(expression):
    with pytest.raises(logic.CalculationError):
        logic.safe_decimal_eval(expression)
