# logic.py

import ast
import json
import operator
import string
from dataclasses import dataclass
from decimal import Decimal, DecimalException, InvalidOperation
from typing import Dict, Tuple, Union

Number = Union[Decimal, int, float, str]

PARTY_IDS = string.ascii_uppercase
MIN_PARTIES = 2
MAX_PARTIES = len(PARTY_IDS)
HUNDRED = Decimal(100)

DEFAULT_SETTINGS = {"currency": "$", "parties": MIN_PARTIES}


class SplitsyError(Exception):
    """Base class for every error raised by the splitting logic."""

    pass


class CalculationError(SplitsyError):
    """Custom exception for calculation errors."""

    pass


class AllocationError(SplitsyError):
    pass


class PartyNotFoundError(AllocationError):
    def __init__(self, party_id: str) -> None:
        self.party_id = party_id
        super().__init__(f"No party with id {party_id!r}")


class PartyCapacityError(AllocationError):
    pass


def to_decimal(value: Number) -> Decimal:
    """Coerce ints, floats and numeric strings to Decimal without float noise."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise CalculationError(f"Not a number: {value!r}")
    try:
        if isinstance(value, float):
            return Decimal(repr(value))
        return Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise CalculationError(f"Not a number: {value!r}")


@dataclass(frozen=True)
class Party:
    id: str
    percentage: Decimal

    def __post_init__(self) -> None:
        object.__setattr__(self, "percentage", to_decimal(self.percentage))


@dataclass(frozen=True)
class Split:
    id: str
    amount: Decimal


@dataclass(frozen=True)
class Expense:
    description: str
    amount: Decimal
    splits: Tuple[Split, ...]


Allocation = Tuple[Party, ...]
Ledger = Tuple[Expense, ...]


_BINARY_OPS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
}
_UNARY_OPS = {ast.UAdd: operator.pos, ast.USub: operator.neg}


def _eval_node(node: ast.AST) -> Decimal:
    if isinstance(node, ast.Expression):
        return _eval_node(node.body)
    if isinstance(node, ast.Constant) and type(node.value) in (int, float):
        return to_decimal(node.value)
    if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPS:
        return _BINARY_OPS[type(node.op)](_eval_node(node.left), _eval_node(node.right))
    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
        return _UNARY_OPS[type(node.op)](_eval_node(node.operand))
    raise CalculationError(f"Unsupported expression: {ast.dump(node)}")


def safe_decimal_eval(expression: str) -> Decimal:
    """
    Evaluates a simple arithmetic expression (e.g., "15/2") as a Decimal.

    Only numbers, parentheses and + - * / are allowed, so evaluation stays
    cheap enough to run on every keystroke.
    Raises CalculationError for invalid or non-finite expressions.
    """
    expression = expression.strip()
    if not expression:
        return Decimal(0)
    try:
        value = _eval_node(ast.parse(expression, mode="eval"))
    except (
        CalculationError,
        SyntaxError,
        ValueError,
        DecimalException,
        RecursionError,
        MemoryError,
    ):
        raise CalculationError(f"Invalid expression: {expression}")
    if not value.is_finite():
        raise CalculationError(f"Invalid expression: {expression}")
    return value


def load_settings(filepath: str) -> Dict:
    """
    Loads UI settings from a JSON file, filling in defaults for missing keys.
    Raises FileNotFoundError or json.JSONDecodeError on failure, and
    SplitsyError when a recognised key holds an unusable value.
    """
    with open(filepath, "r") as f:
        raw = json.load(f)
    if not isinstance(raw, dict):
        raise SplitsyError(f"{filepath}: expected a JSON object")

    settings = dict(DEFAULT_SETTINGS)
    if "currency" in raw:
        if not isinstance(raw["currency"], str):
            raise SplitsyError(f"{filepath}: 'currency' must be a string")
        settings["currency"] = raw["currency"]
    if "parties" in raw:
        parties = raw["parties"]
        if (
            isinstance(parties, bool)
            or not isinstance(parties, int)
            or not MIN_PARTIES <= parties <= MAX_PARTIES
        ):
            raise SplitsyError(
                f"{filepath}: 'parties' must be an integer between "
                f"{MIN_PARTIES} and {MAX_PARTIES}"
            )
        settings["parties"] = parties
    return settings


# --- Allocation normalizer ---


def _uniform(ids) -> Allocation:
    ids = list(ids)
    share = HUNDRED / len(ids)
    return tuple(Party(party_id, share) for party_id in ids)


def new_allocation(count: int = MIN_PARTIES) -> Allocation:
    """Build `count` parties labelled from 'A' with equal shares."""
    if not MIN_PARTIES <= count <= MAX_PARTIES:
        raise PartyCapacityError(
            f"An allocation needs between {MIN_PARTIES} and {MAX_PARTIES} parties, got {count}"
        )
    return _uniform(PARTY_IDS[:count])


def total_percentage(allocation: Allocation) -> Decimal:
    return sum((party.percentage for party in allocation), Decimal(0))


def normalize(allocation: Allocation) -> Allocation:
    """
    Rescale percentages so they sum to 100 while keeping their proportions.

    An allocation whose percentages are all zero has no proportions to keep,
    so every party gets an even share instead.
    """
    total = total_percentage(allocation)
    if total == 0:
        return _uniform(party.id for party in allocation)
    if total == HUNDRED:
        return tuple(allocation)
    return tuple(
        Party(party.id, party.percentage * HUNDRED / total) for party in allocation
    )


# --- Party membership ---


def add_party(allocation: Allocation) -> Allocation:
    """Append the next lettered party and reset everyone to an equal share."""
    count = len(allocation)
    if count >= MAX_PARTIES:
        raise PartyCapacityError(f"Cannot add more than {MAX_PARTIES} parties")
    ids = [party.id for party in allocation] + [PARTY_IDS[count]]
    return _uniform(ids)


def remove_party(allocation: Allocation) -> Allocation:
    """Drop the most recently added party; two parties is the floor."""
    if len(allocation) <= MIN_PARTIES:
        return allocation
    return _uniform(party.id for party in allocation[:-1])


def set_percentage(allocation: Allocation, party_id: str, value: Number) -> Allocation:
    """
    Pin `party_id` at `value` (clamped to 0..100) and scale the other parties
    to share what is left, keeping their relative proportions.
    """
    index = next(
        (i for i, party in enumerate(allocation) if party.id == party_id), None
    )
    if index is None:
        raise PartyNotFoundError(party_id)

    value = to_decimal(value)
    if not value.is_finite():
        raise CalculationError(f"Percentage must be a finite number: {value}")
    value = min(max(value, Decimal(0)), HUNDRED)
    others = [party for i, party in enumerate(allocation) if i != index]
    remainder = HUNDRED - value
    others_total = total_percentage(others)

    updated = []
    for i, party in enumerate(allocation):
        if i == index:
            updated.append(Party(party.id, value))
        elif others_total == 0:
            updated.append(Party(party.id, remainder / len(others)))
        else:
            updated.append(
                Party(party.id, party.percentage * remainder / others_total)
            )
    return normalize(tuple(updated))


# --- Split calculator ---


def compute_splits(amount: Number, allocation: Allocation) -> Tuple[Split, ...]:
    """
    Performs the split calculation for one expense.

    Args:
        amount: The expense total; must be finite and greater than zero.
        allocation: Parties whose percentages already sum to 100.

    Returns:
        One Split per party, in allocation order. The last party absorbs any
        rounding remainder so the splits add up to `amount` exactly.
    """
    amount = to_decimal(amount)
    if not amount.is_finite() or amount <= 0:
        raise CalculationError(f"Amount must be greater than zero: {amount}")

    splits = []
    allocated = Decimal(0)
    for party in allocation[:-1]:
        share = amount * party.percentage / HUNDRED
        allocated += share
        splits.append(Split(party.id, share))
    if allocation:
        splits.append(Split(allocation[-1].id, amount - allocated))
    return tuple(splits)


def add_expense(
    description: str, amount: Number, allocation: Allocation, ledger: Ledger
) -> Ledger:
    """
    Record an expense against the current allocation.

    Invalid input (blank description, non-numeric or non-positive amount) is
    dropped and the same ledger is returned unchanged.
    """
    description = (description or "").strip()
    if not description:
        return ledger
    try:
        if isinstance(amount, str):
            amount = safe_decimal_eval(amount)
        splits = compute_splits(amount, allocation)
    except CalculationError:
        return ledger
    return tuple(ledger) + (Expense(description, to_decimal(amount), splits),)


def party_totals(ledger: Ledger) -> Dict[str, Decimal]:
    """Sum each party's splits across the ledger, in first-seen order."""
    totals: Dict[str, Decimal] = {}
    for expense in ledger:
        for split in expense.splits:
            totals[split.id] = totals.get(split.id, Decimal(0)) + split.amount
    return totals


def ledger_total(ledger: Ledger) -> Decimal:
    return sum((expense.amount for expense in ledger), Decimal(0))
