# Overview: Pure settlement arithmetic; no database access.

"""
Settlement Calculator

expected balance = starting balance + sum of every movement amount
difference       = counted (actual) balance - expected balance

A negative difference is a SHORTAGE (less cash than expected), a positive
one an OVERAGE. Summation is order independent.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable


VARIANCE_SHORTAGE = "SHORTAGE"
VARIANCE_OVERAGE = "OVERAGE"


@dataclass(frozen=True)
class MovementTotals:
    cash_in_cents: int
    cash_out_cents: int  # positive magnitude
    count: int

    @property
    def net_cents(self) -> int:
        return self.cash_in_cents - self.cash_out_cents


def expected_balance(starting_cents: int, amounts: Iterable[int]) -> int:
    return starting_cents + sum(amounts)


def difference(actual_cents: int, expected_cents: int) -> int:
    return actual_cents - expected_cents


def classify_variance(difference_cents: int) -> str | None:
    if difference_cents < 0:
        return VARIANCE_SHORTAGE
    if difference_cents > 0:
        return VARIANCE_OVERAGE
    return None


def summarize(amounts: Iterable[int]) -> MovementTotals:
    cash_in = 0
    cash_out = 0
    count = 0
    for amount in amounts:
        count += 1
        if amount >= 0:
            cash_in += amount
        else:
            cash_out += -amount
    return MovementTotals(cash_in_cents=cash_in, cash_out_cents=cash_out, count=count)
