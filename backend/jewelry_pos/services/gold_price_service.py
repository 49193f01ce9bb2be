# Overview: Pure gold price conversion used by the price calculator and invoice price seeding.

"""
Gold Price Conversion

Converts a spot gold price (currency per tickal of pure gold) into the price
of a piece of a given purity, for the shop selling (`sell`) or buying (`buy`).

Purity grades are expressed in "pe" out of 16. p15 is 15/16 pure, p8 is 8/16.

FORMULAS:
    weight_in_tickal = weight_grams / 16.6
    sell: adjusted = P * 16 / (16 + (16 - pe))
    buy:  adjusted = P * factor / 16
    total_value = weight_in_tickal * adjusted
    buy only: deduction = ((|yway| / 8 + |pe_deduction|) / 16) * adjusted
    final = total_value - deduction

The p14_2 grade displays as 14.5 and is used as 14.5 on the sell side, but the
buy side uses 14. This asymmetry is how the shop prices it and is kept as is.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from ..errors import ValidationError


GRAMS_PER_TICKAL = 16.6
PE_PER_TICKAL = 16

SIDE_SELL = "sell"
SIDE_BUY = "buy"
VALID_SIDES = {SIDE_SELL, SIDE_BUY}

YWAY_MAX = 7
PE_DEDUCTION_MAX = 15

DEFAULT_GRADE = "p15"


@dataclass(frozen=True)
class PurityGrade:
    code: str
    constant: float
    buy_factor: float


PURITY_GRADES: dict[str, PurityGrade] = {
    "p15": PurityGrade("p15", 15, 15),
    "p14_2": PurityGrade("p14_2", 14.5, 14),
    "p13": PurityGrade("p13", 13, 13),
    "p12": PurityGrade("p12", 12, 12),
    "p11": PurityGrade("p11", 11, 11),
    "p10": PurityGrade("p10", 10, 10),
    "p9": PurityGrade("p9", 9, 9),
    "p8": PurityGrade("p8", 8, 8),
}


@dataclass(frozen=True)
class GoldQuote:
    grade: str
    side: str
    weight_grams: float
    weight_in_tickal: float
    spot_price: float
    adjusted_price: float
    total_value: float
    deduction: float
    final_price: float

    def to_dict(self, *, places: int = 2) -> dict:
        return {
            "grade": self.grade,
            "side": self.side,
            "weight_grams": self.weight_grams,
            "weight_in_tickal": round(self.weight_in_tickal, 4),
            "spot_price": self.spot_price,
            "adjusted_price": round(self.adjusted_price, places),
            "total_value": round(self.total_value, places),
            "deduction": round(self.deduction, places),
            "final_price": round(self.final_price, places),
        }


def get_grade(code: str) -> PurityGrade:
    grade = PURITY_GRADES.get(code)
    if grade is None:
        raise ValidationError(
            f"Unknown purity grade '{code}'. Must be one of: {', '.join(PURITY_GRADES)}"
        )
    return grade


def _require_positive(value, field: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{field} must be a number")
    if not math.isfinite(value):
        raise ValidationError(f"{field} must be a finite number")
    if value <= 0:
        raise ValidationError(f"{field} must be > 0")
    return float(value)


def _require_bounded_int(value, field: str, upper: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer")
    if abs(value) > upper:
        raise ValidationError(f"{field} must be between 0 and {upper}")
    return abs(value)


def adjusted_unit_price(spot_price: float, grade: PurityGrade, side: str) -> float:
    """Price per tickal of a piece of this grade."""
    if side == SIDE_SELL:
        divisor = PE_PER_TICKAL + (PE_PER_TICKAL - grade.constant)
        return spot_price * PE_PER_TICKAL / divisor
    return spot_price * grade.buy_factor / PE_PER_TICKAL


def making_charge_deduction(adjusted_price: float, yway: int, pe: int) -> float:
    """Buy-side deduction: ((yway / 8 + pe) / 16) * adjusted price."""
    return ((abs(yway) / 8 + abs(pe)) / PE_PER_TICKAL) * adjusted_price


def calculate_gold_price(
    *,
    spot_price: float,
    weight_grams: float,
    grade: str = DEFAULT_GRADE,
    side: str = SIDE_SELL,
    yway: int = 0,
    pe: int = 0,
) -> GoldQuote:
    """
    Quote a piece of gold jewelry.

    Args:
        spot_price: Current gold price per tickal (positive, finite)
        weight_grams: Piece weight in grams (positive, finite)
        grade: Purity grade code (see PURITY_GRADES)
        side: "sell" (shop sells) or "buy" (shop buys back)
        yway: Buy-side deduction in yway, 0..7 (ignored for sell)
        pe: Buy-side deduction in pe, 0..15 (ignored for sell)

    Raises:
        ValidationError: On non-numeric, non-finite or non-positive inputs,
            unknown grade/side, or out-of-range deductions.
    """
    spot = _require_positive(spot_price, "spot_price")
    weight = _require_positive(weight_grams, "weight_grams")
    purity = get_grade(grade)
    if side not in VALID_SIDES:
        raise ValidationError(f"side must be one of: {', '.join(sorted(VALID_SIDES))}")

    weight_in_tickal = weight / GRAMS_PER_TICKAL
    adjusted = adjusted_unit_price(spot, purity, side)
    total_value = weight_in_tickal * adjusted

    deduction = 0.0
    if side == SIDE_BUY:
        yway_value = _require_bounded_int(yway, "yway", YWAY_MAX)
        pe_value = _require_bounded_int(pe, "pe", PE_DEDUCTION_MAX)
        deduction = making_charge_deduction(adjusted, yway_value, pe_value)

    return GoldQuote(
        grade=purity.code,
        side=side,
        weight_grams=weight,
        weight_in_tickal=weight_in_tickal,
        spot_price=spot,
        adjusted_price=adjusted,
        total_value=total_value,
        deduction=deduction,
        final_price=total_value - deduction,
    )
