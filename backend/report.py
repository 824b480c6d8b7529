# report.py
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from models import CalculationResult
from constants import FACTOR_LABELS

@dataclass
class DerivationStep:
    key: str                      # 'bsa', 'base', 'fever', 'rr', 'factors', 'final'
    title: str
    number: Optional[int] = None  # None = unnumbered panel
    lines: List[str] = field(default_factory=list)

def _fixed(value: float, places: int) -> str:
    # Exact binary value, ties rounded up (2.25 -> "2.3"), like a JS toFixed
    return str(Decimal(value).quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP))

def _ml(value: float) -> str:
    return _fixed(value, 1)

def _num(value) -> str:
    # Echo inputs the way they were typed (3 not 3.0)
    return f"{value:g}"

def build_derivation_trail(result: CalculationResult) -> List[DerivationStep]:
    """
    Step-by-step 'How it's calculated' panel.
    Steps 1-2 always show. Fever and RR only show when they contributed,
    and take the next free number (Fever=3, RR=3 or 4).
    """
    steps = [
        DerivationStep(
            key="bsa", number=1, title="Calculate Body Surface Area (BSA)",
            lines=[
                "Formula: BSA = √((height × weight) / 3600)",
                f"Calculation: BSA = √(({_num(result.height_cm)} × {_num(result.weight_kg)}) / 3600)",
                f"Result: BSA = {_fixed(result.bsa_m2, 3)} m²",
            ]
        ),
        DerivationStep(
            key="base", number=2, title="Calculate Base IWL",
            lines=[
                "Formula: Base IWL = 400–500 mL/m²/day × BSA",
                f"Calculation: Base IWL = 400–500 × {_fixed(result.bsa_m2, 3)}",
                f"Result: Base IWL = {_ml(result.base_low_ml_day)} – {_ml(result.base_high_ml_day)} mL/day",
            ]
        ),
    ]
    next_number = 3

    if result.has_fever_adjustment:
        steps.append(DerivationStep(
            key="fever", number=next_number, title="Apply Fever Adjustment",
            lines=[
                "Formula: Fever Multiplier = 1 + (Temperature - 37) × 0.13",
                f"Calculation: Fever Multiplier = 1 + ({_num(result.temperature_c)} - 37) × 0.13",
                f"Result: Fever Multiplier = {_fixed(result.fever_multiplier, 3)} (+{_fixed(result.fever_percent, 1)}%)",
            ]
        ))
        next_number += 1

    if result.has_rr_adjustment:
        steps.append(DerivationStep(
            key="rr", number=next_number, title="Apply Respiratory Rate Adjustment",
            lines=[
                "Formula: RR Adjustment = (RR - Normal Max RR) × 2 × Weight",
                f"Calculation: RR Adjustment = ({_num(result.respiratory_rate)} - "
                f"{result.rr_range.max_bpm}) × 2 × {_num(result.weight_kg)}",
                f"Result: RR Adjustment = +{_ml(result.rr_adjustment_ml_day)} mL/day",
            ]
        ))
        next_number += 1

    if result.has_factor_adjustments:
        factor_lines = []
        for adj in result.factor_adjustments:
            factor_lines.append(
                f"{FACTOR_LABELS[adj.factor]}: +{adj.percentage * 100:g}% of Base IWL "
                f"= +{_ml(adj.low_ml_day)} – {_ml(adj.high_ml_day)} mL/day"
            )
        steps.append(DerivationStep(key="factors", title="Additional Factor Adjustments",
                                    lines=factor_lines))

    multiplier = _fixed(result.fever_multiplier, 3)
    rr_term = _ml(result.rr_adjustment_ml_day)
    steps.append(DerivationStep(
        key="final", title="Final Calculation",
        lines=[
            "Formula: Total IWL = (Base IWL × Fever Multiplier) + RR Adjustment + Additional Adjustments",
            f"Low Range: ({_ml(result.base_low_ml_day)} × {multiplier}) + {rr_term} + "
            f"{_ml(result.additional_low_ml_day)} = {_ml(result.total_low_ml_day)} mL/day",
            f"High Range: ({_ml(result.base_high_ml_day)} × {multiplier}) + {rr_term} + "
            f"{_ml(result.additional_high_ml_day)} = {_ml(result.total_high_ml_day)} mL/day",
            f"Hourly IWL: {_ml(result.hourly_low_ml_hr)} – {_ml(result.hourly_high_ml_hr)} mL/hour",
            "(Total Daily IWL ÷ 24 hours)",
        ]
    ))
    return steps

def format_summary(result: CalculationResult) -> str:
    """One-line answer for the results card."""
    return (
        f"Daily IWL: {_ml(result.total_low_ml_day)} – {_ml(result.total_high_ml_day)} mL/day | "
        f"Hourly IWL: {_ml(result.hourly_low_ml_hr)} – {_ml(result.hourly_high_ml_hr)} mL/hour"
    )
