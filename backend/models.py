"""
PediaIWL: Data Dictionary & Variable Definitions
================================================
This module defines the inputs (Bedside), the result (Engine) and the
response envelope (API/UI) of the Insensible Water Loss calculator.

NO LOGIC is implemented here beyond input validation. The formulas live
in iwl_engine.py.
"""

import hashlib
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import FrozenSet, List, Optional, Tuple

from constants import VERSION, ClinicalFactor, NormalRRRange, IWL_CONSTANTS

class IWLValidationError(ValueError):
    """Raised when a required input makes the calculation impossible."""
    pass

class InvalidWeightError(IWLValidationError):
    """Weight missing, non-numeric or <= 0."""
    def __init__(self, message: str = "Please enter a valid weight (kg)"):
        super().__init__(message)

class InvalidHeightError(IWLValidationError):
    """Height missing, non-numeric or <= 0."""
    def __init__(self, message: str = "Please enter a valid height (cm)"):
        super().__init__(message)

def is_number(value) -> bool:
    """True for finite int/float values. Booleans are not numbers here."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        # int too large for a float
        return False

def is_checked(value) -> bool:
    """Checkbox state: True, or the text "true". Anything else is unchecked."""
    if isinstance(value, bool):
        return value
    return isinstance(value, str) and value.strip().lower() == "true"

# --- 1. WARNINGS & AUDIT ---

@dataclass
class CalculationWarnings:
    """Tracks non-blocking issues that the clinician must know."""
    negative_age: bool = False
    age_beyond_pediatric_range: bool = False
    temperature_implausible: bool = False
    respiratory_rate_implausible: bool = False
    bmi_implausible: Optional[float] = None  # The BMI that triggered the flag
    ignored_inputs: List[str] = field(default_factory=list)

    def has_any(self) -> bool:
        return bool(
            self.negative_age or self.age_beyond_pediatric_range
            or self.temperature_implausible or self.respiratory_rate_implausible
            or self.bmi_implausible is not None or self.ignored_inputs
        )

@dataclass
class AuditLog:
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())
    action: str = "iwl_calculation"
    inputs_hash: str = ""   # sha256 of PatientInput.fingerprint()
    model_version: str = VERSION

# --- 2. INPUT LAYER (What the Clinician Enters) ---

@dataclass(frozen=True)
class PatientInput:
    """
    The parsed bedside data. Only weight and height are mandatory;
    every other field switches an adjustment on when present.
    """
    weight_kg: float         # CRITICAL: Scales BSA and RR correction
    height_cm: float         # CRITICAL: Scales BSA

    temperature_c: Optional[float] = None
    respiratory_rate: Optional[float] = None

    # Age is entered as "2 years 8 months". Absent parts count as 0.
    age_years: Optional[int] = None
    age_months: Optional[int] = None

    factors: FrozenSet[ClinicalFactor] = frozenset()

    def __post_init__(self):
        """
        Hard stops for the two required fields. Weight is checked first,
        so a form with both fields empty reports the weight.
        """
        if not is_number(self.weight_kg) or self.weight_kg <= 0:
            raise InvalidWeightError()
        if not is_number(self.height_cm) or self.height_cm <= 0:
            raise InvalidHeightError()

        # Optional fields: anything that is not a number means "not measured"
        for name in ('temperature_c', 'respiratory_rate'):
            value = getattr(self, name)
            object.__setattr__(self, name, float(value) if is_number(value) else None)
        for name in ('age_years', 'age_months'):
            value = getattr(self, name)
            object.__setattr__(self, name, int(value) if is_number(value) else None)

        # Accept any iterable of factors, store an immutable set
        object.__setattr__(self, 'factors', frozenset(self.factors))

    @property
    def total_age_months(self) -> int:
        years = self.age_years or 0
        months = self.age_months or 0
        return years * IWL_CONSTANTS.MONTHS_PER_YEAR + months

    def fingerprint(self) -> str:
        """
        Stable digest of the inputs, identical across processes.
        Factors are sorted by value; built-in hash() is salted per run.
        """
        canonical = repr((
            self.weight_kg, self.height_cm, self.temperature_c, self.respiratory_rate,
            self.age_years, self.age_months,
            tuple(sorted(factor.value for factor in self.factors))
        ))
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()

# --- 3. OUTPUT LAYER (The Derivation Breakdown) ---

@dataclass(frozen=True)
class FactorAdjustment:
    """Contribution of a single enabled clinical factor (mL/day)."""
    factor: ClinicalFactor
    percentage: float
    low_ml_day: float
    high_ml_day: float

@dataclass(frozen=True)
class CalculationResult:
    """
    Everything needed to render the totals and the step-by-step derivation.
    Built fresh on every call and never mutated.
    """
    # Final answer
    total_low_ml_day: float
    total_high_ml_day: float
    hourly_low_ml_hr: float
    hourly_high_ml_hr: float

    # Step 1-2: Surface area and baseline
    bsa_m2: float
    base_low_ml_day: float
    base_high_ml_day: float

    # Step 3: Fever
    fever_multiplier: float
    fever_fraction: float       # e.g. 0.26 for 39 C

    # Step 4: Tachypnea
    rr_adjustment_ml_day: float
    rr_range: NormalRRRange

    # Additional factors
    factor_adjustments: Tuple[FactorAdjustment, ...]
    additional_low_ml_day: float
    additional_high_ml_day: float

    # Echo of the inputs for the derivation trail
    weight_kg: float
    height_cm: float
    temperature_c: Optional[float]
    respiratory_rate: Optional[float]
    age_months_total: int
    enabled_factors: FrozenSet[ClinicalFactor]

    @property
    def fever_percent(self) -> float:
        return self.fever_fraction * 100.0

    @property
    def has_fever_adjustment(self) -> bool:
        return self.fever_fraction > 0

    @property
    def has_rr_adjustment(self) -> bool:
        return self.rr_adjustment_ml_day > 0

    @property
    def has_factor_adjustments(self) -> bool:
        return len(self.factor_adjustments) > 0

@dataclass
class ValidationResult:
    """Standardized response format for API/UI."""
    success: bool
    patient: Optional[PatientInput]
    result: Optional[CalculationResult]
    errors: List[str]
    warnings: CalculationWarnings
    audit_log: Optional[AuditLog] = None
    system_error: bool = False  # True = engine crash, not a bad input
