"""
PediaIWL: Core Calculation Engine
=================================
The mathematical core that translates bedside inputs into a daily and hourly
Insensible Water Loss range, keeping every intermediate value so the UI can
show its work.
"""

import logging
import math
from collections.abc import Mapping
from typing import Iterable, Optional, Tuple

# Import Data Models
from models import (
    PatientInput,
    CalculationResult,
    FactorAdjustment,
    ValidationResult,
    CalculationWarnings,
    AuditLog,
    IWLValidationError,
    is_number,
    is_checked
)

# Import Constants & Lookup Tables
from constants import (
    IWL_CONSTANTS,
    AGE_CONSTANTS,
    FACTOR_PERCENTAGES,
    ClinicalFactor,
    NormalRRRange
)
from safety import PlausibilitySupervisor

logger = logging.getLogger("pedia-iwl-engine")

_OPTIONAL_FLOAT_FIELDS = ('temperature_c', 'respiratory_rate')
_OPTIONAL_INT_FIELDS = ('age_years', 'age_months')
_REQUIRED_FIELDS = ('weight_kg', 'height_cm')

class IWLCalculationEngine:
    """
    The Mathematical Core.
    Translates Clinical Inputs -> BSA -> Base IWL -> Adjustments -> Totals.
    Every method is a pure function; nothing is cached between calls.
    """

    @staticmethod
    def lookup_normal_rr(age_months: int) -> NormalRRRange:
        """
        Age-specific normal respiratory rate band.
        Bands are scanned in order, first 'age < upper bound' wins.
        """
        for upper_bound, rr_range in AGE_CONSTANTS.NORMAL_RR_BANDS:
            if upper_bound is None or age_months < upper_bound:
                return rr_range
        return AGE_CONSTANTS.NORMAL_RR_BANDS[-1][1]

    @staticmethod
    def calculate_bsa(height_cm: float, weight_kg: float) -> float:
        """
        Body Surface Area (m²), Mosteller formula.
        Caller guarantees both values are > 0.
        """
        return math.sqrt((height_cm * weight_kg) / IWL_CONSTANTS.BSA_DIVISOR)

    @staticmethod
    def calculate_base_iwl(bsa: float) -> Tuple[float, float]:
        """Baseline loss range (mL/day): 400-500 mL/m²/day."""
        return (
            bsa * IWL_CONSTANTS.BASE_IWL_LOW_ML_M2_DAY,
            bsa * IWL_CONSTANTS.BASE_IWL_HIGH_ML_M2_DAY
        )

    @staticmethod
    def calculate_fever_adjustment(temperature_c: Optional[float]) -> Tuple[float, float]:
        """
        Returns (multiplier, fractional_increase).
        +13% per degree above 37 C. Linear, no ceiling.
        """
        if temperature_c is None or temperature_c <= IWL_CONSTANTS.FEVER_THRESHOLD_C:
            return 1.0, 0.0

        excess_temp = temperature_c - IWL_CONSTANTS.FEVER_THRESHOLD_C
        fraction = excess_temp * IWL_CONSTANTS.FEVER_INCREASE_PER_DEGREE
        return 1.0 + fraction, fraction

    @staticmethod
    def calculate_rr_adjustment(respiratory_rate: Optional[float],
                                age_months: int,
                                weight_kg: float) -> Tuple[float, NormalRRRange]:
        """
        Returns (adjustment_ml_day, band_used).
        Only tachypnea adds loss; a slow RR is never subtracted.
        """
        rr_range = IWLCalculationEngine.lookup_normal_rr(age_months)

        if respiratory_rate is None or respiratory_rate <= rr_range.max_bpm:
            return 0.0, rr_range

        excess_breaths = respiratory_rate - rr_range.max_bpm
        adjustment = excess_breaths * IWL_CONSTANTS.RR_ML_PER_BREATH_PER_KG * weight_kg
        return adjustment, rr_range

    @staticmethod
    def calculate_factor_adjustments(factors: Iterable[ClinicalFactor],
                                     base_low: float,
                                     base_high: float) -> Tuple[Tuple[FactorAdjustment, ...], float, float]:
        """
        Returns (per_factor_breakdown, add_low, add_high).
        Each factor is a flat % of Base IWL. No synergy, no cap.
        """
        enabled = set(factors)
        breakdown = []
        add_low = 0.0
        add_high = 0.0

        # Iterate the enum, not the caller's set, so order is stable
        for factor in ClinicalFactor:
            if factor not in enabled:
                continue
            pct = FACTOR_PERCENTAGES[factor]
            low = base_low * pct
            high = base_high * pct
            breakdown.append(FactorAdjustment(factor=factor, percentage=pct,
                                              low_ml_day=low, high_ml_day=high))
            add_low += low
            add_high += high

        return tuple(breakdown), add_low, add_high

    @staticmethod
    def aggregate(patient: PatientInput,
                  bsa: float,
                  base: Tuple[float, float],
                  fever: Tuple[float, float],
                  rr: Tuple[float, NormalRRRange],
                  factors: Tuple[Tuple[FactorAdjustment, ...], float, float]) -> CalculationResult:
        """
        Total IWL = (Base IWL × Fever Multiplier) + RR Adjustment + Additional Adjustments
        Same multiplier and RR term for both ends of the range.
        """
        base_low, base_high = base
        fever_multiplier, fever_fraction = fever
        rr_adjustment, rr_range = rr
        breakdown, add_low, add_high = factors

        total_low = (base_low * fever_multiplier) + rr_adjustment + add_low
        total_high = (base_high * fever_multiplier) + rr_adjustment + add_high

        return CalculationResult(
            total_low_ml_day=total_low,
            total_high_ml_day=total_high,
            hourly_low_ml_hr=total_low / IWL_CONSTANTS.HOURS_PER_DAY,
            hourly_high_ml_hr=total_high / IWL_CONSTANTS.HOURS_PER_DAY,
            bsa_m2=bsa,
            base_low_ml_day=base_low,
            base_high_ml_day=base_high,
            fever_multiplier=fever_multiplier,
            fever_fraction=fever_fraction,
            rr_adjustment_ml_day=rr_adjustment,
            rr_range=rr_range,
            factor_adjustments=breakdown,
            additional_low_ml_day=add_low,
            additional_high_ml_day=add_high,
            weight_kg=patient.weight_kg,
            height_cm=patient.height_cm,
            temperature_c=patient.temperature_c,
            respiratory_rate=patient.respiratory_rate,
            age_months_total=patient.total_age_months,
            enabled_factors=patient.factors
        )

    @staticmethod
    def calculate_iwl(patient: PatientInput) -> CalculationResult:
        """
        MASTER BUILDER: Runs every component for an already-validated patient.
        """
        bsa = IWLCalculationEngine.calculate_bsa(patient.height_cm, patient.weight_kg)
        base = IWLCalculationEngine.calculate_base_iwl(bsa)
        fever = IWLCalculationEngine.calculate_fever_adjustment(patient.temperature_c)
        rr = IWLCalculationEngine.calculate_rr_adjustment(
            patient.respiratory_rate, patient.total_age_months, patient.weight_kg
        )
        factors = IWLCalculationEngine.calculate_factor_adjustments(patient.factors, base[0], base[1])

        return IWLCalculationEngine.aggregate(patient, bsa, base, fever, rr, factors)

    @staticmethod
    def _parse_factors(raw, warnings: CalculationWarnings) -> frozenset:
        """
        Accepts a checkbox record ({'burns': True} or {'burns': "true"}), or an iterable of
        ClinicalFactor members / their values / their names.
        Unknown entries are dropped and reported.
        """
        if raw is None:
            return frozenset()
        if isinstance(raw, Mapping):
            raw = [key for key, checked in raw.items() if is_checked(checked)]
        elif isinstance(raw, (str, ClinicalFactor)):
            raw = [raw]

        try:
            items = list(raw)
        except TypeError:
            warnings.ignored_inputs.append('factors')
            return frozenset()

        parsed = set()
        for item in items:
            if isinstance(item, ClinicalFactor):
                parsed.add(item)
                continue
            match = None
            if isinstance(item, str):
                for factor in ClinicalFactor:
                    if item in (factor.value, factor.name, factor.name.lower()):
                        match = factor
                        break
            if match is None:
                warnings.ignored_inputs.append(f"factors.{item}")
            else:
                parsed.add(match)
        return frozenset(parsed)

    @staticmethod
    def _sanitize_inputs(data: dict, warnings: CalculationWarnings) -> dict:
        """
        Degrade-gracefully policy: an optional field that is not a number is
        treated as absent (adjustment off), and reported in the warnings.
        Required fields are passed through for PatientInput to reject.
        """
        clean = {key: data.get(key) for key in _REQUIRED_FIELDS}

        for key in _OPTIONAL_FLOAT_FIELDS + _OPTIONAL_INT_FIELDS:
            value = data.get(key)
            if value is None:
                clean[key] = None
            elif is_number(value):
                # Ages truncate like a whole-number form field
                clean[key] = int(value) if key in _OPTIONAL_INT_FIELDS else float(value)
            else:
                clean[key] = None
                warnings.ignored_inputs.append(key)

        clean['factors'] = IWLCalculationEngine._parse_factors(data.get('factors'), warnings)

        known = set(_REQUIRED_FIELDS + _OPTIONAL_FLOAT_FIELDS + _OPTIONAL_INT_FIELDS) | {'factors'}
        for key in data:
            if key not in known:
                warnings.ignored_inputs.append(key)

        return clean

    @staticmethod
    def calculate(data: dict) -> ValidationResult:
        """
        SAFE FACTORY: The main entry point for the UI/API.
        Handles validation, calculation, warnings and error formatting.
        """
        warnings = CalculationWarnings()
        audit = None

        try:
            # 1. Input Sanitization (optional fields degrade, never fail)
            clean = IWLCalculationEngine._sanitize_inputs(data, warnings)

            # 2. Create Patient Input (Blocks on invalid weight/height)
            patient = PatientInput(**clean)

            # 3. Soft plausibility checks (never block)
            PlausibilitySupervisor.check_inputs(patient, warnings)

            # 4. Run the formulas
            result = IWLCalculationEngine.calculate_iwl(patient)

            audit = AuditLog(inputs_hash=patient.fingerprint())
            logger.info(
                "IWL calculated: %.1f-%.1f mL/day (Wt %skg, Ht %scm)",
                result.total_low_ml_day, result.total_high_ml_day,
                patient.weight_kg, patient.height_cm
            )

            return ValidationResult(
                success=True,
                patient=patient,
                result=result,
                errors=[],
                warnings=warnings,
                audit_log=audit
            )

        except IWLValidationError as e:
            logger.warning("Input Validation Error: %s", e)
            return ValidationResult(
                success=False,
                patient=None,
                result=None,
                errors=[str(e)],
                warnings=warnings,
                audit_log=audit
            )
        except Exception as e:
            logger.error("Internal Engine Failure: %s", e, exc_info=True)
            return ValidationResult(
                success=False,
                patient=None,
                result=None,
                errors=[f"System Error: {str(e)}"],
                warnings=warnings,
                audit_log=audit,
                system_error=True
            )
