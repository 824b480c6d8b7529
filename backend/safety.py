# safety.py
import logging
from typing import Optional

from models import PatientInput, CalculationWarnings
from constants import PLAUSIBILITY_LIMITS

logger = logging.getLogger("pedia-iwl-engine")

class PlausibilitySupervisor:
    """
    Soft sanity checks used by the Main Calculation Engine.
    The formulas still run on the values as entered; the clinician
    gets a flag to double check the bedside data.
    """
    @staticmethod
    def check_inputs(patient: PatientInput,
                     warnings: Optional[CalculationWarnings] = None) -> CalculationWarnings:
        if warnings is None:
            warnings = CalculationWarnings()

        # 1. Age
        # A negative total still lands in the newborn RR band (months < 1)
        age = patient.total_age_months
        if age < 0:
            warnings.negative_age = True
        elif age > PLAUSIBILITY_LIMITS.MAX_AGE_MONTHS:
            warnings.age_beyond_pediatric_range = True

        # 2. Temperature (fever term is linear, so typos explode the result)
        temp = patient.temperature_c
        if temp is not None:
            if not (PLAUSIBILITY_LIMITS.MIN_TEMP_C <= temp <= PLAUSIBILITY_LIMITS.MAX_TEMP_C):
                warnings.temperature_implausible = True

        # 3. Respiratory Rate
        rr = patient.respiratory_rate
        if rr is not None:
            if not (PLAUSIBILITY_LIMITS.MIN_RR_BPM <= rr <= PLAUSIBILITY_LIMITS.MAX_RR_BPM):
                warnings.respiratory_rate_implausible = True

        # 4. Height/Weight consistency (catches lb vs kg, m vs cm)
        bmi = patient.weight_kg / ((patient.height_cm / 100) ** 2)
        if not (PLAUSIBILITY_LIMITS.MIN_BMI <= bmi <= PLAUSIBILITY_LIMITS.MAX_BMI):
            warnings.bmi_implausible = round(bmi, 1)

        if warnings.has_any():
            logger.warning("Plausibility warnings: %s", warnings)

        return warnings
