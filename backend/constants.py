from enum import Enum
from dataclasses import dataclass
from types import MappingProxyType
VERSION = "1.0.0"

class ClinicalFactor(Enum):
    PHOTOTHERAPY = "phototherapy"
    RADIANT_WARMER = "radiantWarmer"
    LOW_HUMIDITY = "lowHumidity"
    BURNS = "burns"

@dataclass(frozen=True)
class NormalRRRange:
    min_bpm: int
    max_bpm: int
    label: str

class IWL_CONSTANTS:
    # Mosteller: BSA = sqrt(height_cm * weight_kg / 3600)
    BSA_DIVISOR = 3600.0

    # Baseline evaporative loss (mL/m2/day)
    BASE_IWL_LOW_ML_M2_DAY = 400.0
    BASE_IWL_HIGH_ML_M2_DAY = 500.0

    # Fever: +13% per degree above 37 C
    FEVER_THRESHOLD_C = 37.0
    FEVER_INCREASE_PER_DEGREE = 0.13

    # Tachypnea: 2 mL/kg/day per breath above the age-normal max
    RR_ML_PER_BREATH_PER_KG = 2.0

    HOURS_PER_DAY = 24.0
    MONTHS_PER_YEAR = 12

class AGE_CONSTANTS:
    # (Upper bound in months, exclusive): Normal RR band
    # Scanned top-to-bottom, first match wins. None = open-ended.
    NORMAL_RR_BANDS = (
        (1, NormalRRRange(30, 60, "Newborn (<1 month)")),
        (3, NormalRRRange(30, 50, "1–3 months")),
        (6, NormalRRRange(25, 40, "3–6 months")),
        (12, NormalRRRange(20, 35, "6–12 months")),
        (36, NormalRRRange(20, 30, "1–3 years")),
        (None, NormalRRRange(15, 25, "3+ years")),
    )

# Fraction of Base IWL added per enabled factor
FACTOR_PERCENTAGES = MappingProxyType({
    ClinicalFactor.PHOTOTHERAPY: 0.20,
    ClinicalFactor.RADIANT_WARMER: 0.30,
    ClinicalFactor.LOW_HUMIDITY: 0.25,
    ClinicalFactor.BURNS: 0.50,
})

FACTOR_LABELS = MappingProxyType({
    ClinicalFactor.PHOTOTHERAPY: "Phototherapy",
    ClinicalFactor.RADIANT_WARMER: "Radiant Warmer",
    ClinicalFactor.LOW_HUMIDITY: "Low Humidity",
    ClinicalFactor.BURNS: "Burns",
})

FACTOR_EXPLANATIONS = MappingProxyType({
    ClinicalFactor.PHOTOTHERAPY: (
        "Phototherapy using blue light to treat jaundice increases IWL by 20% "
        "due to increased skin blood flow and heat production."
    ),
    ClinicalFactor.RADIANT_WARMER: (
        "Radiant warmers increase IWL by 30% due to increased ambient temperature "
        "and direct radiant heat affecting skin temperature."
    ),
    ClinicalFactor.LOW_HUMIDITY: (
        "Low humidity environments (<50%) increase IWL by 25% as the gradient "
        "for water evaporation from skin increases."
    ),
    ClinicalFactor.BURNS: (
        "Burns significantly increase IWL by 50% due to loss of skin barrier "
        "function and increased metabolic rate."
    ),
})

class PLAUSIBILITY_LIMITS:
    """
    Soft limits. Values outside these ranges are still calculated,
    but the result carries a warning for the clinician.
    """
    MAX_AGE_MONTHS = 216          # 18 years
    MIN_TEMP_C = 25.0
    MAX_TEMP_C = 45.0
    MIN_RR_BPM = 0.0
    MAX_RR_BPM = 150.0
    MIN_BMI = 8.0
    MAX_BMI = 40.0

REFERENCES = (
    "Fanaroff, A. A., & Stoll, B. J. (2019). Fanaroff and Martin's Neonatal-Perinatal Medicine: "
    "Diseases of the Fetus and Infant (11th ed.). Elsevier.",
    "Kliegman, R. M., St. Geme, J. W., Blum, N. J., Shah, S. S., Tasker, R. C., & Wilson, K. M. (2020). "
    "Nelson Textbook of Pediatrics (21st ed.). Elsevier.",
    "Oh, W. (1978). Fluid and electrolyte management in low-birth-weight infants. "
    "Clinics in Perinatology, 5(1), 173-182.",
    "Bell, E. F., & Oh, W. (1980). Fluid and electrolyte management. In G. B. Avery (Ed.), "
    "Neonatology: Pathophysiology and Management of the Newborn (2nd ed., pp. 697-710). Lippincott.",
    "Baumgart, S. (1982). Radiant energy and insensible water loss in the premature newborn. "
    "Clinical Pediatrics, 21(3), 136-139.",
    "Hammarlund, K., & Sedin, G. (1979). Transepidermal water loss in newborn infants. "
    "VII. Relation to gestational age. Acta Paediatrica Scandinavica, 68(6), 795-801.",
)

MEDICAL_DISCLAIMER = """
⚠️ EDUCATIONAL CALCULATOR - NOT MEDICAL ADVICE
• Results may not be accurate for every patient
• Final responsibility: Treating physician / neonatologist
• Verify all calculations against institutional guidelines
• Use at your own risk
"""
