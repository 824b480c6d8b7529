# main.py

import logging
import os
import re
from typing import Optional, List
from datetime import datetime
from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field, field_validator

# Import Data Models & Logic
from models import (
    CalculationWarnings,
    FactorAdjustment,
    ValidationResult,
    is_number,
    is_checked
)
from constants import (
    VERSION,
    ClinicalFactor,
    NormalRRRange,
    FACTOR_PERCENTAGES,
    FACTOR_LABELS,
    FACTOR_EXPLANATIONS,
    REFERENCES,
    MEDICAL_DISCLAIMER
)
from iwl_engine import IWLCalculationEngine
from report import DerivationStep, build_derivation_trail, format_summary

# --- 1. CONFIGURATION & LOGGING ---
LOG_LEVEL = os.environ.get("PEDIAIWL_LOG_LEVEL", "INFO").upper()
CORS_ORIGINS = [
    origin.strip()
    for origin in os.environ.get("PEDIAIWL_CORS_ORIGINS", "*").split(",")
    if origin.strip()
]

logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger("pedia-iwl-api")

app = FastAPI(
    title="PediaIWL API",
    version=VERSION,
    description="Insensible Water Loss Calculator for Pediatric Patients. \n\n"
                "**WARNING**: Educational tool only. Not a substitute for clinical judgment.",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.get("/")
def read_root():
    return {"status": "active", "message": "PediaIWL API is running successfully!"}

@app.get("/health")
def health_check():
    """K8s/AWS Health Probe"""
    return {"status": "active", "version": VERSION, "module": "pedia-iwl-engine"}

# --- 2. FREE-TEXT PARSING (The Form Boundary) ---
# Form fields arrive as text. "38.5C" reads as 38.5, "abc" reads as absent.
_FLOAT_PREFIX = re.compile(r"^\s*[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")
_INT_PREFIX = re.compile(r"^\s*[+-]?\d+")

def parse_decimal(value) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if is_number(value) else None
    if isinstance(value, str):
        match = _FLOAT_PREFIX.match(value)
        return float(match.group(0)) if match else None
    return None

def parse_whole_number(value) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value) if is_number(value) else None
    if isinstance(value, str):
        match = _INT_PREFIX.match(value)
        return int(match.group(0)) if match else None
    return None

# --- 3. INPUT SCHEMA ---
class IWLRequest(BaseModel):
    # Required by the engine. Left Optional here so the engine owns the message.
    weight_kg: Optional[float] = Field(None, description="Weight in kg (required)")
    height_cm: Optional[float] = Field(None, description="Height in cm (required)")

    temperature_c: Optional[float] = Field(None, description="Core temperature in °C")
    respiratory_rate: Optional[float] = Field(None, description="Breaths per minute")

    # "2 years 8 months" -> age_years=2, age_months=8
    age_years: Optional[int] = Field(None, ge=0, description="Whole years")
    age_months: Optional[int] = Field(None, ge=0, description="Extra months")

    # Auto-maps strings to Enums (e.g., "radiantWarmer" -> ClinicalFactor.RADIANT_WARMER)
    factors: List[ClinicalFactor] = Field(default_factory=list)

    @field_validator('weight_kg', 'height_cm', 'temperature_c', 'respiratory_rate', mode='before')
    @classmethod
    def _lenient_decimal(cls, value):
        return parse_decimal(value)

    @field_validator('age_years', 'age_months', mode='before')
    @classmethod
    def _lenient_whole_number(cls, value):
        return parse_whole_number(value)

    @field_validator('factors', mode='before')
    @classmethod
    def _checkbox_record(cls, value):
        # The form sends {"burns": true, "lowHumidity": false}; "false" stays unchecked
        if value is None:
            return []
        if isinstance(value, dict):
            return [key for key, checked in value.items() if is_checked(checked)]
        return value

    class Config:
        # Document an example for Swagger UI
        json_schema_extra = {
            "example": {
                "weight_kg": 3.2, "height_cm": 50, "temperature_c": 38.5,
                "respiratory_rate": 72, "age_years": 0, "age_months": 0,
                "factors": ["phototherapy"]
            }
        }

# --- 4. EXPLICIT RESPONSE SCHEMA (The Contract) ---
class IWLResponse(BaseModel):
    # Totals
    total_low_ml_day: float
    total_high_ml_day: float
    hourly_low_ml_hr: float
    hourly_high_ml_hr: float

    # Breakdown
    bsa_m2: float
    base_low_ml_day: float
    base_high_ml_day: float
    fever_multiplier: float
    fever_percent: float
    rr_adjustment_ml_day: float
    rr_range: NormalRRRange
    factor_adjustments: List[FactorAdjustment]  # Pydantic handles nested Dataclasses
    additional_low_ml_day: float
    additional_high_ml_day: float

    # Which panels the UI should open
    has_fever_adjustment: bool
    has_rr_adjustment: bool
    has_factor_adjustments: bool

    # UX
    human_readable_summary: str
    derivation_trail: List[DerivationStep]
    warnings: CalculationWarnings
    generated_at: datetime = Field(default_factory=datetime.now)

class FactorInfo(BaseModel):
    factor: ClinicalFactor
    label: str
    percentage: float
    explanation: str

class CitationsResponse(BaseModel):
    references: List[str]
    disclaimer: str

def _to_response(outcome: ValidationResult) -> dict:
    result = outcome.result
    return {
        "total_low_ml_day": result.total_low_ml_day,
        "total_high_ml_day": result.total_high_ml_day,
        "hourly_low_ml_hr": result.hourly_low_ml_hr,
        "hourly_high_ml_hr": result.hourly_high_ml_hr,
        "bsa_m2": result.bsa_m2,
        "base_low_ml_day": result.base_low_ml_day,
        "base_high_ml_day": result.base_high_ml_day,
        "fever_multiplier": result.fever_multiplier,
        "fever_percent": result.fever_percent,
        "rr_adjustment_ml_day": result.rr_adjustment_ml_day,
        "rr_range": result.rr_range,
        "factor_adjustments": list(result.factor_adjustments),
        "additional_low_ml_day": result.additional_low_ml_day,
        "additional_high_ml_day": result.additional_high_ml_day,
        "has_fever_adjustment": result.has_fever_adjustment,
        "has_rr_adjustment": result.has_rr_adjustment,
        "has_factor_adjustments": result.has_factor_adjustments,
        "human_readable_summary": format_summary(result),
        "derivation_trail": build_derivation_trail(result),
        "warnings": outcome.warnings,
    }

# --- 5. ENDPOINTS ---

@app.post("/calculate", response_model=IWLResponse)
def calculate_iwl(request: IWLRequest):
    """
    Estimates daily and hourly Insensible Water Loss with a full
    step-by-step derivation.
    """
    logger.info(f"Processing IWL for Wt: {request.weight_kg}kg, Ht: {request.height_cm}cm")

    outcome = IWLCalculationEngine.calculate(request.model_dump())

    if outcome.system_error:
        # Unexpected crash inside the engine (already logged with traceback)
        raise HTTPException(status_code=500, detail="Internal Calculation Engine Error")
    if not outcome.success:
        # Blocking input errors, surfaced verbatim
        logger.warning(f"Input Validation Error: {outcome.errors[0]}")
        raise HTTPException(status_code=422, detail=outcome.errors[0])

    return _to_response(outcome)

@app.get("/reference/normal-rr", response_model=NormalRRRange)
def normal_rr_for_age(age_months: int = Query(..., ge=0, description="Total age in months")):
    return IWLCalculationEngine.lookup_normal_rr(age_months)

@app.get("/reference/factors", response_model=List[FactorInfo])
def list_factors():
    return [
        FactorInfo(
            factor=factor,
            label=FACTOR_LABELS[factor],
            percentage=FACTOR_PERCENTAGES[factor],
            explanation=FACTOR_EXPLANATIONS[factor]
        )
        for factor in ClinicalFactor
    ]

@app.get("/reference/citations", response_model=CitationsResponse)
def citations():
    return CitationsResponse(references=list(REFERENCES), disclaimer=MEDICAL_DISCLAIMER.strip())
