import unittest
import math
from iwl_engine import IWLCalculationEngine
from models import PatientInput, CalculationResult, InvalidWeightError, InvalidHeightError
from constants import ClinicalFactor, FACTOR_PERCENTAGES

class TestNormalRRTable(unittest.TestCase):

    def test_band_edges(self):
        """Each band upper bound is exclusive."""
        cases = [
            (0, 60, "Newborn (<1 month)"),
            (1, 50, "1–3 months"),
            (2, 50, "1–3 months"),
            (3, 40, "3–6 months"),
            (5, 40, "3–6 months"),
            (6, 35, "6–12 months"),
            (11, 35, "6–12 months"),
            (12, 30, "1–3 years"),
            (35, 30, "1–3 years"),
            (36, 25, "3+ years"),
            (500, 25, "3+ years"),
        ]
        for months, expected_max, expected_label in cases:
            with self.subTest(months=months):
                band = IWLCalculationEngine.lookup_normal_rr(months)
                self.assertEqual(band.max_bpm, expected_max)
                self.assertEqual(band.label, expected_label)

    def test_newborn_band_minimum(self):
        band = IWLCalculationEngine.lookup_normal_rr(0)
        self.assertEqual((band.min_bpm, band.max_bpm), (30, 60))

    def test_negative_age_falls_in_first_band(self):
        band = IWLCalculationEngine.lookup_normal_rr(-4)
        self.assertEqual(band.label, "Newborn (<1 month)")

class TestIWLEngine(unittest.TestCase):

    def setUp(self):
        """Standard 2-year-old, 10kg, 80cm."""
        self.standard_patient = {
            'weight_kg': 10.0,
            'height_cm': 80.0,
            'age_years': 2,
            'age_months': 0,
        }

    def test_01_bsa_mosteller(self):
        print("\nTEST 1: Mosteller BSA")
        for height, weight in [(50, 3), (75, 10), (110, 18), (160, 55.5)]:
            bsa = IWLCalculationEngine.calculate_bsa(height, weight)
            self.assertAlmostEqual(bsa, math.sqrt(height * weight / 3600), places=12)

    def test_02_base_range_ratio(self):
        """High/Low is always 500/400."""
        for bsa in [0.1, 0.2041, 0.5, 1.7]:
            low, high = IWLCalculationEngine.calculate_base_iwl(bsa)
            self.assertAlmostEqual(low, bsa * 400)
            self.assertAlmostEqual(high, bsa * 500)
            self.assertAlmostEqual(high / low, 1.25, places=12)
            self.assertGreaterEqual(high, low)

    def test_03_no_fever_below_threshold(self):
        for temp in [None, 35.0, 36.9, 37.0]:
            with self.subTest(temp=temp):
                multiplier, fraction = IWLCalculationEngine.calculate_fever_adjustment(temp)
                self.assertEqual(multiplier, 1.0)
                self.assertEqual(fraction, 0.0)

    def test_04_fever_linear(self):
        multiplier, fraction = IWLCalculationEngine.calculate_fever_adjustment(38.5)
        self.assertAlmostEqual(fraction, 0.195)
        self.assertAlmostEqual(multiplier, 1.195)

        # Strictly increasing above 37
        previous = 1.0
        for temp in [37.1, 38.0, 39.0, 40.0, 41.5]:
            multiplier, _ = IWLCalculationEngine.calculate_fever_adjustment(temp)
            self.assertGreater(multiplier, previous)
            previous = multiplier

    def test_05_rr_no_adjustment_at_or_below_max(self):
        # 24 months -> "1–3 years", max 30
        for rr in [None, 12, 20, 30]:
            with self.subTest(rr=rr):
                adjustment, band = IWLCalculationEngine.calculate_rr_adjustment(rr, 24, 10.0)
                self.assertEqual(adjustment, 0.0)
                self.assertEqual(band.max_bpm, 30)

    def test_06_rr_linear_above_max(self):
        print("\nTEST 6: Tachypnea Correction")
        a1, _ = IWLCalculationEngine.calculate_rr_adjustment(31, 24, 10.0)
        a10, _ = IWLCalculationEngine.calculate_rr_adjustment(40, 24, 10.0)
        a20, _ = IWLCalculationEngine.calculate_rr_adjustment(50, 24, 10.0)
        print(f"  > +1: {a1} | +10: {a10} | +20: {a20}")
        self.assertEqual(a1, 20.0)
        self.assertEqual(a10, 200.0)
        self.assertEqual(a20, 2 * a10)

    def test_07_factor_empty_set(self):
        breakdown, add_low, add_high = IWLCalculationEngine.calculate_factor_adjustments(
            frozenset(), 100.0, 125.0
        )
        self.assertEqual(breakdown, ())
        self.assertEqual(add_low, 0.0)
        self.assertEqual(add_high, 0.0)

    def test_08_factor_additivity(self):
        base_low, base_high = 80.0, 100.0
        chosen = {ClinicalFactor.PHOTOTHERAPY, ClinicalFactor.LOW_HUMIDITY}
        breakdown, add_low, add_high = IWLCalculationEngine.calculate_factor_adjustments(
            chosen, base_low, base_high
        )
        expected_low = sum(base_low * FACTOR_PERCENTAGES[f] for f in chosen)
        expected_high = sum(base_high * FACTOR_PERCENTAGES[f] for f in chosen)
        self.assertAlmostEqual(add_low, expected_low)
        self.assertAlmostEqual(add_high, expected_high)

        # Breakdown follows enum order, one entry per enabled factor
        self.assertEqual([adj.factor for adj in breakdown],
                         [ClinicalFactor.PHOTOTHERAPY, ClinicalFactor.LOW_HUMIDITY])
        self.assertAlmostEqual(breakdown[0].low_ml_day, 16.0)
        self.assertAlmostEqual(breakdown[1].high_ml_day, 25.0)

    def test_09_all_factors_add_125_percent(self):
        _, add_low, add_high = IWLCalculationEngine.calculate_factor_adjustments(
            set(ClinicalFactor), 80.0, 100.0
        )
        self.assertAlmostEqual(add_low, 80.0 * 1.25)
        self.assertAlmostEqual(add_high, 100.0 * 1.25)

    def test_10_total_formula(self):
        """Total = Base × Fever + RR + Factors, for both bounds."""
        data = dict(self.standard_patient, temperature_c=38.0, respiratory_rate=36,
                    factors=[ClinicalFactor.RADIANT_WARMER])
        outcome = IWLCalculationEngine.calculate(data)
        self.assertTrue(outcome.success)
        r = outcome.result

        self.assertAlmostEqual(r.fever_multiplier, 1.13)
        self.assertEqual(r.rr_adjustment_ml_day, (36 - 30) * 2 * 10.0)
        self.assertAlmostEqual(
            r.total_low_ml_day,
            r.base_low_ml_day * r.fever_multiplier + r.rr_adjustment_ml_day + r.additional_low_ml_day
        )
        self.assertAlmostEqual(
            r.total_high_ml_day,
            r.base_high_ml_day * r.fever_multiplier + r.rr_adjustment_ml_day + r.additional_high_ml_day
        )
        self.assertAlmostEqual(r.additional_low_ml_day, r.base_low_ml_day * 0.30)

    def test_11_hourly_is_exact_division(self):
        outcome = IWLCalculationEngine.calculate(dict(self.standard_patient, temperature_c=39.2))
        r = outcome.result
        self.assertEqual(r.hourly_low_ml_hr, r.total_low_ml_day / 24)
        self.assertEqual(r.hourly_high_ml_hr, r.total_high_ml_day / 24)

    def test_12_idempotence(self):
        data = dict(self.standard_patient, temperature_c=38.4, respiratory_rate=44,
                    factors=["burns", "phototherapy"])
        first = IWLCalculationEngine.calculate(data).result
        second = IWLCalculationEngine.calculate(data).result
        self.assertIsInstance(first, CalculationResult)
        self.assertEqual(first, second)
        self.assertEqual(repr(first), repr(second))

    def test_13_non_numeric_optionals_degrade(self):
        """Garbage in optional fields switches the adjustment off, never blocks."""
        data = dict(self.standard_patient, temperature_c="hot", respiratory_rate=[50])
        outcome = IWLCalculationEngine.calculate(data)
        self.assertTrue(outcome.success)
        self.assertEqual(outcome.result.fever_multiplier, 1.0)
        self.assertEqual(outcome.result.rr_adjustment_ml_day, 0.0)
        self.assertIn("temperature_c", outcome.warnings.ignored_inputs)
        self.assertIn("respiratory_rate", outcome.warnings.ignored_inputs)

    def test_14_absent_age_is_newborn(self):
        outcome = IWLCalculationEngine.calculate({'weight_kg': 3.0, 'height_cm': 50.0})
        self.assertEqual(outcome.result.age_months_total, 0)
        self.assertEqual(outcome.result.rr_range.label, "Newborn (<1 month)")

    def test_15_age_years_and_months_combine(self):
        data = {'weight_kg': 12.0, 'height_cm': 90.0, 'age_years': 2, 'age_months': 8}
        outcome = IWLCalculationEngine.calculate(data)
        self.assertEqual(outcome.result.age_months_total, 32)
        self.assertEqual(outcome.result.rr_range.max_bpm, 30)

        # Only months given
        outcome = IWLCalculationEngine.calculate({'weight_kg': 6.0, 'height_cm': 62.0, 'age_months': 4})
        self.assertEqual(outcome.result.rr_range.label, "3–6 months")

    def test_16_factor_input_shapes(self):
        """Checkbox record, enum values, enum names and members are all accepted."""
        shapes = [
            {'radiantWarmer': True, 'burns': True, 'phototherapy': False},
            ['radiantWarmer', 'burns'],
            ['RADIANT_WARMER', 'burns'],
            [ClinicalFactor.RADIANT_WARMER, ClinicalFactor.BURNS],
        ]
        expected = frozenset({ClinicalFactor.RADIANT_WARMER, ClinicalFactor.BURNS})
        for shape in shapes:
            with self.subTest(shape=shape):
                outcome = IWLCalculationEngine.calculate(dict(self.standard_patient, factors=shape))
                self.assertEqual(outcome.result.enabled_factors, expected)

    def test_17_unknown_factor_ignored(self):
        outcome = IWLCalculationEngine.calculate(dict(self.standard_patient, factors=['sauna']))
        self.assertTrue(outcome.success)
        self.assertFalse(outcome.result.has_factor_adjustments)
        self.assertIn("factors.sauna", outcome.warnings.ignored_inputs)

    def test_18_patient_input_hard_stops(self):
        with self.assertRaises(InvalidWeightError):
            PatientInput(weight_kg=-1.0, height_cm=50.0)
        with self.assertRaises(InvalidWeightError):
            PatientInput(weight_kg=True, height_cm=50.0)
        with self.assertRaises(InvalidHeightError):
            PatientInput(weight_kg=3.0, height_cm=float('nan'))
        with self.assertRaises(InvalidHeightError):
            PatientInput(weight_kg=3.0, height_cm="50")

    def test_19_calculate_iwl_direct(self):
        patient = PatientInput(weight_kg=5.0, height_cm=60.0, respiratory_rate=70)
        result = IWLCalculationEngine.calculate_iwl(patient)
        self.assertEqual(result.rr_adjustment_ml_day, 100.0)
        self.assertTrue(result.has_rr_adjustment)
        self.assertFalse(result.has_fever_adjustment)

    def test_20_patient_input_non_numeric_optionals(self):
        """A hand-built PatientInput with text in optional fields still calculates."""
        patient = PatientInput(weight_kg=3.0, height_cm=50.0, temperature_c="39",
                               respiratory_rate="fast", age_years="2", age_months=[1])
        self.assertIsNone(patient.temperature_c)
        self.assertIsNone(patient.respiratory_rate)
        self.assertIsNone(patient.age_years)
        self.assertIsNone(patient.age_months)

        result = IWLCalculationEngine.calculate_iwl(patient)
        self.assertEqual(result.fever_multiplier, 1.0)
        self.assertEqual(result.rr_adjustment_ml_day, 0.0)
        self.assertEqual(result.age_months_total, 0)

    def test_21_patient_input_normalises_numbers(self):
        patient = PatientInput(weight_kg=3.0, height_cm=50.0, temperature_c=39,
                               age_years=1.9, age_months=2)
        self.assertEqual(patient.temperature_c, 39.0)
        self.assertEqual(patient.total_age_months, 14)

    def test_22_checkbox_text_values(self):
        """Only True or "true" enables a factor; "false" stays off."""
        record = {'burns': "false", 'phototherapy': "true", 'lowHumidity': 1,
                  'radiantWarmer': True}
        outcome = IWLCalculationEngine.calculate(dict(self.standard_patient, factors=record))
        self.assertEqual(outcome.result.enabled_factors,
                         frozenset({ClinicalFactor.PHOTOTHERAPY, ClinicalFactor.RADIANT_WARMER}))

    def test_23_audit_fingerprint_is_stable(self):
        """Same inputs give the same sha256 digest, whatever the factor order."""
        a = IWLCalculationEngine.calculate(dict(self.standard_patient, factors=['burns', 'phototherapy']))
        b = IWLCalculationEngine.calculate(dict(self.standard_patient, factors=['phototherapy', 'burns']))
        c = IWLCalculationEngine.calculate(dict(self.standard_patient, factors=['burns']))

        self.assertEqual(a.audit_log.inputs_hash, b.audit_log.inputs_hash)
        self.assertNotEqual(a.audit_log.inputs_hash, c.audit_log.inputs_hash)
        self.assertEqual(len(a.audit_log.inputs_hash), 64)
        self.assertEqual(a.audit_log.inputs_hash, a.patient.fingerprint())

if __name__ == '__main__':
    unittest.main()
