"""Tests for condition tagging and adjustments."""

from __future__ import annotations

import random

from carewatch.domains.monitoring.domain_logic.conditions import (
    ConditionTag,
    classify_condition,
    classify_conditions,
    condition_adjustment,
    tags_for,
)
from carewatch.domains.monitoring.domain_logic.vital_models import VitalKind


class _FixedRandom(random.Random):
    """uniform() returns the lower bound so adjustments are exact."""

    def uniform(self, a, b):
        return a


class TestClassification:
    def test_exact_vocabulary(self):
        assert classify_condition("Hypertension") == {ConditionTag.HYPERTENSION}
        assert classify_condition("  type 2   diabetes ") == {ConditionTag.DIABETES}
        assert classify_condition("COPD") == {ConditionTag.PULMONARY}

    def test_keyword_fallback(self):
        assert classify_condition("Mild congestive heart failure") == {ConditionTag.CARDIAC}
        assert classify_condition("diabetic neuropathy") == {ConditionTag.DIABETES}

    def test_unknown_label(self):
        assert classify_condition("Arthritis") == set()
        assert classify_condition("") == set()

    def test_same_family_counts_once(self):
        tags = classify_conditions(["Hypertension", "High blood pressure"])
        assert tags == {ConditionTag.HYPERTENSION}

    def test_tags_for_prefers_stored_tags(self, baseline_factory):
        base = baseline_factory(health_conditions=["Asthma"], condition_tags=["cardiac"])
        assert tags_for(base) == {ConditionTag.CARDIAC}

    def test_tags_for_classifies_when_missing(self, baseline_factory):
        base = baseline_factory(health_conditions=["Asthma"])
        assert tags_for(base) == {ConditionTag.PULMONARY}


class TestAdjustment:
    def test_no_conditions_young_patient(self):
        assert condition_adjustment(VitalKind.HEART_RATE, set(), 60, _FixedRandom()) == 0

    def test_hypertension_heart_rate(self):
        rng = _FixedRandom()
        assert condition_adjustment(VitalKind.HEART_RATE, {ConditionTag.HYPERTENSION}, 60, rng) == 5

    def test_stacks_conditions_and_age(self):
        tags = {ConditionTag.HYPERTENSION, ConditionTag.DIABETES, ConditionTag.CARDIAC}
        # 5 + 3 + 10 from conditions, 2 from age
        assert condition_adjustment(VitalKind.HEART_RATE, tags, 70, _FixedRandom()) == 20

    def test_spo2_reductions(self):
        tags = {ConditionTag.CARDIAC, ConditionTag.PULMONARY}
        assert condition_adjustment(VitalKind.SPO2, tags, 80, _FixedRandom()) == -3 - 4 - 1.5

    def test_age_65_is_not_elderly(self):
        assert condition_adjustment(VitalKind.HEART_RATE, set(), 65, _FixedRandom()) == 0

    def test_ranges_respected(self):
        rng = random.Random(7)
        for _ in range(200):
            value = condition_adjustment(VitalKind.BLOOD_PRESSURE, {ConditionTag.HYPERTENSION}, 60, rng)
            assert 10 <= value <= 30
