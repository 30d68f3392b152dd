"""Condition tagging and the condition/age adjustments applied to simulated vitals.

Free-text condition labels are classified into :class:`ConditionTag` values
when a profile is saved. Exact vocabulary matches come first; case-insensitive
substring keywords are the fallback for anything else. Because the result is
a set, two labels from the same family ("Hypertension" and "High blood
pressure") apply that family's adjustment once.
"""

from __future__ import annotations

import random
from collections.abc import Iterable
from enum import Enum

from carewatch.core.storage.models import UserBaseline
from carewatch.domains.monitoring.domain_logic.vital_models import VitalKind


class ConditionTag(str, Enum):
    HYPERTENSION = "hypertension"
    DIABETES = "diabetes"
    CARDIAC = "cardiac"
    PULMONARY = "pulmonary"


# Exact (normalized) labels
_VOCABULARY: dict[str, ConditionTag] = {
    "hypertension": ConditionTag.HYPERTENSION,
    "high blood pressure": ConditionTag.HYPERTENSION,
    "diabetes": ConditionTag.DIABETES,
    "type 1 diabetes": ConditionTag.DIABETES,
    "type 2 diabetes": ConditionTag.DIABETES,
    "heart disease": ConditionTag.CARDIAC,
    "coronary artery disease": ConditionTag.CARDIAC,
    "heart failure": ConditionTag.CARDIAC,
    "atrial fibrillation": ConditionTag.CARDIAC,
    "arrhythmia": ConditionTag.CARDIAC,
    "copd": ConditionTag.PULMONARY,
    "asthma": ConditionTag.PULMONARY,
    "lung disease": ConditionTag.PULMONARY,
}

# Substring fallback for unclassified text
_KEYWORDS: dict[ConditionTag, tuple[str, ...]] = {
    ConditionTag.HYPERTENSION: ("hypertension", "high blood pressure"),
    ConditionTag.DIABETES: ("diabetes", "diabetic"),
    ConditionTag.CARDIAC: ("heart", "cardiac", "arrhythmia", "coronary", "atrial"),
    ConditionTag.PULMONARY: ("copd", "asthma", "lung", "pulmonary"),
}

ELDERLY_AGE = 65


def _normalize(label: str) -> str:
    return " ".join(label.lower().split())


def classify_condition(label: str) -> set[ConditionTag]:
    """Tags for one free-text label (empty set if nothing matches)."""
    text = _normalize(label)
    if not text:
        return set()
    if text in _VOCABULARY:
        return {_VOCABULARY[text]}
    return {tag for tag, words in _KEYWORDS.items() if any(w in text for w in words)}


def classify_conditions(labels: Iterable[str]) -> set[ConditionTag]:
    tags: set[ConditionTag] = set()
    for label in labels:
        tags |= classify_condition(label)
    return tags


def tags_for(baseline: UserBaseline) -> set[ConditionTag]:
    """Stored tags for a profile, classifying on the fly for older profiles."""
    if baseline.condition_tags:
        return {ConditionTag(t) for t in baseline.condition_tags if t in _TAG_VALUES}
    return classify_conditions(baseline.health_conditions)


_TAG_VALUES = {t.value for t in ConditionTag}


# (tag, vital kind) -> half-open uniform range added to the reading
_ADJUSTMENTS: dict[tuple[ConditionTag, VitalKind], tuple[float, float]] = {
    (ConditionTag.HYPERTENSION, VitalKind.HEART_RATE): (5, 15),
    (ConditionTag.HYPERTENSION, VitalKind.BLOOD_PRESSURE): (10, 30),
    (ConditionTag.DIABETES, VitalKind.HEART_RATE): (3, 11),
    (ConditionTag.DIABETES, VitalKind.BLOOD_PRESSURE): (5, 20),
    (ConditionTag.CARDIAC, VitalKind.HEART_RATE): (10, 25),
    (ConditionTag.CARDIAC, VitalKind.SPO2): (-3, -1),
    (ConditionTag.PULMONARY, VitalKind.SPO2): (-4, -1),
}

_AGE_ADJUSTMENTS: dict[VitalKind, tuple[float, float]] = {
    VitalKind.HEART_RATE: (2, 7),
    VitalKind.SPO2: (-1.5, -0.5),
}


def condition_adjustment(
    kind: VitalKind,
    tags: set[ConditionTag],
    age: int,
    rng: random.Random,
) -> float:
    """Sum of the condition and age offsets for one vital value.

    Call once per value; blood pressure draws separately for systolic and
    diastolic. Tags are visited in a fixed order so a seeded ``rng`` gives
    repeatable output.
    """
    total = 0.0
    for tag in ConditionTag:
        if tag in tags and (tag, kind) in _ADJUSTMENTS:
            low, high = _ADJUSTMENTS[(tag, kind)]
            total += rng.uniform(low, high)
    if age > ELDERLY_AGE and kind in _AGE_ADJUSTMENTS:
        low, high = _AGE_ADJUSTMENTS[kind]
        total += rng.uniform(low, high)
    return total
