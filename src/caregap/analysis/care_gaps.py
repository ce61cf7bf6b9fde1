"""Care gap rule engine — detects missing or stale care from a patient's records.

Rules are independent objects evaluated in a fixed declared order; each
returns at most one CareGap. Adding a rule means adding an object to the list
returned by build_rules(), not editing the existing ones.

Elapsed time is counted in calendar months, ignoring the day of month, and
every threshold is strictly-greater-than: an A1c exactly 12 months old is
still current.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Protocol, TypeVar

from caregap.config import CareGapConfig
from caregap.core.utils import calculate_age, date_parts, months_between
from caregap.models import (
    CareGap,
    Condition,
    Encounter,
    Gender,
    Observation,
    Patient,
    ResourceSet,
    Severity,
)

R = TypeVar("R", Observation, Encounter)


class CareGapRule(Protocol):
    def evaluate(self, patient: Patient, resources: ResourceSet, today: date) -> CareGap | None:
        ...


def has_condition(conditions: tuple[Condition, ...], keyword: str) -> bool:
    """True if any coded condition display contains keyword (case-insensitive)."""
    keyword = keyword.lower()
    return any(
        isinstance(display, str) and keyword in display.lower()
        for cond in conditions
        for display in cond.coded_displays
    )


def _record_date(record: Observation | Encounter) -> str:
    return record.effective if isinstance(record, Observation) else record.start


def _latest(records: list[R]) -> R | None:
    """Most recent record by decoded date.

    Ties break on record id so the pick does not depend on input order.
    Records with an undecodable date rank below every dated record.
    """
    if not records:
        return None

    def rank(record: R) -> tuple:
        parts = date_parts(_record_date(record))
        return (parts is not None, parts or (), record.id)

    return max(records, key=rank)


def find_latest_observation(observations: tuple[Observation, ...], label: str) -> Observation | None:
    """Most recent observation whose label equals label exactly."""
    return _latest([o for o in observations if o.label == label])


def _months_since(dt_str: str, today: date) -> int | None:
    parts = date_parts(dt_str)
    if parts is None:
        return None
    return months_between(parts, today)


@dataclass(frozen=True)
class MonitoringRule:
    """Periodic lab/vital monitoring for patients with a given condition.

    Produces ``gap-<key>-none`` when no observation exists and
    ``gap-<key>-stale`` when the latest is more than max_months old.
    """

    key: str
    condition_keyword: str
    observation_label: str
    max_months: int
    severity: Severity
    missing_label: str
    missing_recommendation: str
    stale_label: str  # formatted with {months}
    stale_recommendation: str

    def evaluate(self, patient: Patient, resources: ResourceSet, today: date) -> CareGap | None:
        if not has_condition(resources.conditions, self.condition_keyword):
            return None

        latest = find_latest_observation(resources.observations, self.observation_label)
        if latest is None:
            return CareGap(
                id=f"gap-{self.key}-none",
                label=self.missing_label,
                severity=self.severity,
                recommendation=self.missing_recommendation,
            )

        months = _months_since(latest.effective, today)
        if months is not None and months > self.max_months:
            return CareGap(
                id=f"gap-{self.key}-stale",
                label=self.stale_label.format(months=months),
                severity=self.severity,
                recommendation=self.stale_recommendation,
                last_date=latest.effective,
                months=months,
            )
        return None


@dataclass(frozen=True)
class ScreeningRule:
    """Age/gender-based screening that must appear at least once on record."""

    key: str
    gender: Gender
    min_age: int
    max_age: int
    observation_label: str
    severity: Severity
    label: str
    recommendation: str

    def evaluate(self, patient: Patient, resources: ResourceSet, today: date) -> CareGap | None:
        if patient.gender != self.gender:
            return None
        age = calculate_age(patient.birth_date, today)
        if age is None or not self.min_age <= age <= self.max_age:
            return None
        if any(o.label == self.observation_label for o in resources.observations):
            return None
        return CareGap(
            id=f"gap-{self.key}-none",
            label=self.label,
            severity=self.severity,
            recommendation=self.recommendation,
        )


@dataclass(frozen=True)
class WellnessVisitRule:
    """Annual wellness visit, applies to every patient."""

    type_keyword: str = "annual"
    max_months: int = 12
    severity: Severity = Severity.LOW

    def evaluate(self, patient: Patient, resources: ResourceSet, today: date) -> CareGap | None:
        keyword = self.type_keyword.lower()
        visits = [
            e for e in resources.encounters
            if any(keyword in label.lower() for label in e.type_labels)
        ]
        latest = _latest(visits)
        if latest is None:
            return CareGap(
                id="gap-awv-none",
                label="No annual wellness visit on record",
                severity=self.severity,
                recommendation="Schedule an annual wellness visit.",
            )

        months = _months_since(latest.start, today)
        if months is not None and months > self.max_months:
            return CareGap(
                id="gap-awv-stale",
                label=f"Last annual wellness visit was {months} months ago",
                severity=self.severity,
                recommendation="Schedule next annual wellness visit.",
                last_date=latest.start,
                months=months,
            )
        return None


def build_rules(config: CareGapConfig | None = None) -> list[CareGapRule]:
    """Return the default rules in evaluation order."""
    config = config or CareGapConfig()
    return [
        MonitoringRule(
            key="a1c",
            condition_keyword="diabetes",
            observation_label=config.a1c_label,
            max_months=config.a1c_max_months,
            severity=Severity.HIGH,
            missing_label="No historical A1c found for diabetic patient",
            missing_recommendation="Order Hemoglobin A1c test.",
            stale_label="Last A1c was {months} months ago",
            stale_recommendation="Order repeat A1c; patient is overdue.",
        ),
        MonitoringRule(
            key="bp",
            condition_keyword="hyper",
            observation_label=config.bp_label,
            max_months=config.bp_max_months,
            severity=Severity.MEDIUM,
            missing_label="No blood pressure readings for hypertensive patient",
            missing_recommendation=(
                "Record blood pressure at next encounter or schedule a nurse visit."
            ),
            stale_label="Last BP was {months} months ago",
            stale_recommendation="Schedule follow-up BP check.",
        ),
        ScreeningRule(
            key="mammo",
            gender=Gender.FEMALE,
            min_age=config.mammogram_min_age,
            max_age=config.mammogram_max_age,
            observation_label=config.mammogram_label,
            severity=Severity.MEDIUM,
            label=(
                f"No mammogram on record "
                f"(age {config.mammogram_min_age}–{config.mammogram_max_age})"
            ),
            recommendation="Order screening mammogram.",
        ),
        WellnessVisitRule(
            type_keyword=config.awv_keyword,
            max_months=config.awv_max_months,
        ),
    ]


def evaluate_care_gaps(
    patient: Patient,
    resources: ResourceSet,
    today: date | None = None,
    rules: list[CareGapRule] | None = None,
) -> list[CareGap]:
    """Evaluate every rule in order and collect the gaps they report.

    Args:
        patient: The patient being evaluated.
        resources: The patient's related records.
        today: Evaluation date. Defaults to today.
        rules: Rules to apply. Defaults to build_rules().
    """
    today = today or date.today()
    rules = build_rules() if rules is None else rules
    gaps = []
    for rule in rules:
        gap = rule.evaluate(patient, resources, today)
        if gap is not None:
            gaps.append(gap)
    return gaps
