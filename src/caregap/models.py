"""Canonical record model shared by every input source.

FHIR bundles, HL7 messages and the seed dataset are all normalized into these
frozen dataclasses. Derived artifacts (TimelineEvent, CareGap) are rebuilt on
every request and never mutated.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any


class Gender(str, Enum):
    FEMALE = "female"
    MALE = "male"
    OTHER = "other"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: str | None) -> Gender:
        """Map a FHIR administrative gender code; anything else is UNKNOWN."""
        if not isinstance(value, str):
            return cls.UNKNOWN
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.UNKNOWN


class Severity(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class Patient:
    """Patient demographics."""

    id: str
    given_name: str = ""
    family_name: str = ""
    gender: Gender = Gender.UNKNOWN
    birth_date: str = ""  # ISO YYYY-MM-DD

    def __post_init__(self):
        if not self.id:
            raise ValueError("Patient id must be non-empty")

    @property
    def reference(self) -> str:
        return f"Patient/{self.id}"

    @property
    def display_name(self) -> str:
        return f"{self.given_name} {self.family_name}".strip() or "Unknown"


@dataclass(frozen=True)
class Condition:
    """A clinical condition / diagnosis."""

    id: str
    subject: str = ""  # "Patient/<id>"
    display: str = ""
    coded_displays: tuple[str, ...] = ()  # every coding display, used by rules
    clinical_status: str = ""  # active, resolved, inactive


@dataclass(frozen=True)
class Encounter:
    """A clinical encounter (visit, admission, etc.)."""

    id: str
    subject: str = ""
    start: str = ""  # ISO YYYY-MM-DD
    type_labels: tuple[str, ...] = ()

    @property
    def type_label(self) -> str:
        return self.type_labels[0] if self.type_labels else ""


@dataclass(frozen=True)
class Quantity:
    """A numeric value with its unit."""

    value: float
    unit: str = ""

    def __str__(self) -> str:
        value = f"{self.value:g}" if isinstance(self.value, float) else str(self.value)
        return f"{value} {self.unit}".strip()


@dataclass(frozen=True)
class Observation:
    """A single measurement (lab result, vital sign, screening study)."""

    id: str
    subject: str = ""
    effective: str = ""  # ISO YYYY-MM-DD, when the measurement was taken
    label: str = ""
    value: str | Quantity | None = None  # free text or numeric quantity

    @property
    def display_value(self) -> str:
        if self.value is None:
            return ""
        return str(self.value)


@dataclass(frozen=True)
class Immunization:
    """A vaccination record."""

    id: str
    patient: str = ""  # "Patient/<id>"
    occurrence: str = ""  # ISO YYYY-MM-DD
    vaccine: str = ""


@dataclass(frozen=True)
class ResourceSet:
    """All related records for one patient."""

    conditions: tuple[Condition, ...] = ()
    encounters: tuple[Encounter, ...] = ()
    observations: tuple[Observation, ...] = ()
    immunizations: tuple[Immunization, ...] = ()

    def with_observation(self, observation: Observation) -> ResourceSet:
        """Return a copy with observation appended."""
        return replace(self, observations=self.observations + (observation,))

    def counts(self) -> dict[str, int]:
        return {
            "conditions": len(self.conditions),
            "encounters": len(self.encounters),
            "observations": len(self.observations),
            "immunizations": len(self.immunizations),
        }


@dataclass(frozen=True)
class PatientChart:
    """A patient together with their resource set."""

    patient: Patient
    resources: ResourceSet = field(default_factory=ResourceSet)


@dataclass(frozen=True)
class TimelineEvent:
    id: str  # namespaced by kind: enc-*, obs-*, imm-*
    date: str
    kind: str  # Encounter, Observation, Immunization
    label: str


@dataclass(frozen=True)
class CareGap:
    """A rule-detected omission or staleness in a patient's care history."""

    id: str  # stable per rule, e.g. "gap-a1c-stale"
    label: str
    severity: Severity
    recommendation: str
    last_date: str | None = None
    months: int | None = None  # elapsed months, stale gaps only


def _dict_factory(items: list[tuple[str, Any]]) -> dict[str, Any]:
    return {k: (v.value if isinstance(v, Enum) else v) for k, v in items}


def to_dict(record: Any) -> dict[str, Any]:
    """Convert a canonical record or derived artifact to a JSON-ready dict."""
    return asdict(record, dict_factory=_dict_factory)
