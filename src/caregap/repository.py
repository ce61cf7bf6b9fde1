"""Patient chart repository — immutable snapshots of all loaded records.

The repository holds the seed charts, at most one uploaded chart, and the
HL7 observations ingested per patient. Ingestion never mutates a snapshot:
it returns a new ChartRepository, and a failed ingestion raises before
anything is built, so the caller's snapshot is left as it was.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from datetime import date
from types import MappingProxyType
from typing import Mapping

from caregap.analysis.care_gaps import CareGapRule, evaluate_care_gaps
from caregap.analysis.timeline import build_timeline
from caregap.core.errors import IngestError
from caregap.core.fhir import parse_fhir_bundle
from caregap.core.hl7 import parse_hl7_observation
from caregap.models import CareGap, Observation, Patient, PatientChart, ResourceSet, TimelineEvent


def _frozen(mapping: Mapping) -> Mapping:
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True)
class ChartRepository:
    seed: Mapping[str, PatientChart] = field(default_factory=dict)
    uploaded: PatientChart | None = None
    ingested: Mapping[str, tuple[Observation, ...]] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "seed", _frozen(self.seed))
        object.__setattr__(self, "ingested", _frozen(self.ingested))

    @classmethod
    def from_seed(cls, charts: Mapping[str, PatientChart]) -> ChartRepository:
        return cls(seed=charts)

    # --- views ---

    def patients(self) -> list[Patient]:
        """Seed patients, then the uploaded patient if its id is new."""
        patients = [chart.patient for chart in self.seed.values()]
        if self.uploaded and self.uploaded.patient.id not in self.seed:
            patients.append(self.uploaded.patient)
        return patients

    def has_patient(self, patient_id: str) -> bool:
        return patient_id in self.seed or (
            self.uploaded is not None and self.uploaded.patient.id == patient_id
        )

    def _base_chart(self, patient_id: str) -> PatientChart:
        if self.uploaded and self.uploaded.patient.id == patient_id:
            return self.uploaded
        if patient_id in self.seed:
            return self.seed[patient_id]
        raise KeyError(patient_id)

    def patient(self, patient_id: str) -> Patient:
        """Look up a patient; the uploaded chart wins over a seed chart."""
        return self._base_chart(patient_id).patient

    def resources(self, patient_id: str) -> ResourceSet:
        """Active records for a patient, with ingested observations appended."""
        base = self._base_chart(patient_id).resources
        extra = self.ingested.get(patient_id, ())
        if not extra:
            return base
        return replace(base, observations=base.observations + extra)

    def chart(self, patient_id: str) -> PatientChart:
        return PatientChart(patient=self.patient(patient_id), resources=self.resources(patient_id))

    def gaps(
        self,
        patient_id: str,
        today: date | None = None,
        rules: list[CareGapRule] | None = None,
    ) -> list[CareGap]:
        return evaluate_care_gaps(
            self.patient(patient_id), self.resources(patient_id), today=today, rules=rules
        )

    def timeline(self, patient_id: str, **filters) -> list[TimelineEvent]:
        return build_timeline(self.resources(patient_id), **filters)

    # --- ingestion ---

    def ingest_bundle(self, bundle: dict) -> tuple[ChartRepository, PatientChart]:
        """Parse a FHIR bundle and make it the uploaded chart.

        Raises BundleParseError; self is unchanged either way.
        """
        chart = parse_fhir_bundle(bundle)
        return replace(self, uploaded=chart), chart

    def ingest_message(
        self, hl7_text: str, patient_id: str, today: date | None = None
    ) -> tuple[ChartRepository, Observation]:
        """Parse an HL7 message and add its observation to patient_id's records.

        Raises IngestError for an unknown patient, MessageParseError for an
        unparseable message.
        """
        if not patient_id:
            raise IngestError("No patient id given for HL7 message.")
        if not self.has_patient(patient_id):
            raise IngestError(f"Unknown patient: {patient_id}")
        obs = parse_hl7_observation(hl7_text, patient_id, today=today)
        ingested = dict(self.ingested)
        ingested[patient_id] = ingested.get(patient_id, ()) + (obs,)
        return replace(self, ingested=ingested), obs

    def ingest_text(
        self, text: str, patient_id: str, today: date | None = None
    ) -> tuple[ChartRepository, PatientChart | Observation]:
        """Ingest an uploaded file's text, whatever its format.

        JSON with resourceType "Bundle" is loaded as a FHIR bundle; anything
        else is parsed as an HL7 message for patient_id.
        """
        try:
            doc = json.loads(text)
        except (ValueError, TypeError):
            doc = None
        if isinstance(doc, dict) and doc.get("resourceType") == "Bundle":
            return self.ingest_bundle(doc)
        return self.ingest_message(text, patient_id, today=today)
