"""FHIR R4 Bundle parser for canonical patient charts.

Only the fields consumed by the timeline and care gap rules are extracted.
Malformed or unrecognized resources are skipped rather than rejected.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from typing import Any

from caregap.core.errors import BundleParseError
from caregap.core.utils import parse_iso_date
from caregap.models import (
    Condition,
    Encounter,
    Gender,
    Immunization,
    Observation,
    Patient,
    PatientChart,
    Quantity,
    ResourceSet,
)


def load_fhir_bundle(filepath: str) -> PatientChart:
    """Read a FHIR Bundle JSON file and parse it with parse_fhir_bundle()."""
    with open(filepath) as f:
        bundle = json.load(f)
    return parse_fhir_bundle(bundle)


def extract_resources(bundle: Any) -> list[dict[str, Any]]:
    """Flatten bundle entries to resources that carry a resourceType.

    A missing or non-list ``entry`` is treated as empty.
    """
    if not isinstance(bundle, dict):
        return []
    entries = bundle.get("entry")
    if not isinstance(entries, list):
        return []
    resources = []
    for entry in entries:
        res = entry.get("resource") if isinstance(entry, dict) else None
        if isinstance(res, dict) and res.get("resourceType"):
            resources.append(res)
    return resources


def parse_fhir_bundle(bundle: dict[str, Any]) -> PatientChart:
    """Parse a FHIR Bundle into the first Patient and their related records.

    Raises BundleParseError when the bundle holds no Patient. When several
    Patients are present only the first one is used.
    """
    resources = extract_resources(bundle)
    patients = [r for r in resources if r["resourceType"] == "Patient"]
    if not patients:
        raise BundleParseError("No Patient resource found in bundle.")

    patient = parse_patient(patients[0])
    return PatientChart(patient=patient, resources=partition_resources(resources, patient.id))


def partition_resources(resources: Iterable[dict[str, Any]], patient_id: str) -> ResourceSet:
    """Collect the resources that reference Patient/<patient_id>.

    Immunizations match on either ``patient`` or ``subject``; the other
    types match on ``subject`` only.
    """
    ref = f"Patient/{patient_id}"
    conditions = []
    encounters = []
    observations = []
    immunizations = []
    for res in resources:
        rtype = res.get("resourceType")
        if rtype == "Condition" and _reference(res, "subject") == ref:
            conditions.append(parse_condition(res))
        elif rtype == "Encounter" and _reference(res, "subject") == ref:
            encounters.append(parse_encounter(res))
        elif rtype == "Observation" and _reference(res, "subject") == ref:
            observations.append(parse_observation(res))
        elif rtype == "Immunization" and ref in (
            _reference(res, "patient"),
            _reference(res, "subject"),
        ):
            immunizations.append(parse_immunization(res))
    return ResourceSet(
        conditions=tuple(conditions),
        encounters=tuple(encounters),
        observations=tuple(observations),
        immunizations=tuple(immunizations),
    )


def _str(value: Any) -> str:
    """Value when it is a string, else ""; wrong-typed scalars count as missing."""
    return value if isinstance(value, str) else ""


def _reference(res: dict, key: str) -> str:
    target = res.get(key)
    if isinstance(target, dict):
        return _str(target.get("reference"))
    return ""


def _first(items: Any) -> dict:
    if isinstance(items, list) and items and isinstance(items[0], dict):
        return items[0]
    return {}


def _codings(concept: Any) -> list[dict]:
    if not isinstance(concept, dict):
        return []
    codings = concept.get("coding")
    if not isinstance(codings, list):
        return []
    return [c for c in codings if isinstance(c, dict)]


def _concept_text(concept: Any) -> str:
    """Text of a CodeableConcept, falling back to its first coding display."""
    if not isinstance(concept, dict):
        return ""
    text = _str(concept.get("text"))
    if text:
        return text
    return _str(_first(_codings(concept)).get("display"))


def parse_patient(p: dict) -> Patient:
    patient_id = str(p.get("id", "") or "")
    if not patient_id:
        raise BundleParseError("Patient resource has no id.")
    name = _first(p.get("name"))
    given = name.get("given")
    return Patient(
        id=patient_id,
        given_name=_str(given[0]) if isinstance(given, list) and given else "",
        family_name=_str(name.get("family")),
        gender=Gender.parse(p.get("gender")),
        birth_date=parse_iso_date(_str(p.get("birthDate"))),
    )


def parse_condition(cond: dict) -> Condition:
    code = cond.get("code", {})
    displays = tuple(_str(c.get("display")) for c in _codings(code) if _str(c.get("display")))

    cs = cond.get("clinicalStatus", {})
    clinical_status = _str(cs.get("text")) if isinstance(cs, dict) else ""
    if not clinical_status:
        clinical_status = _str(_first(_codings(cs)).get("code"))

    return Condition(
        id=str(cond.get("id", "")),
        subject=_reference(cond, "subject"),
        display=displays[0] if displays else _concept_text(code),
        coded_displays=displays,
        clinical_status=clinical_status,
    )


def parse_encounter(enc: dict) -> Encounter:
    period = enc.get("period", {})
    start = _str(period.get("start")) if isinstance(period, dict) else ""
    types = enc.get("type", [])
    if not isinstance(types, list):
        types = []
    labels = tuple(t["text"] for t in types if isinstance(t, dict) and _str(t.get("text")))
    return Encounter(
        id=str(enc.get("id", "")),
        subject=_reference(enc, "subject"),
        start=parse_iso_date(start),
        type_labels=labels,
    )


def parse_observation(obs: dict) -> Observation:
    value: str | Quantity | None = None
    if isinstance(obs.get("valueQuantity"), dict):
        vq = obs["valueQuantity"]
        if isinstance(vq.get("value"), (int, float)) and not isinstance(vq["value"], bool):
            value = Quantity(value=vq["value"], unit=_str(vq.get("unit")))
    elif isinstance(obs.get("valueString"), str):
        value = obs["valueString"]
    elif isinstance(obs.get("valueCodeableConcept"), dict):
        value = _concept_text(obs["valueCodeableConcept"])

    eff_dt = _str(obs.get("effectiveDateTime"))
    if not eff_dt:
        period = obs.get("effectivePeriod", {})
        eff_dt = _str(period.get("start")) if isinstance(period, dict) else ""

    return Observation(
        id=str(obs.get("id", "")),
        subject=_reference(obs, "subject"),
        effective=parse_iso_date(eff_dt),
        label=_concept_text(obs.get("code", {})),
        value=value,
    )


def parse_immunization(imm: dict) -> Immunization:
    return Immunization(
        id=str(imm.get("id", "")),
        patient=_reference(imm, "patient") or _reference(imm, "subject"),
        occurrence=parse_iso_date(_str(imm.get("occurrenceDateTime"))),
        vaccine=_concept_text(imm.get("vaccineCode", {})),
    )
