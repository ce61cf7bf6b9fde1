"""Seed dataset — sample patients available before anything is uploaded."""

from __future__ import annotations

import json
from importlib import resources
from typing import Any

from caregap.core.fhir import extract_resources, parse_patient, partition_resources
from caregap.models import PatientChart


def _read_seed(path: str | None) -> Any:
    if path:
        with open(path) as f:
            return json.load(f)
    text = resources.files("caregap").joinpath("data/seed_bundle.json").read_text()
    return json.loads(text)


def load_seed(path: str | None = None) -> dict[str, PatientChart]:
    """Load every patient in a FHIR-shaped seed document, keyed by patient id.

    Unlike an uploaded bundle, a seed document may hold many patients; each
    one gets the resources that reference it. Defaults to the bundled sample
    dataset.
    """
    all_resources = extract_resources(_read_seed(path))
    charts: dict[str, PatientChart] = {}
    for res in all_resources:
        if res["resourceType"] != "Patient":
            continue
        patient = parse_patient(res)
        if patient.id in charts:
            continue
        charts[patient.id] = PatientChart(
            patient=patient,
            resources=partition_resources(all_resources, patient.id),
        )
    return charts
