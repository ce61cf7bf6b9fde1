"""Shared test fixtures for caregap tests."""

from datetime import date

import pytest

from caregap.models import (
    Condition,
    Encounter,
    Gender,
    Immunization,
    Observation,
    Patient,
    Quantity,
    ResourceSet,
)
from caregap.repository import ChartRepository
from caregap.seed import load_seed

TODAY = date(2026, 10, 19)


@pytest.fixture
def today():
    """Fixed evaluation date so month/age arithmetic is deterministic."""
    return TODAY


@pytest.fixture
def patient():
    return Patient(
        id="p1",
        given_name="Jane",
        family_name="Doe",
        gender=Gender.FEMALE,
        birth_date="1965-04-12",
    )


@pytest.fixture
def male_patient():
    return Patient(id="p2", given_name="John", family_name="Smith", gender=Gender.MALE,
                   birth_date="1978-09-02")


@pytest.fixture
def diabetic_resources():
    """Diabetic + hypertensive patient with current monitoring and AWV."""
    return ResourceSet(
        conditions=(
            Condition(id="c1", subject="Patient/p1", display="Diabetes mellitus type 2",
                      coded_displays=("Diabetes mellitus type 2",), clinical_status="active"),
            Condition(id="c2", subject="Patient/p1", display="Hypertensive disorder",
                      coded_displays=("Hypertensive disorder",), clinical_status="active"),
        ),
        encounters=(
            Encounter(id="e1", subject="Patient/p1", start="2026-03-01",
                      type_labels=("Annual wellness visit",)),
        ),
        observations=(
            Observation(id="o1", subject="Patient/p1", effective="2026-06-01",
                        label="Hemoglobin A1c", value=Quantity(6.9, "%")),
            Observation(id="o2", subject="Patient/p1", effective="2026-09-15",
                        label="Blood pressure", value="128/80"),
            Observation(id="o3", subject="Patient/p1", effective="2025-11-02",
                        label="Mammogram", value="BI-RADS 1"),
        ),
    )


@pytest.fixture
def sample_bundle():
    """FHIR Bundle with one patient, related records, and noise."""
    return {
        "resourceType": "Bundle",
        "type": "collection",
        "entry": [
            {
                "resource": {
                    "resourceType": "Patient",
                    "id": "up-1",
                    "name": [{"given": ["Maria", "L"], "family": "Garcia"}],
                    "gender": "female",
                    "birthDate": "1970-02-14",
                }
            },
            {
                "resource": {
                    "resourceType": "Condition",
                    "id": "c-1",
                    "subject": {"reference": "Patient/up-1"},
                    "code": {"coding": [{"system": "http://snomed.info/sct",
                                         "display": "Type 2 diabetes mellitus"}]},
                    "clinicalStatus": {"coding": [{"code": "active"}]},
                }
            },
            {
                "resource": {
                    "resourceType": "Encounter",
                    "id": "e-1",
                    "subject": {"reference": "Patient/up-1"},
                    "period": {"start": "2026-01-20T09:30:00-05:00"},
                    "type": [{"text": "Annual physical"}],
                }
            },
            {
                "resource": {
                    "resourceType": "Observation",
                    "id": "o-1",
                    "subject": {"reference": "Patient/up-1"},
                    "effectiveDateTime": "2025-08-01",
                    "code": {"text": "Hemoglobin A1c"},
                    "valueQuantity": {"value": 7.1, "unit": "%"},
                }
            },
            {
                "resource": {
                    "resourceType": "Immunization",
                    "id": "i-1",
                    "subject": {"reference": "Patient/up-1"},
                    "occurrenceDateTime": "2025-10-05",
                    "vaccineCode": {"coding": [{"display": "COVID-19 vaccine"}]},
                }
            },
            {
                "resource": {
                    "resourceType": "Observation",
                    "id": "o-other",
                    "subject": {"reference": "Patient/someone-else"},
                    "effectiveDateTime": "2025-08-01",
                    "code": {"text": "Hemoglobin A1c"},
                }
            },
            {"resource": {"resourceType": "Practitioner", "id": "dr-1"}},
            {"resource": {"id": "no-type"}},
            {"fullUrl": "urn:uuid:missing-resource"},
        ],
    }


@pytest.fixture
def a1c_message():
    return (
        "MSH|^~\\&|LAB|HOSP|EHR|CLINIC|20250203080000||ORU^R01|MSG0001|P|2.5\n"
        "PID|1||p1||Doe^Jane\n"
        "OBR|1|||4548-4^HBA1C^Hemoglobin A1c\n"
        "OBX|1|NM|4548-4^HBA1C^Hemoglobin A1c||6.7|%|4.0-5.6|H|||F|||20250201101500\n"
    )


@pytest.fixture
def seed_repo():
    """Repository loaded with the bundled sample patients."""
    return ChartRepository.from_seed(load_seed())


@pytest.fixture
def flu_shot():
    return Immunization(id="i1", patient="Patient/p1", occurrence="2025-10-01",
                        vaccine="Influenza, seasonal")
