"""MCP server for caregap — Claude reviews patient timelines and care gaps.

Run with: caregap serve-mcp
Configure env: CAREGAP_CONFIG=/path/to/caregap.toml
               CAREGAP_UPLOAD=/path/to/bundle.json (optional, loaded at startup)
"""

from __future__ import annotations

import os
from datetime import date

from mcp.server.fastmcp import FastMCP

from caregap.analysis.care_gaps import build_rules
from caregap.config import load_config
from caregap.core.errors import IngestError
from caregap.core.fhir import load_fhir_bundle
from caregap.core.utils import calculate_age
from caregap.models import PatientChart, to_dict
from caregap.repository import ChartRepository
from caregap.seed import load_seed

CONFIG_PATH = os.environ.get("CAREGAP_CONFIG", "caregap.toml")
UPLOAD_PATH = os.environ.get("CAREGAP_UPLOAD", "")

mcp = FastMCP(
    "caregap",
    instructions=(
        "Patient care gap server. Holds sample patients plus any uploaded FHIR bundle "
        "and HL7 result messages.\n\n"
        "Key capabilities:\n"
        "- list_patients / get_patient_summary: Demographics and record counts\n"
        "- get_care_gaps: Rule-detected missing or overdue care with recommendations\n"
        "- get_timeline: Encounters, observations and immunizations in date order\n"
        "- ingest_upload: Load a FHIR bundle (JSON text) or attach an HL7 v2 result "
        "message to a patient\n\n"
        "Start with list_patients. Gaps and timeline reflect every successful ingestion."
    ),
)


def _initial_repository(config: dict) -> ChartRepository:
    seed = load_seed(config["seed"]["path"] or None)
    uploaded = load_fhir_bundle(UPLOAD_PATH) if UPLOAD_PATH else None
    return ChartRepository(seed=seed, uploaded=uploaded)


_config = load_config(CONFIG_PATH)
_repo = _initial_repository(_config)


@mcp.tool()
def list_patients() -> list[dict]:
    """List every available patient (sample patients plus the uploaded one)."""
    uploaded_id = _repo.uploaded.patient.id if _repo.uploaded else None
    return [
        {
            "id": p.id,
            "name": p.display_name,
            "gender": p.gender.value,
            "birth_date": p.birth_date,
            "uploaded": p.id == uploaded_id,
        }
        for p in _repo.patients()
    ]


@mcp.tool()
def get_patient_summary(patient_id: str) -> dict | str:
    """Demographics, age, conditions and record counts for one patient."""
    if not _repo.has_patient(patient_id):
        return f"Error: unknown patient '{patient_id}'"
    patient = _repo.patient(patient_id)
    resources = _repo.resources(patient_id)
    return {
        "patient": to_dict(patient),
        "name": patient.display_name,
        "age": calculate_age(patient.birth_date),
        "conditions": [
            {"display": c.display or "Condition", "clinical_status": c.clinical_status}
            for c in resources.conditions
        ],
        "counts": resources.counts(),
    }


@mcp.tool()
def get_care_gaps(patient_id: str, as_of: str = "") -> list[dict] | str:
    """Evaluate care gap rules for a patient.

    Args:
        patient_id: Patient id from list_patients.
        as_of: ISO date to evaluate against. Empty = today.
    """
    if not _repo.has_patient(patient_id):
        return f"Error: unknown patient '{patient_id}'"
    try:
        today = date.fromisoformat(as_of) if as_of else None
    except ValueError:
        return f"Error: invalid as_of date '{as_of}'"
    gaps = _repo.gaps(patient_id, today=today, rules=build_rules(_config["care_gaps"]))
    return [to_dict(g) for g in gaps]


@mcp.tool()
def get_timeline(
    patient_id: str,
    start_date: str = "",
    end_date: str = "",
    event_types: str = "",
) -> list[dict] | str:
    """Get a patient's event timeline in ascending date order.

    Args:
        patient_id: Patient id from list_patients.
        start_date: ISO date filter.
        end_date: ISO date filter.
        event_types: Comma-separated kinds to include: encounter, observation,
            immunization. Empty = all kinds.
    """
    if not _repo.has_patient(patient_id):
        return f"Error: unknown patient '{patient_id}'"
    kinds = [t for t in event_types.split(",") if t.strip()] if event_types else None
    events = _repo.timeline(patient_id, start_date=start_date, end_date=end_date, kinds=kinds)
    return [to_dict(e) for e in events]


@mcp.tool()
def ingest_upload(content: str, patient_id: str = "") -> dict | str:
    """Ingest uploaded file content.

    A JSON FHIR Bundle becomes the uploaded patient; any other text is parsed
    as an HL7 v2 message and its OBX result is added to patient_id.
    A failed ingestion leaves all previously loaded data unchanged.
    """
    global _repo
    try:
        repo, result = _repo.ingest_text(content, patient_id)
    except IngestError as e:
        return f"Error: {e}"
    _repo = repo
    if isinstance(result, PatientChart):
        return {
            "kind": "bundle",
            "patient": to_dict(result.patient),
            "counts": result.resources.counts(),
        }
    return {"kind": "observation", "observation": to_dict(result)}


if __name__ == "__main__":
    mcp.run()
