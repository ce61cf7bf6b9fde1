"""HL7 v2 result message parser.

Maps the first OBX segment of a message onto a single canonical Observation:

    MSH|^~\\&|LAB|HOSP|||20250201101500||ORU^R01|123|P|2.5
    OBX|1|NM|4548-4^HBA1C^Hemoglobin A1c||6.7|%|||||F|||20250201101500

Only OBX-3 (code), OBX-5 (value), OBX-6 (unit), OBX-14 (observation time)
and MSH-7 (message time) are read. Nothing is validated beyond the presence
of an OBX segment.
"""

from __future__ import annotations

import uuid
from datetime import date

from caregap.core.errors import MessageParseError
from caregap.core.utils import hl7_date_to_iso
from caregap.models import Observation

DEFAULT_LABEL = "HL7 Observation"

# Positions after splitting on "|". MSH-1 is the separator itself, so
# MSH-7 lands at index 6 while OBX-n lands at index n.
OBX_CODE = 3
OBX_VALUE = 5
OBX_UNITS = 6
OBX_DATETIME = 14
MSH_DATETIME = 6


def _field(fields: list[str], index: int) -> str:
    return fields[index] if index < len(fields) else ""


def _code_label(code_field: str) -> str:
    """Most specific coded term: the last non-empty ^ component."""
    parts = [p for p in code_field.split("^") if p]
    if parts:
        return parts[-1]
    return code_field or DEFAULT_LABEL


def parse_hl7_observation(
    hl7_text: str, patient_id: str, today: date | None = None
) -> Observation:
    """Parse an HL7 v2 message into an Observation for patient_id.

    The effective date comes from OBX-14, then MSH-7, then today.

    Raises MessageParseError for an empty message or one without OBX.
    """
    if not hl7_text or not hl7_text.strip():
        raise MessageParseError("Empty HL7 message.")

    lines = [line.strip() for line in hl7_text.splitlines()]
    lines = [line for line in lines if line]

    msh_line = next((line for line in lines if line.startswith("MSH")), None)
    obx_line = next((line for line in lines if line.startswith("OBX|")), None)
    if obx_line is None:
        raise MessageParseError("No OBX segment found in HL7 message.")

    obx = obx_line.split("|")
    value = _field(obx, OBX_VALUE)
    units = _field(obx, OBX_UNITS)

    effective = hl7_date_to_iso(_field(obx, OBX_DATETIME))
    if not effective and msh_line:
        effective = hl7_date_to_iso(_field(msh_line.split("|"), MSH_DATETIME))
    if not effective:
        effective = (today or date.today()).isoformat()

    return Observation(
        id=f"hl7-obs-{uuid.uuid4().hex}",
        subject=f"Patient/{patient_id}",
        effective=effective,
        label=_code_label(_field(obx, OBX_CODE)),
        value=f"{value} {units}" if value and units else (value or None),
    )
