"""Core utilities for FHIR bundle and HL7 message parsing."""

from caregap.core.errors import BundleParseError, IngestError, MessageParseError
from caregap.core.fhir import load_fhir_bundle, parse_fhir_bundle
from caregap.core.hl7 import parse_hl7_observation
from caregap.core.utils import (
    calculate_age,
    date_parts,
    format_display_date,
    hl7_date_to_iso,
    months_between,
    parse_iso_date,
)
