"""Errors raised when an upload cannot be turned into canonical records."""


class IngestError(ValueError):
    """An ingestion attempt failed; no partial result was produced."""


class BundleParseError(IngestError):
    """A FHIR bundle could not be parsed (e.g. it has no Patient)."""


class MessageParseError(IngestError):
    """An HL7 message could not be parsed (e.g. it has no OBX segment)."""
