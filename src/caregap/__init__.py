"""caregap — Patient timelines and care gap detection from clinical records.

Accepts FHIR-style bundles and HL7 v2 result messages, normalizes them into a
canonical record model, and derives an event timeline and rule-based care gaps.
"""

__version__ = "0.3.0"
