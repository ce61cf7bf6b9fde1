"""Tests for caregap.mcp.server tools.

Tests the tool functions directly (not via MCP protocol).
"""

import json

import pytest

from caregap.repository import ChartRepository
from caregap.seed import load_seed


@pytest.fixture
def srv(monkeypatch):
    """MCP server module with a fresh seed-only repository."""
    import caregap.mcp.server as srv

    monkeypatch.setattr(srv, "_repo", ChartRepository.from_seed(load_seed()))
    yield srv


class TestListPatients:
    def test_seed_patients(self, srv):
        patients = srv.list_patients()
        assert [p["id"] for p in patients] == ["patient-1", "patient-2"]
        assert patients[0]["name"] == "Jane Doe"
        assert patients[0]["gender"] == "female"
        assert not patients[0]["uploaded"]


class TestPatientSummary:
    def test_summary(self, srv):
        summary = srv.get_patient_summary("patient-1")
        assert summary["name"] == "Jane Doe"
        assert summary["counts"]["observations"] == 3
        assert summary["conditions"][0]["display"] == "Diabetes mellitus type 2"

    def test_unknown(self, srv):
        assert srv.get_patient_summary("nobody").startswith("Error:")


class TestCareGaps:
    def test_gaps_as_of(self, srv):
        gaps = srv.get_care_gaps("patient-1", as_of="2026-10-19")
        assert [g["id"] for g in gaps] == [
            "gap-a1c-stale", "gap-bp-stale", "gap-mammo-none", "gap-awv-stale",
        ]
        assert gaps[0]["severity"] == "high"

    def test_invalid_date(self, srv):
        assert srv.get_care_gaps("patient-1", as_of="soon").startswith("Error:")

    def test_unknown_patient(self, srv):
        assert srv.get_care_gaps("nobody").startswith("Error:")


class TestTimeline:
    def test_all_events(self, srv):
        events = srv.get_timeline("patient-1")
        assert len(events) == 6
        assert events[0]["date"] == "2022-01-10"

    def test_filtered(self, srv):
        events = srv.get_timeline("patient-1", start_date="2023-01-01", event_types="encounter")
        assert [e["id"] for e in events] == ["enc-enc-2", "enc-enc-1"]


class TestIngestUpload:
    def test_bundle(self, srv, sample_bundle):
        result = srv.ingest_upload(json.dumps(sample_bundle))
        assert result["kind"] == "bundle"
        assert result["patient"]["id"] == "up-1"
        assert srv.list_patients()[-1]["uploaded"]

    def test_hl7(self, srv, a1c_message):
        result = srv.ingest_upload(a1c_message, patient_id="patient-2")
        assert result["kind"] == "observation"
        assert result["observation"]["effective"] == "2025-02-01"
        assert len(srv.get_timeline("patient-2")) == 1

    def test_failure_keeps_state(self, srv, a1c_message):
        srv.ingest_upload(a1c_message, patient_id="patient-2")
        result = srv.ingest_upload("PID|1||x", patient_id="patient-2")
        assert result.startswith("Error:")
        assert len(srv.get_timeline("patient-2")) == 1
