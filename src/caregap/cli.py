#!/usr/bin/env python3
"""CLI entry point for caregap package.

Usage:
    caregap patients [--seed seed.json] [--upload FILE ...] [--patient <patient_id>]
    caregap gaps <patient_id> [--upload FILE ...] [--as-of YYYY-MM-DD] [--json]
    caregap timeline <patient_id> [--upload FILE ...] [--start] [--end] [--json]
    caregap parse-message <file> --patient <patient_id>
    caregap init-config [--output caregap.toml]
    caregap serve-mcp [--config caregap.toml] [--upload FILE]
"""

import argparse
import json
import sys
from datetime import date

from caregap.core.errors import IngestError

DEFAULT_CONFIG = "caregap.toml"


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="caregap",
        description="Build patient timelines and detect care gaps from FHIR bundles and HL7 messages.",
    )
    sub = parser.add_subparsers(dest="command")

    def add_source_args(p):
        p.add_argument("--config", default=DEFAULT_CONFIG, help="Path to caregap.toml config file")
        p.add_argument("--seed", default="", help="Seed dataset JSON (default: bundled sample patients)")
        p.add_argument(
            "--upload",
            action="append",
            default=[],
            help="FHIR bundle (.json) or HL7 message file to ingest; repeatable, applied in order",
        )

    # --- patients ---
    patients_parser = sub.add_parser("patients", help="List available patients")
    patients_parser.add_argument("--patient", default="", help="Patient id that HL7 uploads are attached to")
    add_source_args(patients_parser)

    # --- gaps ---
    gaps_parser = sub.add_parser("gaps", help="Show care gaps for a patient")
    gaps_parser.add_argument("patient_id", help="Patient id (HL7 uploads are attached to this patient)")
    gaps_parser.add_argument("--as-of", default="", help="Evaluate as of this ISO date (default: today)")
    gaps_parser.add_argument("--json", action="store_true", help="Print JSON instead of a table")
    add_source_args(gaps_parser)

    # --- timeline ---
    timeline_parser = sub.add_parser("timeline", help="Show a patient's clinical timeline")
    timeline_parser.add_argument("patient_id", help="Patient id")
    timeline_parser.add_argument("--start", default="", help="Only events on or after this ISO date")
    timeline_parser.add_argument("--end", default="", help="Only events on or before this ISO date")
    timeline_parser.add_argument(
        "--kinds", default="", help="Comma-separated kinds: encounter, observation, immunization"
    )
    timeline_parser.add_argument("--json", action="store_true", help="Print JSON instead of a table")
    add_source_args(timeline_parser)

    # --- parse-message ---
    message_parser = sub.add_parser("parse-message", help="Map an HL7 message to an Observation")
    message_parser.add_argument("file", help="HL7 v2 message file")
    message_parser.add_argument("--patient", required=True, help="Patient id for the observation")

    # --- init-config ---
    config_parser = sub.add_parser("init-config", help="Write a caregap.toml with default settings")
    config_parser.add_argument("--output", default=DEFAULT_CONFIG, help="Config file output path")

    # --- serve-mcp ---
    mcp_parser = sub.add_parser("serve-mcp", help="Start MCP server for Claude integration")
    mcp_parser.add_argument("--config", default=DEFAULT_CONFIG, help="Path to caregap.toml config file")
    mcp_parser.add_argument("--upload", default="", help="FHIR bundle to load at startup")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    if args.command == "patients":
        _handle_patients(args)
    elif args.command == "gaps":
        _handle_gaps(args)
    elif args.command == "timeline":
        _handle_timeline(args)
    elif args.command == "parse-message":
        _handle_parse_message(args)
    elif args.command == "init-config":
        _handle_init_config(args)
    elif args.command == "serve-mcp":
        _handle_serve_mcp(args)


def _fail(message: str):
    print(f"Error: {message}", file=sys.stderr)
    sys.exit(1)


def _build_repository(args, patient_id: str = ""):
    """Load seed data then apply each --upload in order."""
    from caregap.config import load_config
    from caregap.repository import ChartRepository
    from caregap.seed import load_seed

    config = load_config(args.config)
    repo = ChartRepository.from_seed(load_seed(args.seed or config["seed"]["path"] or None))

    for path in args.upload:
        try:
            with open(path) as f:
                text = f.read()
        except OSError as e:
            _fail(f"cannot read {path}: {e}")
        try:
            repo, result = repo.ingest_text(text, patient_id)
        except IngestError as e:
            _fail(f"{path}: {e}")
        print(f"Ingested {path} ({type(result).__name__})", file=sys.stderr)

    return repo, config


def _require_patient(repo, patient_id: str):
    if not repo.has_patient(patient_id):
        _fail(f"unknown patient '{patient_id}'")


def _handle_patients(args):
    from caregap.core.utils import calculate_age

    repo, _ = _build_repository(args, args.patient)
    uploaded_id = repo.uploaded.patient.id if repo.uploaded else None

    print(f"\n{'ID':<20}  {'Name':<30}  {'Gender':<8}  {'Age':>4}")
    print(f"{'─'*20}  {'─'*30}  {'─'*8}  {'─'*4}")
    for p in repo.patients():
        age = calculate_age(p.birth_date)
        name = p.display_name + (" (uploaded)" if p.id == uploaded_id else "")
        print(f"{p.id:<20}  {name[:30]:<30}  {p.gender.value:<8}  {age if age is not None else '':>4}")

    print(f"\n({len(repo.patients())} patients)")


def _handle_gaps(args):
    from caregap.analysis.care_gaps import build_rules
    from caregap.core.utils import format_display_date
    from caregap.models import to_dict

    try:
        today = date.fromisoformat(args.as_of) if args.as_of else None
    except ValueError:
        _fail(f"invalid --as-of date '{args.as_of}'")

    repo, config = _build_repository(args, args.patient_id)
    _require_patient(repo, args.patient_id)
    gaps = repo.gaps(args.patient_id, today=today, rules=build_rules(config["care_gaps"]))

    if args.json:
        print(json.dumps([to_dict(g) for g in gaps], indent=2))
        return

    patient = repo.patient(args.patient_id)
    print(f"\n{'='*60}")
    print(f"Care Gaps: {patient.display_name} ({patient.id})")
    print(f"{'='*60}")
    if not gaps:
        print("  No care gaps identified based on current rules.")
        return
    for g in gaps:
        print(f"\n  [{g.severity.value.upper():<6}] {g.label}")
        if g.last_date:
            print(f"           Last date on record: {format_display_date(g.last_date)}")
        print(f"           -> {g.recommendation}")
    print(f"\n({len(gaps)} gaps)")


def _handle_timeline(args):
    from caregap.core.utils import format_display_date
    from caregap.models import to_dict

    repo, _ = _build_repository(args, args.patient_id)
    _require_patient(repo, args.patient_id)
    kinds = [k for k in args.kinds.split(",") if k.strip()] if args.kinds else None
    events = repo.timeline(args.patient_id, start_date=args.start, end_date=args.end, kinds=kinds)

    if args.json:
        print(json.dumps([to_dict(e) for e in events], indent=2))
        return

    if not events:
        print("No events recorded.")
        return

    print(f"\n{'Date':<12}  {'Type':<13}  {'Event':<45}")
    print(f"{'─'*12}  {'─'*13}  {'─'*45}")
    for e in events:
        print(f"{format_display_date(e.date):<12}  {e.kind:<13}  {e.label[:45]:<45}")
    print(f"\n({len(events)} events)")


def _handle_parse_message(args):
    from caregap.core.hl7 import parse_hl7_observation
    from caregap.models import to_dict

    try:
        with open(args.file) as f:
            text = f.read()
    except OSError as e:
        _fail(f"cannot read {args.file}: {e}")

    try:
        obs = parse_hl7_observation(text, args.patient)
    except IngestError as e:
        _fail(str(e))
    print(json.dumps(to_dict(obs), indent=2))


def _handle_init_config(args):
    from caregap.config import generate_config

    path = generate_config(config_path=args.output)
    print(f"Config generated at {path}")


def _handle_serve_mcp(args):
    import os

    os.environ["CAREGAP_CONFIG"] = args.config
    if args.upload:
        os.environ["CAREGAP_UPLOAD"] = args.upload

    from caregap.mcp.server import mcp

    mcp.run()


if __name__ == "__main__":
    main()
