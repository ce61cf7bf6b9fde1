"""Timeline builder — merges encounters, observations and immunizations."""

from __future__ import annotations

from caregap.core.utils import date_parts
from caregap.models import ResourceSet, TimelineEvent

EVENT_KINDS = ("Encounter", "Observation", "Immunization")


def _sort_key(event: TimelineEvent) -> tuple:
    # Undecodable dates go after every decodable one.
    parts = date_parts(event.date)
    return (0, parts) if parts is not None else (1, ())


def _in_range(dt_str: str, start_date: str, end_date: str) -> bool:
    """Compare decoded dates; an undecodable date is never in a range."""
    parts = date_parts(dt_str)
    if parts is None:
        return False
    start = date_parts(start_date)
    end = date_parts(end_date)
    if start is not None and parts < start:
        return False
    if end is not None and parts > end:
        return False
    return True


def build_timeline(
    resources: ResourceSet,
    start_date: str = "",
    end_date: str = "",
    kinds: list[str] | None = None,
) -> list[TimelineEvent]:
    """Build a chronological event list from a resource set.

    Records without a date are skipped. Events on the same date keep their
    emission order: encounters, then observations, then immunizations, each in
    source order.
    Events whose date cannot be decoded are dropped whenever a date range is
    given.

    Args:
        resources: Related records for one patient.
        start_date: Keep events on or after this ISO date.
        end_date: Keep events on or before this ISO date.
        kinds: Event kinds to include (case-insensitive). Empty = all kinds.
    """
    events: list[TimelineEvent] = []

    for enc in resources.encounters:
        if enc.start:
            events.append(
                TimelineEvent(
                    id=f"enc-{enc.id}",
                    date=enc.start,
                    kind="Encounter",
                    label=enc.type_label or "Encounter",
                )
            )

    for obs in resources.observations:
        if obs.effective:
            events.append(
                TimelineEvent(
                    id=f"obs-{obs.id}",
                    date=obs.effective,
                    kind="Observation",
                    label=obs.label or "Observation",
                )
            )

    for imm in resources.immunizations:
        if imm.occurrence:
            events.append(
                TimelineEvent(
                    id=f"imm-{imm.id}",
                    date=imm.occurrence,
                    kind="Immunization",
                    label=imm.vaccine or "Immunization",
                )
            )

    if kinds:
        wanted = {k.strip().lower() for k in kinds}
        events = [e for e in events if e.kind.lower() in wanted]
    if start_date or end_date:
        events = [e for e in events if _in_range(e.date, start_date, end_date)]

    # stable: same-day events stay in emission order
    events.sort(key=_sort_key)
    return events
