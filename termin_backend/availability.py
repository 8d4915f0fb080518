"""
Slot availability check.

A slot is taken when an existing appointment has exactly the same date,
time and service. Values are compared as plain strings, so callers should
pass normalized values (see normalizer.normalize_date / normalize_time).

The check is advisory: nothing stops two callers from both seeing a slot
as free and then both creating it in Airtable.
"""

from typing import Any, Iterable, NamedTuple


class Slot(NamedTuple):
    date: str
    time: str
    service: str


def slot_of(appointment: Any) -> Slot:
    """Slot of a NormalizedAppointment or StoredAppointment."""
    return Slot(appointment.terminDatum, appointment.terminZeit, appointment.dienstleistung)


def is_available(candidate: Slot, existing: Iterable[Slot]) -> bool:
    for slot in existing:
        if (slot.date == candidate.date
                and slot.time == candidate.time
                and slot.service == candidate.service):
            return False
    return True
