"""
Termin normalizer.

Turns the loosely formatted fields a voice assistant sends (dates and times
wrapped in braces, local phone numbers, free-text email) into the canonical
shape stored in Airtable, or raises a ValidationError saying what is wrong.

Canonical forms:
  - terminDatum: YYYY-MM-DD
  - terminZeit:  HH:MM (24h, zero-padded hour)
  - telefonnummer: leading national 0 replaced by +49
  - status: "Geplant" unless given
"""

import datetime
import re
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Mapping, Optional

from dateutil import parser as date_parser

from .availability import Slot
from .errors import InvalidDate, InvalidEmail, InvalidTime, MissingFields

COUNTRY_PREFIX = '+49'
DEFAULT_STATUS = 'Geplant'

ISO_DATE_RE = re.compile(r'^[0-9]{4}-[0-9]{2}-[0-9]{2}')
TIME_RE = re.compile(r'^[0-9]{2}:[0-9]{2}$')
EMAIL_RE = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')

# Two defaults differing in year, month and day
_DEFAULTS = (datetime.datetime(2000, 1, 1), datetime.datetime(2001, 2, 2))

# Store field names, in the order MissingFields reports them
REQUIRED_FIELDS = ('kunde', 'telefonnummer', 'terminDatum', 'terminZeit', 'dienstleistung')


def _text(value: Any) -> str:
    if value is None:
        return ''
    return str(value)


def _first_present(body: Mapping[str, Any], *keys: str) -> str:
    for key in keys:
        value = _text(body.get(key)).strip()
        if value:
            return value
    return ''


@dataclass
class AppointmentSubmission:
    """Raw, untrusted fields as received from the caller."""
    kunde: str = ''
    telefonnummer: str = ''
    datum: str = ''
    uhrzeit: str = ''
    dienstleistung: str = ''
    status: str = ''
    email: str = ''

    @classmethod
    def from_request(cls, body: Optional[Mapping[str, Any]]) -> 'AppointmentSubmission':
        """
        Build a submission from a request body.

        Accepts both the short keys (datum, uhrzeit) and the store keys
        (terminDatum, terminZeit); the short keys win when both are set.
        """
        body = body or {}
        return cls(
            kunde=_text(body.get('kunde')),
            telefonnummer=_text(body.get('telefonnummer')),
            datum=_first_present(body, 'datum', 'terminDatum'),
            uhrzeit=_first_present(body, 'uhrzeit', 'terminZeit'),
            dienstleistung=_text(body.get('dienstleistung')),
            status=_text(body.get('status')),
            email=_text(body.get('email')),
        )


@dataclass(frozen=True)
class NormalizedAppointment:
    kunde: str
    telefonnummer: str
    terminDatum: str
    terminZeit: str
    dienstleistung: str
    status: str = DEFAULT_STATUS
    email: str = ''

    def to_fields(self) -> Dict[str, str]:
        """Fields dict as Airtable expects it."""
        return asdict(self)


def strip_braces(value: Any) -> str:
    """'{ 2025-02-11 }' -> '2025-02-11'. Also drops doubled template braces."""
    return _text(value).strip().lstrip('{').rstrip('}').strip()


def _parse_calendar_date(s: str, **kwargs) -> datetime.date:
    """
    Parse with two different defaults. dateutil fills a missing year, month
    or day from the default, so text that names no full date ("11", "15:00")
    parses differently under each and is rejected.
    """
    first = date_parser.parse(s, default=_DEFAULTS[0], **kwargs)
    second = date_parser.parse(s, default=_DEFAULTS[1], **kwargs)
    if first.date() != second.date():
        raise InvalidDate(s)
    return first.date()


def normalize_date(value: Any) -> str:
    """
    Reduce a date in any common textual form to YYYY-MM-DD.

    ISO input is read as ISO; everything else is read day-first
    (11.02.2025 is the 11th of February). Any time-of-day is dropped.
    Day, month and year must all be given. Empty input returns ''.
    """
    s = strip_braces(value)
    if not s:
        return ''
    try:
        if ISO_DATE_RE.match(s):
            try:
                parsed = date_parser.isoparse(s).date()
            except ValueError:
                parsed = _parse_calendar_date(s)
        else:
            parsed = _parse_calendar_date(s, dayfirst=True)
    except (ValueError, OverflowError):
        raise InvalidDate(s)
    return parsed.isoformat()


def normalize_time(value: Any) -> str:
    """
    Reduce a time to HH:MM.

    '.' and '-' count as ':'; seconds are dropped; a single-digit hour is
    padded. Hour and minute are not range-checked. Empty input returns ''.
    """
    s = strip_braces(value)
    if not s:
        return ''
    parts = s.replace('.', ':').replace('-', ':').split(':')
    if len(parts) == 3:
        parts = parts[:2]
    if len(parts[0]) == 1:
        parts[0] = '0' + parts[0]
    result = ':'.join(parts)
    if not TIME_RE.match(result):
        raise InvalidTime(s)
    return result


def validate_email(value: Any) -> str:
    """Return the stripped address, '' when empty. Raises InvalidEmail."""
    s = strip_braces(value)
    if s and not EMAIL_RE.match(s):
        raise InvalidEmail(s)
    return s


def normalize_phone(value: Any) -> str:
    """'0176 1234' -> '+49176 1234'. Anything not starting with 0 is kept."""
    s = _text(value).strip()
    if s.startswith('0'):
        return COUNTRY_PREFIX + s[1:]
    return s


def missing_fields(fields: Mapping[str, str]) -> List[str]:
    return [name for name in REQUIRED_FIELDS if not fields.get(name)]


def normalize(raw: AppointmentSubmission) -> NormalizedAppointment:
    """
    Normalize a submission. The first failing check raises:
    date, then time, then email, then required fields.
    """
    termin_datum = normalize_date(raw.datum)
    termin_zeit = normalize_time(raw.uhrzeit)
    email = validate_email(raw.email)

    fields = {
        'kunde': _text(raw.kunde).strip(),
        'telefonnummer': _text(raw.telefonnummer).strip(),
        'terminDatum': termin_datum,
        'terminZeit': termin_zeit,
        'dienstleistung': _text(raw.dienstleistung).strip(),
    }
    missing = missing_fields(fields)
    if missing:
        raise MissingFields(missing)

    status = _text(raw.status)
    return NormalizedAppointment(
        kunde=fields['kunde'],
        telefonnummer=normalize_phone(fields['telefonnummer']),
        terminDatum=termin_datum,
        terminZeit=termin_zeit,
        dienstleistung=fields['dienstleistung'],
        status=status if status.strip() else DEFAULT_STATUS,
        email=email,
    )


def normalize_slot(datum: Any, uhrzeit: Any, dienstleistung: Any) -> Slot:
    """Candidate slot for an availability check, with date and time normalized."""
    slot = Slot(normalize_date(datum), normalize_time(uhrzeit), _text(dienstleistung).strip())
    missing = [name for name, value in zip(('datum', 'uhrzeit', 'dienstleistung'), slot) if not value]
    if missing:
        raise MissingFields(missing)
    return slot
