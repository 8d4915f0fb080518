"""
Error types shared by the normalizer, the Airtable client and the HTTP layer.

Validation errors describe a bad submission and are detected before any
network call. Transport errors wrap whatever went wrong while talking to
Airtable, with the upstream payload attached when there was one.
"""

from typing import Any, List, Optional, Sequence


class ValidationError(Exception):
    """Base class for submission problems the caller can fix."""

    code = 'VALIDATION_ERROR'

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def details(self) -> Optional[dict]:
        return None


class InvalidDate(ValidationError):
    code = 'INVALID_DATE'

    def __init__(self, value: str):
        super().__init__(f'Ungültiges Datum: {value}')
        self.value = value

    def details(self) -> Optional[dict]:
        return {'value': self.value, 'expected': 'YYYY-MM-DD', 'example': '2025-02-11'}


class InvalidTime(ValidationError):
    code = 'INVALID_TIME'

    def __init__(self, value: str):
        super().__init__(f'Ungültige Uhrzeit: {value}')
        self.value = value

    def details(self) -> Optional[dict]:
        return {'value': self.value, 'expected': 'HH:MM', 'example': '15:00'}


class InvalidEmail(ValidationError):
    code = 'INVALID_EMAIL'

    def __init__(self, value: str):
        super().__init__(f'Ungültige E-Mail-Adresse: {value}')
        self.value = value

    def details(self) -> Optional[dict]:
        return {'value': self.value}


class MissingFields(ValidationError):
    code = 'MISSING_FIELDS'

    def __init__(self, fields: Sequence[str]):
        self.fields: List[str] = list(fields)
        super().__init__(f"Fehlende Pflichtfelder: {', '.join(self.fields)}")

    def details(self) -> Optional[dict]:
        return {'missing': self.fields}


class InvalidArguments(ValidationError):
    """Tool call arguments are not a JSON object."""

    code = 'INVALID_ARGUMENTS'

    def __init__(self, value: Any):
        super().__init__('Tool call arguments must be a JSON object')
        self.value = value

    def details(self) -> Optional[dict]:
        return {'received': type(self.value).__name__}


class TransportError(Exception):
    """A call to Airtable failed (timeout, connection, auth, non-2xx)."""

    code = 'AIRTABLE_ERROR'

    def __init__(self, message: str, status_code: Optional[int] = None, payload: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload
