"""Airtable-backed Termin API for the voice assistant."""

__version__ = '1.0.0'
