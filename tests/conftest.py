"""
Pytest fixtures for the Termin backend tests.
"""

from unittest.mock import MagicMock

import pytest

from termin_backend.airtable import AirtableClient, StoredAppointment
from termin_backend.config import AirtableCfg, ServerCfg
from termin_backend.proxy_server import create_app


@pytest.fixture
def airtable_cfg():
    return AirtableCfg(base_id="appTEST123", access_token="patTEST")


@pytest.fixture
def stored_termin():
    """One Termin as it comes back from Airtable."""
    return StoredAppointment(
        id="rec001",
        kunde="Erika Musterfrau",
        telefonnummer="+4917612345678",
        terminDatum="2025-02-11",
        terminZeit="15:00",
        dienstleistung="Haircut",
        status="Geplant",
        email="erika@example.de",
    )


@pytest.fixture
def mock_store(stored_termin):
    """AirtableClient stand-in with one stored Termin."""
    store = MagicMock(spec=AirtableClient)
    store.list_records.return_value = [stored_termin]
    store.create_record.return_value = {"records": [{"id": "rec002", "fields": {}}]}
    store.delete_record.return_value = {"deleted": True, "id": "rec001"}
    return store


@pytest.fixture
def app(airtable_cfg, mock_store):
    app = create_app(airtable_cfg, ServerCfg(), client=mock_store)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def http(app):
    return app.test_client()


@pytest.fixture
def submission_body():
    return {
        "kunde": "Max Mustermann",
        "telefonnummer": "017612345678",
        "datum": "{11.02.2025}",
        "uhrzeit": "9.30",
        "dienstleistung": "Haircut",
        "email": "max@example.de",
    }
