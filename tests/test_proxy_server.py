"""
Tests for termin_backend/proxy_server.py

Exercises the Flask routes with the Airtable client mocked out.
"""

from termin_backend.config import ServerCfg
from termin_backend.errors import TransportError
from termin_backend.proxy_server import create_app


def _vapi(arguments, name="bucheTermin"):
    return {
        "message": {
            "type": "tool-calls",
            "toolCallList": [{"id": "toolu_123", "function": {"name": name, "arguments": arguments}}],
            "call": {"id": "call_1"},
        }
    }


class TestPlumbing:
    def test_root(self, http):
        resp = http.get("/")
        assert resp.status_code == 200
        assert "läuft" in resp.get_data(as_text=True)

    def test_check_env(self, http):
        data = http.get("/check-env").get_json()
        assert data["AIRTABLE_BASE_ID"] == "appTEST123"
        assert data["AIRTABLE_ACCESS_TOKEN"] == "EXISTS"

    def test_health(self, http):
        data = http.get("/api/health").get_json()
        assert data["success"] is True
        assert data["status"] == "healthy"


class TestListTermine:
    def test_lists_records(self, http, stored_termin):
        data = http.get("/api/termine").get_json()
        assert data["success"] is True
        assert data["count"] == 1
        assert data["termine"] == [stored_termin.to_dict()]

    def test_transport_error(self, http, mock_store):
        mock_store.list_records.side_effect = TransportError("Airtable request failed", 401, {"error": "AUTH"})
        resp = http.get("/api/termine")
        assert resp.status_code == 502
        data = resp.get_json()
        assert data["success"] is False
        assert data["error_code"] == "AIRTABLE_ERROR"
        assert data["details"] == {"upstream_status": 401, "upstream": {"error": "AUTH"}}


class TestCreateTermin:
    def test_normalizes_and_creates(self, http, mock_store, submission_body):
        resp = http.post("/api/termine", json=submission_body)
        assert resp.status_code == 200
        data = resp.get_json()
        expected = {
            "kunde": "Max Mustermann",
            "telefonnummer": "+4917612345678",
            "terminDatum": "2025-02-11",
            "terminZeit": "09:30",
            "dienstleistung": "Haircut",
            "status": "Geplant",
            "email": "max@example.de",
        }
        assert data["success"] is True
        assert data["termin"] == expected
        assert data["airtable"] == {"records": [{"id": "rec002", "fields": {}}]}
        mock_store.create_record.assert_called_once_with(expected)

    def test_store_keys_accepted(self, http, mock_store, submission_body):
        body = dict(submission_body)
        body["terminDatum"] = body.pop("datum")
        body["terminZeit"] = body.pop("uhrzeit")
        assert http.post("/api/termine", json=body).status_code == 200

    def test_invalid_time(self, http, mock_store, submission_body):
        resp = http.post("/api/termine", json=dict(submission_body, uhrzeit="halb drei"))
        assert resp.status_code == 400
        assert resp.get_json()["error_code"] == "INVALID_TIME"
        mock_store.create_record.assert_not_called()

    def test_invalid_email(self, http, submission_body):
        resp = http.post("/api/termine", json=dict(submission_body, email="not-an-email"))
        assert resp.get_json()["error_code"] == "INVALID_EMAIL"

    def test_missing_fields(self, http, mock_store):
        resp = http.post("/api/termine", json={"kunde": "Max", "datum": "2025-02-11"})
        assert resp.status_code == 400
        data = resp.get_json()
        assert data["error_code"] == "MISSING_FIELDS"
        assert data["details"]["missing"] == ["telefonnummer", "terminZeit", "dienstleistung"]
        mock_store.create_record.assert_not_called()

    def test_missing_body(self, http):
        resp = http.post("/api/termine")
        assert resp.status_code == 400
        assert resp.get_json()["error_code"] == "MISSING_BODY"

    def test_transport_error(self, http, mock_store, submission_body):
        mock_store.create_record.side_effect = TransportError("Connection timeout to Airtable")
        resp = http.post("/api/termine", json=submission_body)
        assert resp.status_code == 502
        assert resp.get_json()["error"] == "Connection timeout to Airtable"

    def test_no_slot_check_by_default(self, http, mock_store, submission_body):
        http.post("/api/termine", json=dict(submission_body, datum="2025-02-11", uhrzeit="15:00"))
        mock_store.list_records.assert_not_called()
        mock_store.create_record.assert_called_once()

    def test_slot_check_refuses_taken_slot(self, airtable_cfg, mock_store, submission_body):
        app = create_app(airtable_cfg, ServerCfg(check_slot_on_create=True), client=mock_store)
        resp = app.test_client().post(
            "/api/termine", json=dict(submission_body, datum="11.02.2025", uhrzeit="15:00")
        )
        assert resp.status_code == 409
        assert resp.get_json()["error_code"] == "SLOT_TAKEN"
        mock_store.create_record.assert_not_called()

    def test_slot_check_allows_free_slot(self, airtable_cfg, mock_store, submission_body):
        app = create_app(airtable_cfg, ServerCfg(check_slot_on_create=True), client=mock_store)
        resp = app.test_client().post("/api/termine", json=submission_body)
        assert resp.status_code == 200
        mock_store.create_record.assert_called_once()

    def test_vapi_tool_call(self, http, mock_store, submission_body):
        resp = http.post("/api/termine", json=_vapi(submission_body))
        assert resp.status_code == 200
        result = resp.get_json()["results"][0]
        assert result["toolCallId"] == "toolu_123"
        assert result["result"]["success"] is True
        assert result["result"]["termin"]["terminDatum"] == "2025-02-11"

    def test_vapi_json_encoded_arguments(self, http, mock_store):
        args = '{"kunde": "Max", "telefonnummer": "0176", "datum": "2025-02-11", "uhrzeit": "15:00", "dienstleistung": "Haircut"}'
        resp = http.post("/api/termine", json=_vapi(args))
        assert resp.get_json()["results"][0]["result"]["termin"]["telefonnummer"] == "+49176"

    def test_vapi_validation_error_is_wrapped(self, http):
        resp = http.post("/api/termine", json=_vapi({"kunde": "Max", "datum": "irgendwann"}))
        assert resp.status_code == 400
        result = resp.get_json()["results"][0]["result"]
        assert result["success"] is False
        assert result["error_code"] == "INVALID_DATE"


    def test_vapi_arguments_not_an_object(self, http, mock_store):
        resp = http.post("/api/termine", json=_vapi('["a"]'))
        assert resp.status_code == 400
        result = resp.get_json()["results"][0]["result"]
        assert result["success"] is False
        assert result["error_code"] == "INVALID_ARGUMENTS"
        assert result["details"] == {"received": "list"}
        mock_store.create_record.assert_not_called()

    def test_vapi_numeric_arguments(self, http, mock_store):
        resp = http.post("/api/termine", json=_vapi(42))
        assert resp.status_code == 400
        assert resp.get_json()["results"][0]["result"]["error_code"] == "INVALID_ARGUMENTS"
        mock_store.create_record.assert_not_called()


class TestDeleteTermin:
    def test_delete(self, http, mock_store):
        data = http.delete("/api/termine/rec001").get_json()
        assert data["message"] == "Termin gelöscht!"
        assert data["response"] == {"deleted": True, "id": "rec001"}
        mock_store.delete_record.assert_called_once_with("rec001")

    def test_delete_not_found(self, http, mock_store):
        mock_store.delete_record.side_effect = TransportError("Airtable request failed", 404, {"error": "NOT_FOUND"})
        assert http.delete("/api/termine/recNOPE").status_code == 502


class TestAvailability:
    def test_taken_via_query(self, http):
        resp = http.get("/api/termine/verfuegbarkeit?datum=2025-02-11&uhrzeit=15:00&dienstleistung=Haircut")
        assert resp.get_json() == {"success": True, "verfuegbar": False}

    def test_raw_values_are_normalized_first(self, http):
        resp = http.post("/api/termine/verfuegbarkeit",
                         json={"datum": "{11.02.2025}", "uhrzeit": "15.00", "dienstleistung": "Haircut"})
        assert resp.get_json()["verfuegbar"] is False

    def test_other_service_is_free(self, http):
        resp = http.post("/api/termine/verfuegbarkeit",
                         json={"datum": "2025-02-11", "uhrzeit": "15:00", "dienstleistung": "Coloring"})
        assert resp.get_json()["verfuegbar"] is True

    def test_empty_store_is_free(self, http, mock_store):
        mock_store.list_records.return_value = []
        resp = http.post("/api/termine/verfuegbarkeit",
                         json={"terminDatum": "2025-02-11", "terminZeit": "15:00", "dienstleistung": "Haircut"})
        assert resp.get_json()["verfuegbar"] is True

    def test_missing_input(self, http, mock_store):
        resp = http.get("/api/termine/verfuegbarkeit?datum=2025-02-11")
        assert resp.status_code == 400
        assert resp.get_json()["details"]["missing"] == ["uhrzeit", "dienstleistung"]
        mock_store.list_records.assert_not_called()

    def test_vapi_tool_call_not_an_object(self, http, mock_store):
        body = {"message": {"type": "tool-calls", "toolCallList": ["oops"]}}
        resp = http.post("/api/termine/verfuegbarkeit", json=body)
        assert resp.status_code == 400
        result = resp.get_json()["results"][0]
        assert result["toolCallId"] == "unknown"
        assert result["result"]["error_code"] == "INVALID_ARGUMENTS"
        mock_store.list_records.assert_not_called()

    def test_vapi(self, http):
        resp = http.post("/api/termine/verfuegbarkeit",
                         json=_vapi({"datum": "2025-02-11", "uhrzeit": "16:00", "dienstleistung": "Haircut"},
                                    name="pruefeVerfuegbarkeit"))
        assert resp.get_json()["results"][0]["result"]["verfuegbar"] is True
