"""
Termin Backend - Airtable proxy for the voice assistant.

Exposes the Airtable "Termine" table as a small REST API:
- Normalizes submitted dates, times, phone numbers and emails before storing
- Checks whether a date/time/service slot is already taken
- Consistent response format ({"success": ..., ...}) on every endpoint
- VAPI tool call format support (auto-detects and unwraps tool-call requests)
"""

import json
import logging
from typing import Dict, Optional, Tuple

from flask import Flask, g, jsonify, request
from flask_cors import CORS

from . import __version__
from .airtable import AirtableClient
from .availability import is_available, slot_of
from .config import AirtableCfg, ServerCfg
from .errors import InvalidArguments, TransportError, ValidationError
from .normalizer import AppointmentSubmission, normalize, normalize_slot

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

SERVICE_NAME = 'Termin Backend'


def extract_vapi_params() -> Optional[Dict]:
    """
    Extract parameters from a VAPI request.

    VAPI sends tool calls in this format:
    {
        "message": {
            "type": "tool-calls",
            "toolCallList": [{
                "id": "toolu_xxx",
                "function": {"name": "bucheTermin", "arguments": { ... }}
            }],
            ...
        }
    }

    Returns the arguments of the first tool call if VAPI format is detected,
    otherwise the request body as-is (None when there is no JSON body).
    Raises InvalidArguments when the tool call or its arguments are not
    JSON objects.
    """
    body = request.get_json(silent=True)
    g.is_vapi_request = False

    if not body or not isinstance(body, dict):
        logger.warning("No JSON request body received")
        return None

    logger.info(f"Raw request body: {json.dumps(body, ensure_ascii=False)[:500]}")

    message = body.get('message')
    if isinstance(message, dict) and message.get('type') == 'tool-calls':
        tool_call_list = message.get('toolCallList') or []
        if tool_call_list:
            tool_call = tool_call_list[0]
            g.is_vapi_request = True
            if not isinstance(tool_call, dict):
                g.vapi_tool_call_id = 'unknown'
                raise InvalidArguments(tool_call)
            g.vapi_tool_call_id = tool_call.get('id', 'unknown')

            function = tool_call.get('function') or {}
            if not isinstance(function, dict):
                raise InvalidArguments(function)
            arguments = function.get('arguments') or {}
            # Some assistants send the arguments JSON-encoded
            if isinstance(arguments, str):
                try:
                    arguments = json.loads(arguments)
                except ValueError:
                    logger.warning(f"Tool call arguments are not valid JSON: {arguments[:200]}")
                    arguments = {}
            if not isinstance(arguments, dict):
                raise InvalidArguments(arguments)

            logger.info(f"VAPI request detected: {function.get('name', 'unknown')} with args: {arguments}")
            return arguments

    return body


def vapi_response(data: Dict, status: int = 200) -> Tuple:
    """
    Format response for VAPI.

    VAPI expects:
    {
        "results": [{
            "toolCallId": "toolu_xxx",
            "result": { ... }
        }]
    }

    Non-VAPI requests get the plain response.
    """
    if getattr(g, 'is_vapi_request', False) and hasattr(g, 'vapi_tool_call_id'):
        return jsonify({
            'results': [{
                'toolCallId': g.vapi_tool_call_id,
                'result': data
            }]
        }), status
    return jsonify(data), status


def success_response(data: Dict, status: int = 200) -> Tuple:
    response = {'success': True}
    response.update(data)
    return vapi_response(response, status)


def error_response(message: str, error_code: str = 'ERROR', details: Optional[Dict] = None, status: int = 400) -> Tuple:
    response = {
        'success': False,
        'error': message,
        'error_code': error_code
    }
    if details:
        response['details'] = details
    logger.error(f"Error {error_code}: {message} - Details: {details}")
    return vapi_response(response, status)


def validation_error_response(e: ValidationError) -> Tuple:
    return error_response(e.message, e.code, e.details(), 400)


def transport_error_response(e: TransportError) -> Tuple:
    details = {}
    if e.status_code is not None:
        details['upstream_status'] = e.status_code
    if e.payload is not None:
        details['upstream'] = e.payload
    return error_response(e.message, e.code, details or None, 502)


def create_app(airtable_cfg: AirtableCfg, server_cfg: Optional[ServerCfg] = None,
               client: Optional[AirtableClient] = None) -> Flask:
    server_cfg = server_cfg or ServerCfg()
    client = client or AirtableClient(airtable_cfg)

    app = Flask(__name__)
    CORS(app)
    app.config['AIRTABLE_CFG'] = airtable_cfg
    app.config['SERVER_CFG'] = server_cfg
    app.extensions['termin_client'] = client

    @app.errorhandler(ValidationError)
    def handle_validation_error(e: ValidationError):
        return validation_error_response(e)

    @app.route('/', methods=['GET'])
    def index():
        """Health check for the hosting platform"""
        return "Airtable Backend läuft!"

    @app.route('/check-env', methods=['GET'])
    def check_env():
        return jsonify({
            'AIRTABLE_BASE_ID': airtable_cfg.base_id,
            'AIRTABLE_ACCESS_TOKEN': 'EXISTS' if airtable_cfg.access_token else 'MISSING',
            'AIRTABLE_TABLE_NAME': airtable_cfg.table_name,
        })

    @app.route('/api/health', methods=['GET'])
    def health_check():
        return success_response({
            'service': SERVICE_NAME,
            'version': __version__,
            'status': 'healthy'
        })

    @app.route('/api/termine', methods=['GET'])
    def list_termine():
        """All Termine currently stored in Airtable"""
        try:
            records = client.list_records()
        except TransportError as e:
            return transport_error_response(e)
        return success_response({
            'termine': [r.to_dict() for r in records],
            'count': len(records)
        })

    @app.route('/api/termine', methods=['POST'])
    def create_termin():
        """
        Create a Termin.

        POST JSON body (or VAPI tool call arguments):
        {
            "kunde": "Max Mustermann",
            "telefonnummer": "017612345678",
            "datum": "{11.02.2025}",
            "uhrzeit": "15.00",
            "dienstleistung": "Haarschnitt",
            "email": "max@example.de"
        }

        terminDatum/terminZeit are accepted instead of datum/uhrzeit.
        The Airtable response is returned unmodified under "airtable".
        """
        data = extract_vapi_params()
        if not data:
            return error_response('Request body is required', 'MISSING_BODY')

        try:
            termin = normalize(AppointmentSubmission.from_request(data))
        except ValidationError as e:
            return validation_error_response(e)

        fields = termin.to_fields()
        logger.info(f"Normalized Termin: {fields}")

        try:
            if server_cfg.check_slot_on_create:
                existing = [slot_of(r) for r in client.list_records()]
                if not is_available(slot_of(termin), existing):
                    return error_response(
                        'Termin ist bereits vergeben',
                        'SLOT_TAKEN',
                        {'terminDatum': termin.terminDatum, 'terminZeit': termin.terminZeit,
                         'dienstleistung': termin.dienstleistung},
                        409
                    )
            upstream = client.create_record(fields)
        except TransportError as e:
            return transport_error_response(e)

        return success_response({'termin': fields, 'airtable': upstream})

    @app.route('/api/termine/<record_id>', methods=['DELETE'])
    def delete_termin(record_id: str):
        try:
            upstream = client.delete_record(record_id)
        except TransportError as e:
            return transport_error_response(e)
        return success_response({'message': 'Termin gelöscht!', 'response': upstream})

    @app.route('/api/termine/verfuegbarkeit', methods=['GET', 'POST'])
    def check_availability():
        """
        Is a slot still free?

        POST JSON body (or VAPI tool call arguments):
        {"datum": "2025-02-11", "uhrzeit": "15:00", "dienstleistung": "Haarschnitt"}

        GET query params: ?datum=2025-02-11&uhrzeit=15:00&dienstleistung=Haarschnitt
        """
        if request.method == 'POST':
            data = extract_vapi_params() or {}
        else:
            data = request.args.to_dict()

        submission = AppointmentSubmission.from_request(data)
        try:
            candidate = normalize_slot(submission.datum, submission.uhrzeit, submission.dienstleistung)
        except ValidationError as e:
            return validation_error_response(e)

        try:
            existing = [slot_of(r) for r in client.list_records()]
        except TransportError as e:
            return transport_error_response(e)

        available = is_available(candidate, existing)
        logger.info(f"Slot {candidate} available: {available}")
        return success_response({'verfuegbar': available})

    return app
