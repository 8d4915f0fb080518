"""
Thin client for the Airtable table holding the Termine.

Airtable is the store of record; this module only lists, creates and
deletes rows. Failures are raised as TransportError with the upstream
body attached, never retried.
"""

import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests

from .config import AirtableCfg
from .errors import TransportError

logger = logging.getLogger(__name__)

STORE_FIELDS = ('kunde', 'telefonnummer', 'terminDatum', 'terminZeit', 'dienstleistung', 'status', 'email')


@dataclass(frozen=True)
class StoredAppointment:
    id: str
    kunde: str = ''
    telefonnummer: str = ''
    terminDatum: str = ''
    terminZeit: str = ''
    dienstleistung: str = ''
    status: str = ''
    email: str = ''

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> 'StoredAppointment':
        fields = record.get('fields') or {}
        values = {name: str(fields.get(name) or '') for name in STORE_FIELDS}
        return cls(id=record.get('id', ''), **values)

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


def _payload(resp: Optional[requests.Response]) -> Any:
    if resp is None:
        return None
    try:
        return resp.json()
    except ValueError:
        return resp.text[:500] if resp.text else None


class AirtableClient:
    def __init__(self, cfg: AirtableCfg, session: Optional[requests.Session] = None):
        self.cfg = cfg
        self.session = session or requests.Session()
        self.session.headers.update({
            'Authorization': f'Bearer {cfg.access_token}',
            'Content-Type': 'application/json',
        })

    def _request(self, method: str, url: str, **kwargs) -> Any:
        missing = self.cfg.missing()
        if missing:
            raise TransportError(f"Airtable not configured: {', '.join(missing)} missing")
        try:
            logger.debug(f"Airtable {method} {url} {kwargs.get('params') or ''}")
            resp = self.session.request(method, url, timeout=self.cfg.timeout, **kwargs)
            logger.debug(f"Airtable response status: {resp.status_code}")
            resp.raise_for_status()
        except requests.Timeout:
            logger.error(f"Airtable {method} timed out")
            raise TransportError('Connection timeout to Airtable')
        except requests.HTTPError as e:
            payload = _payload(e.response)
            status = e.response.status_code if e.response is not None else None
            logger.error(f"Airtable {method} failed with {status}: {payload}")
            raise TransportError(f'Airtable request failed: {e}', status, payload)
        except requests.RequestException as e:
            logger.error(f"Airtable {method} failed: {e}")
            raise TransportError(f'Airtable unavailable: {e}')
        return _payload(resp)

    def list_records(self) -> List[StoredAppointment]:
        """All rows of the table, following Airtable's offset pagination."""
        records: List[StoredAppointment] = []
        params: Dict[str, str] = {}
        while True:
            data = self._request('GET', self.cfg.table_url, params=dict(params)) or {}
            records.extend(StoredAppointment.from_record(r) for r in data.get('records', []))
            offset = data.get('offset')
            if not offset:
                break
            params['offset'] = offset
        logger.info(f"Fetched {len(records)} Termine from Airtable")
        return records

    def create_record(self, fields: Dict[str, Any]) -> Any:
        logger.info(f"Sending Termin to Airtable: {fields}")
        return self._request('POST', self.cfg.table_url, json={'records': [{'fields': fields}]})

    def delete_record(self, record_id: str) -> Any:
        logger.info(f"Deleting Termin {record_id}")
        return self._request('DELETE', f"{self.cfg.table_url}/{quote(record_id, safe='')}")
