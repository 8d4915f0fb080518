"""
Configuration for the Airtable client and the HTTP server.

Values come from a .env file overlaid by the process environment, so a
deployment (Railway etc.) can override anything set in the file.
"""

import os
from dataclasses import dataclass
from typing import Dict, Mapping, Optional
from urllib.parse import quote

AIRTABLE_API_URL = 'https://api.airtable.com/v0'
DEFAULT_TABLE_NAME = 'Imported table'
DEFAULT_PORT = 4000

TRUTHY = {'1', 'true', 'yes', 'on'}


def read_env_file(path: str) -> Dict[str, str]:
    """
    Read KEY=value lines from a .env file. Quotes around values are
    stripped, comments and blank lines skipped. A missing file yields {}.
    """
    env: Dict[str, str] = {}
    if not path or not os.path.exists(path):
        return env
    with open(path, 'r', encoding='utf-8') as f:
        for raw in f.read().splitlines():
            line = raw.strip()
            if not line or line.startswith('#') or '=' not in line:
                continue
            if line.startswith('export '):
                line = line[len('export '):]
            key, value = line.split('=', 1)
            value = value.strip()
            if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
                value = value[1:-1]
            env[key.strip()] = value
    return env


def load_env(path: Optional[str] = '.env', environ: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    env = read_env_file(path) if path else {}
    env.update(os.environ if environ is None else environ)
    return env


@dataclass
class AirtableCfg:
    base_id: Optional[str]
    access_token: Optional[str]
    table_name: str = DEFAULT_TABLE_NAME
    api_url: str = AIRTABLE_API_URL
    timeout: int = 30

    @classmethod
    def from_env(cls, env: Mapping[str, str]) -> 'AirtableCfg':
        return cls(
            base_id=env.get('AIRTABLE_BASE_ID') or None,
            access_token=env.get('AIRTABLE_ACCESS_TOKEN') or None,
            table_name=env.get('AIRTABLE_TABLE_NAME') or DEFAULT_TABLE_NAME,
            timeout=int(env.get('AIRTABLE_TIMEOUT') or 30),
        )

    @property
    def table_url(self) -> str:
        return f"{self.api_url.rstrip('/')}/{self.base_id}/{quote(self.table_name, safe='')}"

    def missing(self) -> list:
        """Names of the settings a store call cannot do without."""
        out = []
        if not self.base_id:
            out.append('AIRTABLE_BASE_ID')
        if not self.access_token:
            out.append('AIRTABLE_ACCESS_TOKEN')
        return out


@dataclass
class ServerCfg:
    host: str = '0.0.0.0'
    port: int = DEFAULT_PORT
    check_slot_on_create: bool = False

    @classmethod
    def from_env(cls, env: Mapping[str, str]) -> 'ServerCfg':
        return cls(
            host=env.get('HOST') or '0.0.0.0',
            port=int(env.get('PORT') or DEFAULT_PORT),
            check_slot_on_create=(env.get('TERMIN_CHECK_SLOT') or '').strip().lower() in TRUTHY,
        )
