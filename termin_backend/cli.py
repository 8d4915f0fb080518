"""
termin-backend command line.

Runs the HTTP server and gives direct access to the Airtable table
(list, add, delete, availability check) for support and debugging.

Examples
  termin-backend serve --port 4000
  termin-backend list
  termin-backend add --kunde "Max Mustermann" --telefon 017612345678 \
      --datum 11.02.2025 --uhrzeit 15.00 --dienstleistung Haarschnitt --check
  termin-backend check --datum 2025-02-11 --uhrzeit 15:00 --dienstleistung Haarschnitt
"""

import argparse
import sys
from typing import List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .airtable import AirtableClient
from .availability import is_available, slot_of
from .config import AirtableCfg, ServerCfg, load_env
from .errors import TransportError, ValidationError
from .normalizer import AppointmentSubmission, normalize, normalize_slot

console = Console()

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_INVALID = 2


def _client(args: argparse.Namespace) -> Optional[AirtableClient]:
    missing = args._cfg.missing()
    if missing:
        console.print(f"[red]Missing configuration:[/red] {', '.join(missing)} (set in {args.env} or the environment)")
        return None
    return AirtableClient(args._cfg)


def _print_validation_error(e: ValidationError) -> None:
    console.print(f"[red]{e.code}[/red] {e.message}")


def _print_transport_error(e: TransportError) -> None:
    console.print(f"[red]Airtable error[/red] {e.message}")
    if e.payload is not None:
        console.print(str(e.payload))


def cmd_serve(args: argparse.Namespace) -> int:
    from .proxy_server import create_app

    server_cfg = args._server_cfg
    host = args.host or server_cfg.host
    port = args.port or server_cfg.port
    console.print(Panel.fit(f"http://{host}:{port}", title="Termin Backend"))
    app = create_app(args._cfg, server_cfg)
    app.run(host=host, port=port, debug=args.debug)
    return EXIT_OK


def cmd_list(args: argparse.Namespace) -> int:
    client = _client(args)
    if client is None:
        return EXIT_INVALID
    try:
        records = client.list_records()
    except TransportError as e:
        _print_transport_error(e)
        return EXIT_FAILED

    t = Table(title=f"Termine ({len(records)})")
    t.add_column("ID")
    t.add_column("Datum")
    t.add_column("Zeit")
    t.add_column("Kunde")
    t.add_column("Telefon")
    t.add_column("Dienstleistung")
    t.add_column("Status")
    t.add_column("E-Mail")
    for r in sorted(records, key=lambda r: (r.terminDatum, r.terminZeit)):
        t.add_row(r.id, r.terminDatum, r.terminZeit, r.kunde, r.telefonnummer,
                  r.dienstleistung, r.status, r.email)
    console.print(t)
    return EXIT_OK


def cmd_add(args: argparse.Namespace) -> int:
    submission = AppointmentSubmission(
        kunde=args.kunde,
        telefonnummer=args.telefon,
        datum=args.datum,
        uhrzeit=args.uhrzeit,
        dienstleistung=args.dienstleistung,
        status=args.status or '',
        email=args.email or '',
    )
    try:
        termin = normalize(submission)
    except ValidationError as e:
        _print_validation_error(e)
        return EXIT_INVALID

    client = _client(args)
    if client is None:
        return EXIT_INVALID
    try:
        if args.check:
            existing = [slot_of(r) for r in client.list_records()]
            if not is_available(slot_of(termin), existing):
                console.print(f"[yellow]Slot taken[/yellow] {termin.terminDatum} {termin.terminZeit} {termin.dienstleistung}")
                return EXIT_FAILED
        upstream = client.create_record(termin.to_fields())
    except TransportError as e:
        _print_transport_error(e)
        return EXIT_FAILED

    created = (upstream or {}).get('records') or [{}]
    console.print(f"[green]OK[/green] created {created[0].get('id', '')}")
    console.print_json(data=termin.to_fields())
    return EXIT_OK


def cmd_delete(args: argparse.Namespace) -> int:
    client = _client(args)
    if client is None:
        return EXIT_INVALID
    try:
        client.delete_record(args.id)
    except TransportError as e:
        _print_transport_error(e)
        return EXIT_FAILED
    console.print(f"[green]OK[/green] Termin {args.id} gelöscht")
    return EXIT_OK


def cmd_check(args: argparse.Namespace) -> int:
    try:
        candidate = normalize_slot(args.datum, args.uhrzeit, args.dienstleistung)
    except ValidationError as e:
        _print_validation_error(e)
        return EXIT_INVALID

    client = _client(args)
    if client is None:
        return EXIT_INVALID
    try:
        existing = [slot_of(r) for r in client.list_records()]
    except TransportError as e:
        _print_transport_error(e)
        return EXIT_FAILED

    if is_available(candidate, existing):
        console.print(f"[green]frei[/green] {candidate.date} {candidate.time} {candidate.service}")
        return EXIT_OK
    console.print(f"[yellow]vergeben[/yellow] {candidate.date} {candidate.time} {candidate.service}")
    return EXIT_FAILED


def cmd_check_env(args: argparse.Namespace) -> int:
    cfg = args._cfg
    t = Table(title=f"Configuration ({args.env})")
    t.add_column("Key")
    t.add_column("Value")
    t.add_row("AIRTABLE_BASE_ID", cfg.base_id or "[red]MISSING[/red]")
    t.add_row("AIRTABLE_ACCESS_TOKEN", "EXISTS" if cfg.access_token else "[red]MISSING[/red]")
    t.add_row("AIRTABLE_TABLE_NAME", cfg.table_name)
    t.add_row("PORT", str(args._server_cfg.port))
    t.add_row("TERMIN_CHECK_SLOT", "on" if args._server_cfg.check_slot_on_create else "off")
    console.print(t)
    return EXIT_INVALID if cfg.missing() else EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="termin-backend", add_help=True)
    p.add_argument("--env", default=".env", help="Path to .env containing AIRTABLE_BASE_ID/AIRTABLE_ACCESS_TOKEN")
    p.add_argument("--base-id", default=None, help="Override AIRTABLE_BASE_ID")
    p.add_argument("--token", default=None, help="Override AIRTABLE_ACCESS_TOKEN")
    p.add_argument("--table", default=None, help="Override AIRTABLE_TABLE_NAME")
    p.add_argument("--timeout", type=int, default=None, help="HTTP timeout seconds")

    sub = p.add_subparsers(dest="cmd", required=True)

    sp = sub.add_parser("serve", help="Run the HTTP API")
    sp.add_argument("--host", default=None)
    sp.add_argument("--port", type=int, default=None)
    sp.add_argument("--debug", action="store_true")
    sp.set_defaults(func=cmd_serve)

    sp = sub.add_parser("list", help="List all Termine in Airtable")
    sp.set_defaults(func=cmd_list)

    sp = sub.add_parser("add", help="Normalize and create a Termin")
    sp.add_argument("--kunde", required=True)
    sp.add_argument("--telefon", required=True)
    sp.add_argument("--datum", required=True, help="Any common date form, e.g. 11.02.2025")
    sp.add_argument("--uhrzeit", required=True, help="e.g. 15:00, 9.30, 15-00")
    sp.add_argument("--dienstleistung", required=True)
    sp.add_argument("--status", default=None)
    sp.add_argument("--email", default=None)
    sp.add_argument("--check", action="store_true", help="Refuse if the slot is already taken")
    sp.set_defaults(func=cmd_add)

    sp = sub.add_parser("delete", help="Delete a Termin by Airtable record id")
    sp.add_argument("id")
    sp.set_defaults(func=cmd_delete)

    sp = sub.add_parser("check", help="Check whether a slot is still free")
    sp.add_argument("--datum", required=True)
    sp.add_argument("--uhrzeit", required=True)
    sp.add_argument("--dienstleistung", required=True)
    sp.set_defaults(func=cmd_check)

    sp = sub.add_parser("check-env", help="Show which configuration values are set")
    sp.set_defaults(func=cmd_check_env)

    return p


def main(argv: Optional[List[str]] = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    args = build_parser().parse_args(argv)

    env = load_env(args.env)
    cfg = AirtableCfg.from_env(env)
    if args.base_id:
        cfg.base_id = args.base_id
    if args.token:
        cfg.access_token = args.token
    if args.table:
        cfg.table_name = args.table
    if args.timeout:
        cfg.timeout = args.timeout
    args._cfg = cfg  # attach
    args._server_cfg = ServerCfg.from_env(env)

    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
