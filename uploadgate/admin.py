"""Key administration CLI for the SQLite key store.

Usage:
    uploadgate-keys create --application acme [--path invoices] [--expires-in-days 30]
    uploadgate-keys disable upk-01HZ...
    uploadgate-keys enable upk-01HZ...
    uploadgate-keys show upk-01HZ...
    uploadgate-keys audit [--application acme] [--limit 20]

The plaintext key is printed once by ``create`` and never stored. Without
``--db`` / ``--audit-db`` the databases are the ones the gateway itself uses:
registry.path and audit.path from load_config(), environment overrides
included.
"""

from __future__ import annotations

import argparse
import asyncio
from datetime import timedelta
from pathlib import Path
from typing import Optional, Sequence

import aiosqlite

from uploadgate.audit.protocol import AuditFilters
from uploadgate.audit.sqlite_backend import LocalSQLiteBackend
from uploadgate.auth.keys import create_api_key, fetch_key_records, set_key_disabled
from uploadgate.config import load_config
from uploadgate.utils.clock import utc_now


def mask_key(api_key: str) -> str:
    """``upk-01HZX5...`` → ``upk-01HZ…9QKT``. Short inputs are fully masked."""
    if len(api_key) <= 12:
        return "*" * len(api_key)
    return f"{api_key[:8]}…{api_key[-4:]}"


async def _create(args: argparse.Namespace) -> int:
    expires_at = None
    if args.expires_in_days is not None:
        expires_at = utc_now() + timedelta(days=args.expires_in_days)
    plaintext, record = await create_api_key(
        args.application,
        path=args.path,
        expires_at=expires_at,
        db_path=args.db,
    )
    print(plaintext)
    print(f"application: {record.application_id}")
    print(f"path:        {record.path or '-'}")
    print(f"expires:     {record.expires_at.isoformat() if record.expires_at else 'never'}")
    return 0


async def _set_disabled(args: argparse.Namespace, disabled: bool) -> int:
    count = await set_key_disabled(args.key, disabled, db_path=args.db)
    if count == 0:
        print(f"No records for {mask_key(args.key)}")
        return 1
    state = "disabled" if disabled else "enabled"
    print(f"{mask_key(args.key)} {state} ({count} record{'s' if count != 1 else ''})")
    return 0


async def _show(args: argparse.Namespace) -> int:
    records = await fetch_key_records(args.key, db_path=args.db)
    if not records:
        print(f"No records for {mask_key(args.key)}")
        return 1
    now = utc_now()
    print(mask_key(args.key))
    for record in records:
        status = "disabled" if record.disabled else (
            "expired" if record.is_expired(now) else "active"
        )
        print(
            f"  {record.record_id}  {record.application_id}  "
            f"path={record.path or '-'}  {status}  "
            f"expires={record.expires_at.isoformat() if record.expires_at else 'never'}"
        )
    return 0


async def _audit(args: argparse.Namespace) -> int:
    backend = LocalSQLiteBackend(db_path=args.audit_db)
    await backend.initialize()
    try:
        events = await backend.query_events(
            AuditFilters(application_id=args.application, limit=args.limit)
        )
    finally:
        await backend.close()
    for event in events:
        print(
            f"{event.timestamp.isoformat()}  {event.outcome:<11}  "
            f"{event.storage_key}  {event.size_bytes}B  {event.content_type}"
        )
    if not events:
        print("No upload events")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="uploadgate-keys",
        description="Manage uploadgate API keys",
    )
    parser.add_argument("--db", type=Path, default=None, help="Path to keys.db")
    sub = parser.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create", help="Issue a new API key")
    create.add_argument("--application", required=True, help="Tenant application id")
    create.add_argument("--path", default=None, help="Sub-path within the tenant namespace")
    create.add_argument("--expires-in-days", type=int, default=None)

    for name in ("disable", "enable", "show"):
        cmd = sub.add_parser(name, help=f"{name.capitalize()} an API key")
        cmd.add_argument("key")

    audit = sub.add_parser("audit", help="List recent uploads")
    audit.add_argument("--application", default=None)
    audit.add_argument("--limit", type=int, default=20)
    audit.add_argument("--audit-db", default=None, help="Path to audit.db")

    return parser


def _fill_default_paths(args: argparse.Namespace) -> None:
    """Point unset database paths at the ones the gateway is configured with."""
    needs_audit_db = args.command == "audit" and args.audit_db is None
    if args.db is not None and not needs_audit_db:
        return
    config = load_config()
    if args.db is None:
        args.db = Path(config.registry.path)
    if needs_audit_db:
        args.audit_db = config.audit.path


async def _dispatch(args: argparse.Namespace) -> int:
    if args.command == "create":
        return await _create(args)
    if args.command == "disable":
        return await _set_disabled(args, True)
    if args.command == "enable":
        return await _set_disabled(args, False)
    if args.command == "show":
        return await _show(args)
    return await _audit(args)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    _fill_default_paths(args)
    try:
        return asyncio.run(_dispatch(args))
    except ValueError as exc:
        print(f"error: {exc}")
        return 2
    except (aiosqlite.Error, RuntimeError) as exc:
        print(f"error: {exc}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
