"""
Command line access to the data core.

Usage:
    examdesk [--data-dir DIR] [--verbose] stats
    examdesk export FILE
    examdesk import FILE
    examdesk backups list|create
    examdesk backups restore KEY | delete KEY | export ZIP
    examdesk backups settings [--enable|--disable] [--interval I] [--max-backups N]
    examdesk legacy scan
"""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import List, Optional

from .app import DataCore
from .backup import BackupInterval
from .config import CoreConfig, get_data_dir
from .migration import LegacyScanner
from .storage.keyvalue import format_size

logger = logging.getLogger("examdesk.cli")


def _cmd_stats(core: DataCore, args: argparse.Namespace) -> int:
    for name, count in core.store.get_data_stats().items():
        print(f"{name:<18} {count}")
    return 0


def _cmd_export(core: DataCore, args: argparse.Namespace) -> int:
    args.file.write_text(core.store.export_data(), encoding="utf-8")
    print(f"Exported to {args.file}")
    return 0


def _cmd_import(core: DataCore, args: argparse.Namespace) -> int:
    try:
        text = args.file.read_text(encoding="utf-8")
    except OSError as e:
        logger.error(f"Cannot read {args.file}: {e}")
        return 1
    result = core.store.import_data(text)
    print(result.message)
    return 0 if result.success else 1


def _cmd_backups_list(core: DataCore, args: argparse.Namespace) -> int:
    backups = core.backups.list_backups()
    if not backups:
        print("No backups")
        return 0
    for entry in backups:
        counts = ", ".join(f"{k}={v}" for k, v in entry.preview.items())
        print(f"{entry.key}  {entry.size_label:>9}  {counts}")
    return 0


def _cmd_backups_create(core: DataCore, args: argparse.Namespace) -> int:
    if not core.backups.create_backup():
        print("Backup not created (another backup is in progress or storage failed)")
        return 1
    print("Backup created")
    return 0


def _cmd_backups_restore(core: DataCore, args: argparse.Namespace) -> int:
    if not core.backups.restore_from_backup(args.key):
        print(f"Could not restore {args.key}")
        return 1
    print(f"Restored {args.key}")
    return 0


def _cmd_backups_delete(core: DataCore, args: argparse.Namespace) -> int:
    if not core.backups.delete_backup(args.key):
        print(f"Could not delete {args.key}")
        return 1
    print(f"Deleted {args.key}")
    return 0


def _cmd_backups_export(core: DataCore, args: argparse.Namespace) -> int:
    path = core.backups.export_backups_as_zip(args.file)
    print(f"Exported backups to {path}")
    return 0


def _cmd_backups_settings(core: DataCore, args: argparse.Namespace) -> int:
    changes = {}
    if args.enabled is not None:
        changes["enabled"] = args.enabled
    if args.interval is not None:
        changes["interval"] = args.interval
    if args.max_backups is not None:
        changes["max_backups"] = args.max_backups
    if changes:
        try:
            core.backups.update_settings(**changes)
        except ValueError as e:
            logger.error(f"Invalid backup settings: {e}")
            return 1
    print(json.dumps(core.backups.settings.to_dict(), indent=2))
    return 0


def _cmd_legacy_scan(core: DataCore, args: argparse.Namespace) -> int:
    candidates = LegacyScanner(core.storage, clock=core.store.clock).scan()
    if not candidates:
        print("No legacy data found")
        return 0
    for c in candidates:
        status = "valid" if c.valid else "empty"
        fields = ", ".join(c.data_fields) or "-"
        print(f"{c.key}  {format_size(c.size):>9}  {c.last_modified}  {status}  fields: {fields}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="examdesk", description="Exam dashboard data core")
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=None,
        help="Storage directory (default: $EXAMDESK_DATA_DIR or the app-data dir)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("stats", help="Show collection counts").set_defaults(func=_cmd_stats)

    p = sub.add_parser("export", help="Export tests and attempts as JSON")
    p.add_argument("file", type=Path)
    p.set_defaults(func=_cmd_export)

    p = sub.add_parser("import", help="Replace tests and attempts from an export")
    p.add_argument("file", type=Path)
    p.set_defaults(func=_cmd_import)

    backups = sub.add_parser("backups", help="Manage backups")
    bsub = backups.add_subparsers(dest="backups_command", required=True)
    bsub.add_parser("list", help="List backups, newest first").set_defaults(func=_cmd_backups_list)
    bsub.add_parser("create", help="Take a backup now").set_defaults(func=_cmd_backups_create)

    p = bsub.add_parser("restore", help="Restore a backup")
    p.add_argument("key")
    p.set_defaults(func=_cmd_backups_restore)

    p = bsub.add_parser("delete", help="Delete a backup")
    p.add_argument("key")
    p.set_defaults(func=_cmd_backups_delete)

    p = bsub.add_parser("export", help="Export all backups to a ZIP archive")
    p.add_argument("file", type=Path)
    p.set_defaults(func=_cmd_backups_export)

    p = bsub.add_parser("settings", help="Show or change backup settings")
    toggle = p.add_mutually_exclusive_group()
    toggle.add_argument("--enable", dest="enabled", action="store_const", const=True)
    toggle.add_argument("--disable", dest="enabled", action="store_const", const=False)
    p.add_argument("--interval", choices=[i.value for i in BackupInterval])
    p.add_argument("--max-backups", type=int)
    p.set_defaults(func=_cmd_backups_settings)

    legacy = sub.add_parser("legacy", help="Inspect legacy data")
    lsub = legacy.add_subparsers(dest="legacy_command", required=True)
    lsub.add_parser("scan", help="List legacy candidates").set_defaults(func=_cmd_legacy_scan)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    config = CoreConfig(data_dir=args.data_dir or get_data_dir())
    core = DataCore(config)
    try:
        return args.func(core, args)
    finally:
        core.store.save()
