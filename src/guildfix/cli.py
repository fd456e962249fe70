"""guildfix command line.

Restores Palworld player characters that were deleted from Level.sav while
their guild still lists them as members.

Usage:
    guildfix inspect <world dir | Level.sav>
    guildfix check   <world dir | Level.sav>
    guildfix repair  <world dir | Level.sav> [--output PATH] [--dry-run]
                     [--no-backup] [--backup-dir DIR]

A world directory is the folder holding Level.sav and Players/. Player
saves there supply each player's character instance id; with a bare
Level.sav the guild's own records are used instead.

Output formats (before the command):
    --format table    (default, human-readable)
    --format json     (machine-readable)

Exit codes: 0 ok, 1 corruption found by check, 2 unreadable or unsupported
save.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from . import __version__
from .core.corruption_locator import CorruptionReport, locate
from .core.file_operations import (
    BackupManager, load_player_instances, read_save, resolve_level_save, write_save,
)
from .core.patch_engine import PatchEngine, RepairMode, RepairOutcome, RepairResult
from .errors import SaveFormatError
from .formats.gvas.gvas_file import GvasFile
from .save_editor.world_save import WorldSave

logger = logging.getLogger("guildfix")

EXIT_OK = 0
EXIT_CORRUPTION = 1
EXIT_ERROR = 2


class CliError(Exception):
    """Stops the command with a message and EXIT_ERROR."""


def load_inputs(target: str):
    """Read Level.sav and the player identities next to it."""
    level_path, world_dir = resolve_level_save(target)
    if not level_path.is_file():
        raise CliError(f"Save not found: {level_path}")
    data = read_save(level_path)
    instances = load_player_instances(world_dir) if world_dir else {}
    return level_path, data, instances


# ═══════════════════════════════════════════════════════════════════════════════
# FORMATTING
# ═══════════════════════════════════════════════════════════════════════════════

def format_report_table(report: CorruptionReport) -> str:
    lines = [f"Checked {report.members_checked} members in {report.guilds_checked} guilds"]
    if report.is_clean:
        lines.append("No missing characters.")
        return "\n".join(lines)
    lines.append(f"{len(report)} member(s) without a character record:")
    for m in report:
        instance = m.instance_id or "unknown (supply the Players directory)"
        lines.append(f"  {m.player_name or '?':<20} player {m.player_uid}")
        lines.append(f"  {'':<20} guild  {m.guild_name or '?'} ({m.guild_id})")
        lines.append(f"  {'':<20} instance {instance}")
    return "\n".join(lines)


def format_result_table(result: RepairResult) -> str:
    lines = [format_report_table(result.report)] if result.report else []
    for diff in result.diffs:
        lines.append(f"+ {diff.field_path}: {diff.display_old} -> {diff.display_new}")
    return "\n".join(lines)


def emit(args, payload: dict, table: str):
    if args.format == "json":
        print(json.dumps(payload, indent=2, ensure_ascii=False))
    else:
        print(table)


# ═══════════════════════════════════════════════════════════════════════════════
# COMMANDS
# ═══════════════════════════════════════════════════════════════════════════════

def cmd_inspect(args) -> int:
    """Show the save header, guilds and members."""
    level_path, data, instances = load_inputs(args.path)
    container = GvasFile.from_bytes(data)
    world = WorldSave(container)

    guilds = []
    for guild in world.guilds():
        members = [
            {
                "player_uid": str(m.player_uid),
                "player_name": m.player_name,
                "has_character": world.has_player(m.player_uid),
            }
            for m in guild.members
        ]
        guilds.append({"guild_id": str(guild.guild_id), "name": guild.name, "members": members})

    payload = {
        "file": str(level_path),
        "format": container.compression,
        "engine": container.header.engine_version,
        "save_class": container.header.save_game_class_name,
        "characters": len(world),
        "player_saves": len(instances),
        "guilds": guilds,
    }

    lines = [f"File: {level_path}", container.summary(),
             f"Characters: {len(world)}", f"Player saves: {len(instances)}",
             f"Guilds: {len(guilds)}"]
    for guild in guilds:
        lines.append(f"  {guild['name'] or '?'} ({guild['guild_id']}): {len(guild['members'])} members")
        for m in guild["members"]:
            status = "ok" if m["has_character"] else "MISSING"
            lines.append(f"    [{status:>7}] {m['player_name'] or '?':<20} {m['player_uid']}")
    emit(args, payload, "\n".join(lines))
    return EXIT_OK


def cmd_check(args) -> int:
    """Report missing characters; exit 1 when there are any."""
    level_path, data, instances = load_inputs(args.path)
    world = WorldSave(GvasFile.from_bytes(data))
    report = locate(world, instances)
    emit(args, {"file": str(level_path), **report.to_dict()}, format_report_table(report))
    return EXIT_OK if report.is_clean else EXIT_CORRUPTION


def cmd_repair(args) -> int:
    """Restore missing characters and write the save."""
    level_path, data, instances = load_inputs(args.path)
    mode = RepairMode.PREVIEW if args.dry_run else RepairMode.MUTATE
    result = PatchEngine().run(data, mode, instances)

    if result.outcome == RepairOutcome.UNSUPPORTED:
        raise result.error

    payload = {"file": str(level_path), **result.to_dict()}
    lines = [format_result_table(result)]

    if result.writable:
        output = Path(args.output) if args.output else level_path
        written = write_save(
            output, result.data,
            backup=not args.no_backup,
            backup_manager=BackupManager(args.backup_dir),
        )
        if not written.success:
            raise CliError(written.message)
        payload["output"] = written.path
        payload["backup"] = written.backup_path
        lines.append(f"Wrote {written.path}")
        if written.backup_path:
            lines.append(f"Backup: {written.backup_path}")
    elif result.outcome == RepairOutcome.REPAIRED:
        lines.append("Dry run: nothing written.")

    emit(args, payload, "\n".join(lines))
    return EXIT_OK


# ═══════════════════════════════════════════════════════════════════════════════
# ENTRY POINT
# ═══════════════════════════════════════════════════════════════════════════════

def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog="guildfix",
        description="Restore Palworld characters missing from Level.sav "
                    "while their guild still lists them.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--format", choices=["table", "json"],
                        default="table", help="Output format (default: table)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    sub = parser.add_subparsers(dest="command", help="Command to run")

    p = sub.add_parser("inspect", help="Show guilds, members and character status")
    p.add_argument("path", help="World save directory or Level.sav")

    p = sub.add_parser("check", help="Report guild members without a character")
    p.add_argument("path", help="World save directory or Level.sav")

    p = sub.add_parser("repair", help="Recreate missing characters")
    p.add_argument("path", help="World save directory or Level.sav")
    p.add_argument("--output", "-o", help="Write here instead of overwriting Level.sav")
    p.add_argument("--dry-run", action="store_true", help="Show the repair, write nothing")
    p.add_argument("--no-backup", action="store_true", help="Do not back up the file first")
    p.add_argument("--backup-dir", help="Directory for backups (default: beside the file)")

    return parser


def main(argv: Optional[list] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if not args.command:
        parser.print_help()
        return EXIT_OK

    commands = {
        "inspect": cmd_inspect,
        "check": cmd_check,
        "repair": cmd_repair,
    }

    try:
        return commands[args.command](args)
    except (SaveFormatError, CliError) as e:
        logger.debug("Command failed", exc_info=True)
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_ERROR
    except OSError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
