#!/usr/bin/env python3
"""
guildfix - Palworld guild save repair

Runs the command line from a source checkout without installing it.

Usage:
    python launch.py <world dir>                 (same as "repair <world dir>")
    python launch.py check <world dir>
    python launch.py --format json inspect <world dir>
"""

import sys
from pathlib import Path

# Setup paths
root_dir = Path(__file__).parent
src_dir = root_dir / "src"
sys.path.insert(0, str(src_dir))

COMMANDS = {"inspect", "check", "repair"}


def main() -> int:
    from guildfix.cli import main as cli_main

    argv = sys.argv[1:]
    # A bare path means "repair <path>"
    if len(argv) == 1 and argv[0] not in COMMANDS and not argv[0].startswith("-"):
        argv = ["repair", argv[0]]
    return cli_main(argv)


if __name__ == "__main__":
    sys.exit(main())
