#!/usr/bin/env python3
"""
Run Alembic against the Mailsync schema.

Usage:
    python migrate.py current                     # Show current revision
    python migrate.py upgrade head                # Apply all migrations
    python migrate.py downgrade -1                # Revert one migration
    python migrate.py revision -m "Description"   # New migration, autogenerated from app.models
    python migrate.py history                     # Show migration history
"""

import subprocess
import sys
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(override=True)

CONFIG_PATH = Path(__file__).parent / "migrations" / "alembic.ini"


def build_command(args: list[str]) -> list[str]:
    """Alembic command line for `args`; revisions are always autogenerated."""
    args = list(args)
    if args and args[0] == "revision" and "--autogenerate" not in args:
        args.insert(1, "--autogenerate")
    return [sys.executable, "-m", "alembic", "-c", str(CONFIG_PATH), *args]


def main() -> None:
    try:
        result = subprocess.run(build_command(sys.argv[1:]), check=False)
        sys.exit(result.returncode)
    except KeyboardInterrupt:
        print("\nOperation cancelled by user")
        sys.exit(1)


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(1)

    main()
