#!/usr/bin/env python3
"""Print the run logs of a task from the local data directory.

Usage examples:
    # Everything logged for task 3 (legacy file first, then daily files)
    python scripts/logs.py 3

    # Only the last 40 lines, from a specific data directory
    python scripts/logs.py 3 --data-dir /var/lib/opencron --tail 40

    # Only the started/finished/failed marker lines
    python scripts/logs.py 3 --markers
"""

import argparse
import sys
from pathlib import Path

# Allow running from project root
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from opencron.config import settings
from opencron.scheduler.logfiles import read_task_logs

_COLORS = {
    "failed": "\033[31m",  # red
    "finished successfully": "\033[32m",  # green
    "started at": "\033[36m",  # cyan
}
_RESET = "\033[0m"


def format_line(line: str, color: bool) -> str:
    """Colorize run marker lines."""
    if not color or not line.startswith("--- "):
        return line
    for needle, code in _COLORS.items():
        if needle in line:
            return f"{code}{line}{_RESET}"
    return line


def main() -> None:
    parser = argparse.ArgumentParser(description="Show opencron task logs")
    parser.add_argument("task_id", type=int, help="Task ID")
    parser.add_argument(
        "--data-dir", type=Path, default=settings.data_dir, help="Data directory (default: DATA_DIR)"
    )
    parser.add_argument("--tail", "-n", type=int, help="Only show the last N lines")
    parser.add_argument("--markers", action="store_true", help="Only show run marker lines")
    parser.add_argument("--no-color", action="store_true", help="Disable color output")
    args = parser.parse_args()

    content = read_task_logs(args.data_dir / "logs", args.task_id)
    if content is None:
        print("No logs found for this task.")
        return

    lines = content.splitlines()
    if args.markers:
        lines = [line for line in lines if line.startswith("--- ")]
    if args.tail:
        lines = lines[-args.tail :]

    color = not args.no_color and sys.stdout.isatty()
    for line in lines:
        print(format_line(line, color))


if __name__ == "__main__":
    main()
