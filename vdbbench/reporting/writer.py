"""
Report directory management.

Every run gets a fresh numbered directory below
``<reports>/additional_data/<scope...>/`` so that results of repeated runs are
never overwritten::

    reports/additional_data/qdrant/0000/open.json
    reports/additional_data/qdrant/0000/query_throughput/recall_data.jsonl
    reports/additional_data/qdrant/0000/close.json
"""

import json
import logging
import subprocess
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Optional, Union

logger = logging.getLogger(__name__)

ADDITIONAL_DATA_DIR = "additional_data"


def get_git_hash() -> Optional[str]:
    """Commit of the working directory, or None outside a git checkout."""
    try:
        out = subprocess.run(
            ["git", "rev-parse", "HEAD"],
            capture_output=True,
            text=True,
            check=True,
        )
    except (OSError, subprocess.CalledProcessError):
        return None
    return out.stdout.strip() or None


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def create_next_dir(parent: Path) -> Path:
    """
    Create the next free run directory (``0000``, ``0001``, ... in hex).

    Entries whose name is not a hex number are ignored.
    """
    parent.mkdir(parents=True, exist_ok=True)
    highest = -1
    for entry in parent.iterdir():
        try:
            highest = max(highest, int(entry.name, 16))
        except ValueError:
            continue

    index = highest + 1
    while True:
        candidate = parent / f"{index:04x}"
        try:
            candidate.mkdir()
            return candidate
        except FileExistsError:
            # Another run claimed it first
            index += 1


class ResourceWriter:
    """
    Writes JSON files into one run directory.

    Files are written once: ``write_file`` refuses to replace an existing
    file. Append-only logs go through ``append_line``.
    """

    def __init__(self, out_dir: Union[str, Path]):
        self.out_dir = Path(out_dir)

    @classmethod
    def create(
        cls,
        reports_root: Union[str, Path],
        scope: Iterable[str],
    ) -> "ResourceWriter":
        """
        Open a new run directory and record ``open.json``.

        Args:
            reports_root: Root of the reports tree
            scope: Path segments below ``additional_data``, e.g. ``["qdrant"]``

        Returns:
            Writer for the new run directory
        """
        parent = Path(reports_root) / ADDITIONAL_DATA_DIR
        for segment in scope:
            parent = parent / segment
        writer = cls(create_next_dir(parent))
        writer.write_file("open.json", {"git": get_git_hash(), "date": _now()})
        logger.info("Writing results to %s", writer.out_dir)
        return writer

    def sub_writer(self, scope: str) -> "ResourceWriter":
        out_dir = self.out_dir / scope
        out_dir.mkdir(parents=True, exist_ok=True)
        return ResourceWriter(out_dir)

    def path(self, name: str) -> Path:
        return self.out_dir / name

    def write_file(self, name: str, data: Any) -> Path:
        """
        Write ``data`` as JSON to a new file.

        Raises:
            FileExistsError: If the file already exists
        """
        path = self.path(name)
        with open(path, "x", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
            f.write("\n")
        return path

    def append_line(self, name: str, data: Any) -> None:
        with open(self.path(name), "a", encoding="utf-8") as f:
            f.write(json.dumps(data, separators=(",", ":")) + "\n")

    def write_close_msg(self) -> None:
        self.write_file("close.json", {"date": _now()})
