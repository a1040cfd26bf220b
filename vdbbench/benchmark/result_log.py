"""
Append-only result log.

Worker threads never touch the file. They put entries on a queue that a
single writer thread drains, writing one complete JSON line per entry and
flushing after each, so an interrupted run still leaves a valid log.
"""

import json
import logging
import queue
import threading
from pathlib import Path
from typing import Iterator, Optional, Union

from vdbbench.core.types import ResultLogEntry

logger = logging.getLogger(__name__)

RESULT_LOG_NAME = "recall_data.jsonl"

_STOP = object()


class ResultLogSink:
    """
    Thread-safe sink for ``ResultLogEntry`` objects.

    Example:
        with ResultLogSink(run_dir / "recall_data.jsonl") as sink:
            sink.submit(entry)
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._queue: "queue.Queue" = queue.Queue()
        self._error: Optional[BaseException] = None
        self._written = 0
        self._thread: Optional[threading.Thread] = None

    @property
    def written(self) -> int:
        """Number of lines written so far."""
        return self._written

    def open(self) -> "ResultLogSink":
        if self._thread is not None:
            raise RuntimeError("sink already open")
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._thread = threading.Thread(target=self._drain, name="result-log-writer", daemon=True)
        self._thread.start()
        return self

    def submit(self, entry: ResultLogEntry) -> None:
        if self._thread is None:
            raise RuntimeError("sink is not open")
        if self._error is not None:
            raise RuntimeError(f"result log writer failed: {self._error}") from self._error
        self._queue.put(entry)

    def close(self) -> None:
        """Flush pending entries, stop the writer and re-raise any write error."""
        if self._thread is None:
            return
        self._queue.put(_STOP)
        self._thread.join()
        self._thread = None
        if self._error is not None:
            raise self._error

    def _drain(self) -> None:
        # Opened in append mode, never truncated
        with open(self.path, "a", encoding="utf-8") as f:
            while True:
                item = self._queue.get()
                if item is _STOP:
                    return
                if self._error is not None:
                    continue
                try:
                    f.write(json.dumps(item.to_dict(), separators=(",", ":")) + "\n")
                    f.flush()
                    self._written += 1
                except OSError as e:
                    logger.error("Writing %s failed: %s", self.path, e)
                    self._error = e

    def __enter__(self) -> "ResultLogSink":
        return self.open()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


def read_result_log(path: Union[str, Path]) -> Iterator[ResultLogEntry]:
    """
    Read a result log.

    Lines that are not valid entries (e.g. the last line of a log whose
    writer was killed) are skipped with a warning.
    """
    path = Path(path)
    with open(path, encoding="utf-8") as f:
        for line_number, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                yield ResultLogEntry.from_dict(json.loads(line))
            except (ValueError, KeyError, TypeError) as e:
                logger.warning("Skipping malformed line %d of %s: %s", line_number, path, e)
