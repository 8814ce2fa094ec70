# installer/run_ledger.py
# -*- coding: utf-8 -*-
"""
Append-only run ledger.

One ledger file is written per invocation, named setup_<YYYYMMDD_HHMMSS>.log.
Every entry is flushed and fsynced as it is appended, so a crash mid-run keeps
the trailing entries. The ledger is also a logging.Handler: attached to the
project logger it receives exactly the text the console shows.
"""

import datetime
import logging
import os
from pathlib import Path
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict

LEDGER_FILENAME_FORMAT = "setup_%Y%m%d_%H%M%S.log"
LEDGER_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


class LedgerEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamp: datetime.datetime
    severity: str
    message: str

    def render(self) -> str:
        return (
            f"{self.timestamp.strftime(LEDGER_TIMESTAMP_FORMAT)} "
            f"[{self.severity}] {self.message}"
        )


def ledger_path_for(
    directory: str, started_at: Optional[datetime.datetime] = None
) -> Path:
    started_at = started_at or datetime.datetime.now()
    return Path(directory) / started_at.strftime(LEDGER_FILENAME_FORMAT)


class RunLedger(logging.Handler):
    """
    Timestamped, append-only audit log of one provisioning run.

    Entries are kept in memory (read-only view via ``entries``) and written to
    ``path`` synchronously.
    """

    def __init__(self, path: Path, level: int = logging.DEBUG):
        super().__init__(level=level)
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._entries: List[LedgerEntry] = []
        self._stream = open(self.path, "a", encoding="utf-8")

    @classmethod
    def open_for_run(
        cls, directory: str, started_at: Optional[datetime.datetime] = None
    ) -> "RunLedger":
        return cls(ledger_path_for(directory, started_at))

    @property
    def entries(self) -> Tuple[LedgerEntry, ...]:
        return tuple(self._entries)

    def record(self, severity: str, message: str) -> LedgerEntry:
        entry = LedgerEntry(
            timestamp=datetime.datetime.now(),
            severity=severity.upper(),
            message=message,
        )
        self._entries.append(entry)
        if self._stream is not None:
            self._stream.write(entry.render() + "\n")
            self._stream.flush()
            os.fsync(self._stream.fileno())
        return entry

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.record(record.levelname, record.getMessage())
        except Exception:
            self.handleError(record)

    def finalize(
        self, exit_code: int, current_logger: Optional[logging.Logger] = None
    ) -> None:
        """
        Write the closing entry and release the file.

        When ``current_logger`` is given the closing line goes through it, so
        the console shows it too; this handler must be attached to that
        logger (directly or through propagation).
        """
        if exit_code == 0:
            severity, level = "INFO", logging.INFO
            message = "Run finished successfully (exit status 0)."
        else:
            severity, level = "CRITICAL", logging.CRITICAL
            message = f"Run aborted (exit status {exit_code})."
        if current_logger is not None:
            current_logger.log(level, message)
        else:
            self.record(severity, message)
        self.close()

    def close(self) -> None:
        self.acquire()
        try:
            if self._stream is not None:
                self._stream.close()
                self._stream = None
        finally:
            self.release()
        super().close()
