"""Flat JSON document store for the alert record log.

The whole log is one JSON array, read fully at startup and rewritten fully
after every mutation. Writes go to a sibling temp file first and are moved
into place with ``os.replace`` so a crash never leaves a half-written file.

CRITICAL: Decimal fields are stored as strings, restored as Decimal on read.
"""

import json
import os
from pathlib import Path

from rsi_monitor.exceptions import AlertStoreError
from rsi_monitor.logging import get_logger
from rsi_monitor.models import AlertRecord

logger = get_logger(__name__)


class AlertStore:
    """Reads and writes the alert log document at ``path``."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> list[AlertRecord]:
        """Load every record.

        A missing or unreadable file is an empty log. A document that cannot be
        parsed (bad JSON, wrong shape, unknown or missing record fields) is
        moved aside to ``<path>.corrupt`` before an empty log is returned, so
        the next save never overwrites it.
        """
        if not self._path.exists():
            return []
        try:
            text = self._path.read_text(encoding="utf-8")
        except OSError as e:
            logger.warning("alert_store_load_failed", path=str(self._path), error=str(e))
            return []
        try:
            raw = json.loads(text)
            if not isinstance(raw, list):
                raise ValueError("alert store root must be a JSON array")
            records = [AlertRecord.from_dict(item) for item in raw]
        except (ValueError, TypeError, KeyError, ArithmeticError) as e:
            self._quarantine(e)
            return []
        logger.info("alert_store_loaded", path=str(self._path), records=len(records))
        return records

    def _quarantine(self, error: Exception) -> None:
        corrupt_path = self._path.with_name(self._path.name + ".corrupt")
        try:
            os.replace(self._path, corrupt_path)
        except OSError as e:
            logger.error(
                "alert_store_quarantine_failed",
                path=str(self._path),
                error=str(e),
            )
            return
        logger.warning(
            "alert_store_load_failed",
            path=str(self._path),
            moved_to=str(corrupt_path),
            error=str(error),
        )

    def save(self, records: list[AlertRecord]) -> None:
        """Rewrite the full log.

        Raises:
            AlertStoreError: If the document cannot be written.
        """
        payload = json.dumps([r.to_dict() for r in records], indent=2)
        tmp_path = self._path.with_name(self._path.name + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(payload, encoding="utf-8")
            os.replace(tmp_path, self._path)
        except OSError as e:
            raise AlertStoreError(f"cannot write {self._path}: {e}") from e
