"""
File-based store of period snapshots.

Each saved period is one JSON file ``<year>-<month>.json`` holding the full
PeriodSnapshot (ledgers and the configuration in force at the time) so the
period can be recomputed later with exactly the rules it was paid under.
Saving the same period again replaces the earlier file.
"""
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Union

from ..models.schemas import PeriodSnapshot, SavedReportMetadata

logger = logging.getLogger(__name__)


def _validate_period(year: int, month: int) -> None:
    if not 1 <= int(month) <= 12:
        raise ValueError(f"Month must be between 1 and 12, got {month}")
    if int(year) <= 0:
        raise ValueError(f"Year must be positive, got {year}")


class SnapshotStore:
    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def _path(self, year: int, month: int) -> Path:
        return self.directory / f"{int(year)}-{int(month):02d}.json"

    def save(self, year: int, month: int, snapshot: PeriodSnapshot) -> SavedReportMetadata:
        _validate_period(year, month)
        metadata = SavedReportMetadata(
            year=year, month=month, created_at=datetime.now(timezone.utc)
        )
        payload = {
            "metadata": metadata.model_dump(mode="json"),
            "snapshot": snapshot.model_dump(mode="json"),
        }
        path = self._path(year, month)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
        logger.info("Snapshot for %s-%02d written to %s", year, month, path)
        return metadata

    def load(self, year: int, month: int) -> PeriodSnapshot:
        """Load a stored snapshot; legacy camelCase files are accepted."""
        _validate_period(year, month)
        path = self._path(year, month)
        if not path.exists():
            logger.error(f"No snapshot stored for {year}-{month:02d}")
            raise FileNotFoundError(f"No snapshot stored for {year}-{month:02d}")

        payload = json.loads(path.read_text(encoding="utf-8"))
        return PeriodSnapshot.from_legacy(payload.get("snapshot", payload))

    def list_reports(self) -> List[SavedReportMetadata]:
        """Metadata of all stored periods, newest period first."""
        if not self.directory.exists():
            return []

        reports = []
        for path in self.directory.glob("*.json"):
            try:
                payload = json.loads(path.read_text(encoding="utf-8"))
                reports.append(SavedReportMetadata.model_validate(payload["metadata"]))
            except (ValueError, KeyError, TypeError) as e:
                logger.warning(f"Skipping unreadable snapshot file {path.name}: {e}")
        return sorted(reports, key=lambda r: (r.year, r.month), reverse=True)

    def exists(self, year: int, month: int) -> bool:
        return self._path(year, month).exists()
