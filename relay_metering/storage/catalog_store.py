"""
Durable pricing catalog storage.

Keeps the live catalog as a JSON array in ``<data_dir>/model_pricing.json``
and backups beside it as ``model_pricing.backup.<epoch_ms>.json``. Every file
is written to a temporary sibling first and moved into place, so readers see
either the old or the new content.
"""

import os
import re
import tempfile
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, List, Union

import simplejson as json
import structlog

from relay_metering.core.adjuster import BackupSnapshot, adjust_catalog
from relay_metering.core.errors import MalformedCatalog
from relay_metering.core.pricing import PricingCatalog, load_catalog

from .models import StoredBackup

logger = structlog.get_logger()

PRICING_FILENAME = "model_pricing.json"
BACKUP_PATTERN = re.compile(r"^model_pricing\.backup\.(\d+)\.json$")


def backup_filename(created_at: datetime) -> str:
    return f"model_pricing.backup.{int(created_at.timestamp() * 1000)}.json"


class CatalogStore:
    """File-backed catalog with timestamped backups.

    Adjustments through one store are serialized by a process-local lock.
    Coordinating several processes on the same directory is the operator's
    responsibility.
    """

    def __init__(self, data_dir: Union[str, Path] = "data"):
        self.data_dir = Path(data_dir)
        self.pricing_path = self.data_dir / PRICING_FILENAME
        self._lock = threading.Lock()

    def load(self) -> PricingCatalog:
        """Load the live catalog.

        Raises:
            FileNotFoundError: If the pricing file does not exist
            MalformedCatalog: If the file is not a valid pricing catalog
        """
        if not self.pricing_path.exists():
            raise FileNotFoundError(f"Pricing file not found: {self.pricing_path}")
        catalog = load_catalog(self._read_json(self.pricing_path))
        logger.debug("Catalog loaded", path=str(self.pricing_path), models=len(catalog))
        return catalog

    def save(self, catalog: PricingCatalog) -> None:
        """Replace the live catalog atomically."""
        self._write_json(self.pricing_path, catalog.to_records())
        logger.info("Catalog saved", path=str(self.pricing_path), models=len(catalog))

    def apply_adjustment(
        self,
        multiplier: Any,
        clock: Callable[[], datetime] = datetime.now
    ) -> StoredBackup:
        """Adjust every stored price by ``multiplier``, keeping a backup.

        The backup file is written before the live file is replaced. If the
        replacement fails the backup is removed again, so either both changes
        are visible or neither is.

        Args:
            multiplier: Positive scalar applied to every present price
            clock: Source of the backup timestamp

        Returns:
            StoredBackup describing the backup file

        Raises:
            InvalidMultiplier: If multiplier is not a positive finite number
            FileNotFoundError: If there is no live catalog
            MalformedCatalog: If the live catalog is invalid
        """
        with self._lock:
            adjusted, backup = adjust_catalog(self.load(), multiplier, clock=clock)

            stored = self._store_backup(backup)
            try:
                self._write_json(self.pricing_path, adjusted.to_records())
            except Exception:
                stored.path.unlink()
                logger.error("Catalog adjustment failed, backup removed", backup=stored.name)
                raise

        logger.info(
            "Catalog adjusted",
            multiplier=str(multiplier),
            models=len(adjusted),
            backup=stored.name,
        )
        return stored

    def list_backups(self) -> List[StoredBackup]:
        """List backups, newest first."""
        if not self.data_dir.exists():
            return []
        backups = []
        for path in self.data_dir.iterdir():
            match = BACKUP_PATTERN.match(path.name)
            if match:
                created_at = datetime.fromtimestamp(int(match.group(1)) / 1000)
                backups.append(StoredBackup(name=path.name, path=path, created_at=created_at))
        return sorted(backups, key=lambda b: b.created_at, reverse=True)

    def load_backup(self, name: str) -> BackupSnapshot:
        """Load a backup by file name.

        Raises:
            FileNotFoundError: If no backup has that name
            MalformedCatalog: If the backup file is invalid
        """
        stored = self._find_backup(name)
        return BackupSnapshot(
            catalog=load_catalog(self._read_json(stored.path)),
            created_at=stored.created_at,
        )

    def restore(self, name: str) -> PricingCatalog:
        """Reinstall a backup as the live catalog.

        The backup itself is kept.
        """
        with self._lock:
            catalog = self.load_backup(name).catalog
            self._write_json(self.pricing_path, catalog.to_records())
        logger.info("Catalog restored", backup=name, models=len(catalog))
        return catalog

    def discard_backup(self, name: str) -> None:
        """Delete a backup file."""
        stored = self._find_backup(name)
        stored.path.unlink()
        logger.info("Backup discarded", backup=name)

    def _store_backup(self, backup: BackupSnapshot) -> StoredBackup:
        name = backup_filename(backup.created_at)
        path = self.data_dir / name
        if path.exists():
            raise FileExistsError(f"Backup already exists: {path}")
        self._write_json(path, backup.catalog.to_records())
        return StoredBackup(name=name, path=path, created_at=backup.created_at)

    def _find_backup(self, name: str) -> StoredBackup:
        # Only bare backup file names are accepted, never paths
        match = BACKUP_PATTERN.match(name)
        path = self.data_dir / name
        if not match or not path.is_file():
            raise FileNotFoundError(f"Backup not found: {name}")
        return StoredBackup(
            name=name,
            path=path,
            created_at=datetime.fromtimestamp(int(match.group(1)) / 1000),
        )

    @staticmethod
    def _read_json(path: Path):
        with open(path, 'r', encoding='utf-8') as f:
            try:
                return json.load(f, use_decimal=True)
            except json.JSONDecodeError as e:
                raise MalformedCatalog(f"Invalid JSON in {path}: {e}") from e

    def _write_json(self, path: Path, records) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=str(self.data_dir), prefix=".tmp-", suffix=".json")
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(records, f, indent=2, use_decimal=True)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
