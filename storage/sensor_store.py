from __future__ import annotations

import os
from contextlib import contextmanager
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import BinaryIO, Dict, Iterator, List, Optional

from models.codec import RECORD_SIZE, RecordFormatError, decode_reading, encode_reading
from models.records import SensorReading
from settings import get_settings

STORE_SUFFIX = ".dat"


class StorageError(Exception):
    """Raised when a sensor store file cannot be opened, read or written."""


class UnknownSensorError(KeyError):
    """Raised when reading from a sensor that has never been logged."""


class SensorStore:
    """Directory of append-only ``<sensor_id>.dat`` files, one per sensor.

    Record counts are derived from file length. Every call opens and closes
    the file; access to each sensor is serialized by a per-sensor lock so
    that callers on worker threads never interleave writes.
    """

    def __init__(self, root_path: Path) -> None:
        self.root_path = root_path
        self._locks: Dict[str, Lock] = {}
        self._locks_guard = Lock()
        root_path.mkdir(parents=True, exist_ok=True)

    def path_for(self, sensor_id: str) -> Path:
        return self.root_path / f"{sensor_id}{STORE_SUFFIX}"

    def exists(self, sensor_id: str) -> bool:
        return self.path_for(sensor_id).is_file()

    def record_count(self, sensor_id: str) -> int:
        with self._lock_for(sensor_id):
            return self._record_count(sensor_id)

    def append(self, reading: SensorReading) -> int:
        """Write ``reading`` at the end of its sensor's store.

        Returns the number of records stored after the write. A torn partial
        record left at the end of the file is cut off first so the new record
        starts on a record boundary.
        """
        block = encode_reading(reading)
        path = self.path_for(reading.sensor_id)
        with self._lock_for(reading.sensor_id):
            try:
                with path.open("ab") as handle:
                    size = os.fstat(handle.fileno()).st_size
                    aligned = size - size % RECORD_SIZE
                    if aligned != size:
                        handle.truncate(aligned)
                    handle.write(block)
                    total = aligned // RECORD_SIZE + 1
            except OSError as exc:
                raise StorageError(f"Unable to append to {path}: {exc}") from exc
        return total

    def read_suffix(self, sensor_id: str, count: int) -> List[SensorReading]:
        """Return up to ``count`` most recent readings, oldest first."""
        if count <= 0:
            return []

        with self._lock_for(sensor_id):
            with self._open_for_read(sensor_id) as handle:
                total = os.fstat(handle.fileno()).st_size // RECORD_SIZE
                count = min(count, total)
                handle.seek((total - count) * RECORD_SIZE)
                try:
                    payload = handle.read(count * RECORD_SIZE)
                except OSError as exc:
                    raise StorageError(
                        f"Unable to read store for sensor {sensor_id!r}: {exc}"
                    ) from exc

        if len(payload) != count * RECORD_SIZE:
            raise StorageError(f"Store for sensor {sensor_id!r} shrank during read.")
        try:
            return [
                decode_reading(payload[offset : offset + RECORD_SIZE])
                for offset in range(0, len(payload), RECORD_SIZE)
            ]
        except RecordFormatError as exc:
            raise StorageError(f"Corrupt record in store for {sensor_id!r}: {exc}") from exc

    def _record_count(self, sensor_id: str) -> int:
        path = self.path_for(sensor_id)
        try:
            return path.stat().st_size // RECORD_SIZE
        except FileNotFoundError as exc:
            raise UnknownSensorError(sensor_id) from exc
        except OSError as exc:
            raise StorageError(f"Unable to stat {path}: {exc}") from exc

    @contextmanager
    def _open_for_read(self, sensor_id: str) -> Iterator[BinaryIO]:
        path = self.path_for(sensor_id)
        try:
            handle = path.open("rb")
        except FileNotFoundError as exc:
            raise UnknownSensorError(sensor_id) from exc
        except OSError as exc:
            raise StorageError(f"Unable to open {path}: {exc}") from exc
        with handle:
            yield handle

    def _lock_for(self, sensor_id: str) -> Lock:
        with self._locks_guard:
            lock = self._locks.get(sensor_id)
            if lock is None:
                lock = Lock()
                self._locks[sensor_id] = lock
            return lock


@lru_cache
def build_default_store(root_path: Optional[str] = None) -> SensorStore:
    settings = get_settings()
    store_root = settings.data_dir if root_path is None else root_path
    return SensorStore(root_path=Path(store_root))
