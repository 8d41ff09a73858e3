from __future__ import annotations

import logging
import os
import sys
import tempfile
import time
from collections.abc import Generator
from collections.abc import Iterable
from contextlib import contextmanager
from typing import TYPE_CHECKING

from .jumperindex import DEFAULT_DECAY_FACTOR
from .jumperindex import DEFAULT_INCREMENT
from .jumperindex import DEFAULT_WEIGHT_CEILING
from .jumperindex import FrecencyIndex
from .jumpermodel import VisitRecord

if sys.platform != "win32":
    import fcntl

if TYPE_CHECKING:
    from typing import Protocol

    class _JumperConfig(Protocol):
        @property
        def data_path(self) -> str:
            ...

        @property
        def lock_timeout_seconds(self) -> float:
            ...

        @property
        def increment(self) -> float:
            ...

        @property
        def weight_ceiling(self) -> float:
            ...

        @property
        def decay_factor(self) -> float:
            ...


STORE_HEADER = "# dir-jumper store v1"


class CorruptStoreError(Exception):
    """The store file exists but could not be parsed."""


class JumperStore:
    """Text file store of visited directories and their weights."""

    logger = logging.getLogger("dir_jumper.JumperStore")

    def __init__(
        self,
        data_path: str,
        *,
        lock_timeout: float = 2.0,
        increment: float = DEFAULT_INCREMENT,
        weight_ceiling: float = DEFAULT_WEIGHT_CEILING,
        decay_factor: float = DEFAULT_DECAY_FACTOR,
    ) -> None:
        """
        Initialize a new JumperStore backed by the given file.

        The file is never held open between calls. Every change is a locked
        load, modify, save sequence and every save is an atomic replace, so
        shells sharing the file never observe a partial write.

        Args:
            data_path: The path to the store file. Created on first save.

        Keyword Args:
            lock_timeout: Seconds to wait for the store lock before raising
                TimeoutError. Defaults to 2.
            increment: Weight added per visit. Defaults to 10.
            weight_ceiling: Total weight that triggers decay. Defaults to 9000.
            decay_factor: Multiplier applied on decay. Defaults to 0.9.
        """
        self.logger.debug("Initializing JumperStore at %s", data_path)
        self._data_path = data_path
        self._lock_path = f"{data_path}.lock"
        self._lock_timeout = lock_timeout
        self._index_options = {
            "increment": increment,
            "weight_ceiling": weight_ceiling,
            "decay_factor": decay_factor,
        }

    @classmethod
    def from_config(cls, config: _JumperConfig) -> JumperStore:
        """Build a JumperStore from the given configuration."""
        return cls(
            config.data_path,
            lock_timeout=config.lock_timeout_seconds,
            increment=config.increment,
            weight_ceiling=config.weight_ceiling,
            decay_factor=config.decay_factor,
        )

    @property
    def data_path(self) -> str:
        """Return the path of the store file."""
        return self._data_path

    def build_index(self, records: dict[str, VisitRecord]) -> FrecencyIndex:
        """Return a FrecencyIndex over records using this store's settings."""
        return FrecencyIndex(records, **self._index_options)

    def load(self) -> dict[str, VisitRecord]:
        """
        Read every record from the store file. A missing file is an empty store.

        Raises:
            CorruptStoreError: A line in the file could not be parsed.
            OSError: The file exists but could not be read.
        """
        if not os.path.exists(self._data_path):
            self.logger.debug("No store at %s, starting empty", self._data_path)
            return {}

        # Paths are OS bytes; undecodable ones round-trip as surrogate escapes.
        with open(
            self._data_path, encoding="utf-8", errors="surrogateescape"
        ) as store_file:
            records = self._parse_lines(store_file)

        self.logger.debug("Loaded %s records from %s", len(records), self._data_path)
        return records

    def _parse_lines(self, lines: Iterable[str]) -> dict[str, VisitRecord]:
        """Parse store lines, merging duplicate paths."""
        records: dict[str, VisitRecord] = {}
        for line_number, line in enumerate(lines, start=1):
            if not line.strip() or line.startswith("#"):
                continue

            try:
                record = VisitRecord.from_line(line)
            except ValueError as error:
                raise CorruptStoreError(
                    f"{self._data_path}:{line_number}: {error}"
                ) from error

            existing = records.get(record.path)
            if existing is not None:
                record = VisitRecord(
                    record.path,
                    max(record.weight, existing.weight),
                    max(record.last_visit, existing.last_visit),
                )
            records[record.path] = record

        return records

    def load_or_empty(self) -> dict[str, VisitRecord]:
        """Load the store, treating a corrupt file as empty."""
        try:
            return self.load()
        except CorruptStoreError as error:
            self.logger.warning("Ignoring corrupt store: %s", error)
            return {}

    def save(self, records: dict[str, VisitRecord]) -> None:
        """
        Write all records to the store file through a temporary file and rename.

        Raises:
            OSError: The file could not be written. The store is unchanged.
        """
        directory = os.path.dirname(os.path.abspath(self._data_path))
        os.makedirs(directory, exist_ok=True)

        ordered = sorted(
            records.values(),
            key=lambda record: (-record.weight, record.path),
        )

        fd, tmp_path = tempfile.mkstemp(
            dir=directory,
            prefix=f".{os.path.basename(self._data_path)}.",
            suffix=".tmp",
        )
        try:
            with os.fdopen(
                fd, "w", encoding="utf-8", errors="surrogateescape"
            ) as tmp_file:
                tmp_file.write(STORE_HEADER + "\n")
                for record in ordered:
                    tmp_file.write(record.as_line() + "\n")
                tmp_file.flush()
                os.fsync(tmp_file.fileno())
            os.replace(tmp_path, self._data_path)

        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

        self.logger.debug("Saved %s records to %s", len(ordered), self._data_path)

    @contextmanager
    def _locked(self) -> Generator[None, None, None]:
        """Hold the exclusive store lock for the duration of the block."""
        if sys.platform == "win32":
            # No flock on Windows, concurrent writers are last-writer-wins.
            yield
            return

        os.makedirs(os.path.dirname(os.path.abspath(self._lock_path)), exist_ok=True)
        fd = os.open(self._lock_path, os.O_CREAT | os.O_RDWR, 0o600)
        try:
            deadline = time.monotonic() + self._lock_timeout
            while True:
                try:
                    fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                    break
                except BlockingIOError:
                    if time.monotonic() >= deadline:
                        raise TimeoutError(
                            f"Could not lock {self._lock_path} "
                            f"within {self._lock_timeout}s"
                        ) from None
                    time.sleep(0.01)

            try:
                yield
            finally:
                fcntl.flock(fd, fcntl.LOCK_UN)

        finally:
            os.close(fd)

    @contextmanager
    def modify(self) -> Generator[dict[str, VisitRecord], None, None]:
        """
        Yield the loaded records under the store lock and save them afterwards.

        Changes made to the yielded dictionary are saved when the block exits
        cleanly. A corrupt store is replaced by whatever the block leaves.
        """
        with self._locked():
            records = self.load_or_empty()
            yield records
            self.save(records)

    def record_visit(self, path: str, now: int | None = None) -> VisitRecord | None:
        """
        Add one visit to path and save the store.

        Returns:
            The updated record, or None if the path cannot be stored.
        """
        if not _is_storable(path):
            self.logger.debug("Skipping unstorable path %r", path)
            return None

        with self.modify() as records:
            index = self.build_index(records)
            record = index.add_or_update(path, now)
            if index.decay_if_needed():
                record = index.records[record.path]

            records.clear()
            records.update(index.records)

        return record

    def adjust(self, path: str, delta: float) -> VisitRecord | None:
        """Change the weight of path by delta and save the store."""
        if not _is_storable(path):
            self.logger.debug("Skipping unstorable path %r", path)
            return None

        with self.modify() as records:
            index = self.build_index(records)
            record = index.adjust(path, delta)
            records[record.path] = record

        return record

    def purge_missing(self) -> int:
        """Remove every record whose directory no longer exists."""
        with self.modify() as records:
            missing = [path for path in records if not os.path.isdir(path)]
            for path in missing:
                self.logger.debug("Purging missing directory %s", path)
                del records[path]

        self.logger.info("Purged %s records", len(missing))
        return len(missing)


def _is_storable(path: str) -> bool:
    """True if the path can be written as a single store line."""
    return bool(path) and "\t" not in path and "\n" not in path and "\r" not in path
