from __future__ import annotations

import itertools
import logging
import os
import subprocess
import sys
from collections.abc import Iterator
from collections.abc import Sequence

from .jumperconfig import JumperConfig
from .jumperindex import FrecencyIndex
from .jumpermodel import VisitRecord
from .jumperstore import JumperStore


class NoMatchError(Exception):
    """No visited directory matches the query."""


class Jumper:
    """Record directory visits and resolve queries to visited directories."""

    logger = logging.getLogger(__name__)

    def __init__(self, config: JumperConfig) -> None:
        """
        Initialize a new Jumper.

        Args:
            config: The configuration to use for this jumper.
        """
        self._config = config
        self._store = JumperStore.from_config(config)

    @property
    def data_path(self) -> str:
        """Return the path of the store file."""
        return self._store.data_path

    def _load_index(self) -> FrecencyIndex:
        """Load a read-only view of the store."""
        return self._store.build_index(self._store.load_or_empty())

    def record_visit(self, path: str) -> VisitRecord | None:
        """Record a visit to path. Errors propagate to the caller."""
        record = self._store.record_visit(path)
        if record is not None:
            self.logger.debug("Recorded visit to %s", record.path)
        return record

    def resolve(self, query: str | Sequence[str]) -> str:
        """
        Return the best matching visited directory that still exists.

        Raises:
            NoMatchError: Nothing matches the query.
        """
        path = next(self._existing_matches(query), None)
        if path is None:
            raise NoMatchError(f"No match found for {_describe(query)}")
        return path

    def resolve_ranked(self, query: str | Sequence[str], limit: int) -> list[str]:
        """Return up to limit existing matching directories, best first."""
        if limit <= 0:
            return []
        return list(itertools.islice(self._existing_matches(query), limit))

    def _existing_matches(self, query: str | Sequence[str]) -> Iterator[str]:
        """Yield matching paths best first, skipping directories that are gone."""
        for path, _ in self._load_index().query(query):
            if os.path.isdir(path):
                yield path
            else:
                self.logger.debug("Skipping missing directory %s", path)

    def stats(self) -> tuple[list[VisitRecord], float]:
        """Return all records ranked by weight and the total weight."""
        index = self._load_index()
        return index.ranked(), index.total_weight

    def purge(self) -> int:
        """Remove records of directories that no longer exist."""
        return self._store.purge_missing()

    def adjust(self, path: str, delta: float) -> VisitRecord | None:
        """Manually raise or lower the weight of path."""
        return self._store.adjust(path, delta)

    def record_visit_detached(self, path: str) -> bool:
        """
        Record a visit in a detached child process and return without waiting.

        The child's stderr is appended to the configured log file. Nothing is
        reported back to the caller.

        Returns:
            True if the child was started.
        """
        cmd = [sys.executable, "-m", "dir_jumper", "--add", path]
        if self._config.filepath:
            cmd.extend(["--config", self._config.filepath])

        log_path = self._config.log_path
        try:
            os.makedirs(os.path.dirname(os.path.abspath(log_path)), exist_ok=True)
            with open(log_path, "a") as log_file:
                kwargs: dict = {
                    "stdin": subprocess.DEVNULL,
                    "stdout": subprocess.DEVNULL,
                    "stderr": log_file,
                }
                if sys.platform != "win32":
                    kwargs["start_new_session"] = True
                else:
                    kwargs["creationflags"] = subprocess.CREATE_NEW_PROCESS_GROUP

                subprocess.Popen(cmd, **kwargs)

        except OSError as error:
            self.logger.warning("Failed to spawn visit recorder: %s", error)
            return False

        self.logger.debug("Spawned visit recorder for %s", path)
        return True


def _describe(query: str | Sequence[str]) -> str:
    """Return the query as the user typed it."""
    if isinstance(query, str):
        return repr(query)
    return repr(" ".join(query))
