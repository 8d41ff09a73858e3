from __future__ import annotations

import dataclasses
import logging
import os
import re
import time
from collections.abc import Sequence

from .jumpermodel import VisitRecord

DEFAULT_INCREMENT = 10.0
DEFAULT_WEIGHT_CEILING = 9000.0
DEFAULT_DECAY_FACTOR = 0.9

_TOKEN_SPLIT = re.compile(r"[\s/\\]+")


def normalize_path(path: str) -> str:
    """Return the absolute, normalized form of path. Symlinks are kept as given."""
    return os.path.normpath(os.path.abspath(os.path.expanduser(path)))


def tokenize(query: str | Sequence[str]) -> list[str]:
    """Split a query into tokens on whitespace and path separators."""
    if isinstance(query, str):
        query = [query]

    tokens: list[str] = []
    for part in query:
        tokens.extend(token for token in _TOKEN_SPLIT.split(part) if token)
    return tokens


class FrecencyIndex:
    """In-memory frecency table of visited directories."""

    logger = logging.getLogger(__name__)

    def __init__(
        self,
        records: dict[str, VisitRecord] | None = None,
        *,
        increment: float = DEFAULT_INCREMENT,
        weight_ceiling: float = DEFAULT_WEIGHT_CEILING,
        decay_factor: float = DEFAULT_DECAY_FACTOR,
    ) -> None:
        """
        Initialize a new FrecencyIndex over the given records.

        Args:
            records: The records to index, keyed by normalized path. The index
                takes its own copy.

        Keyword Args:
            increment: Weight added on each visit. Defaults to 10.
            weight_ceiling: When the total weight exceeds this, all weights are
                decayed. Defaults to 9000.
            decay_factor: Multiplier applied to every weight on decay. Must be
                greater than 0 and less than 1. Defaults to 0.9.

        Raises:
            ValueError: increment, weight_ceiling or decay_factor are out of range.
        """
        if not 0 < decay_factor < 1:
            raise ValueError(
                f"decay_factor must be between 0 and 1, got {decay_factor}"
            )
        if increment <= 0:
            raise ValueError(f"increment must be positive, got {increment}")
        if weight_ceiling <= 0:
            raise ValueError(f"weight_ceiling must be positive, got {weight_ceiling}")

        self._records: dict[str, VisitRecord] = dict(records or {})
        self._increment = increment
        self._weight_ceiling = weight_ceiling
        self._decay_factor = decay_factor

    @property
    def records(self) -> dict[str, VisitRecord]:
        """Return a copy of the indexed records."""
        return dict(self._records)

    @property
    def total_weight(self) -> float:
        """Return the sum of all weights."""
        return sum(record.weight for record in self._records.values())

    def __len__(self) -> int:
        return len(self._records)

    def add_or_update(self, path: str, now: int | None = None) -> VisitRecord:
        """Add one visit to path, creating the record if needed."""
        return self._bump(path, self._increment, now)

    def adjust(self, path: str, delta: float, now: int | None = None) -> VisitRecord:
        """Change the weight of path by delta. The weight never drops below 0."""
        return self._bump(path, delta, now)

    def _bump(self, path: str, delta: float, now: int | None) -> VisitRecord:
        path = normalize_path(path)
        now = int(time.time()) if now is None else now

        current = self._records.get(path)
        if current is None:
            record = VisitRecord(path, max(0.0, float(delta)), now)
        else:
            record = dataclasses.replace(
                current,
                weight=max(0.0, current.weight + delta),
                last_visit=max(now, current.last_visit),
            )

        self._records[path] = record
        self.logger.debug("Weight of %s is now %s", path, record.weight)
        return record

    def decay_if_needed(self) -> bool:
        """Decay all weights once if the total exceeds the ceiling."""
        total = self.total_weight
        if total <= self._weight_ceiling:
            return False

        self.logger.debug(
            "Total weight %s exceeds %s, decaying by %s",
            total,
            self._weight_ceiling,
            self._decay_factor,
        )
        self._records = {
            path: dataclasses.replace(record, weight=record.weight * self._decay_factor)
            for path, record in self._records.items()
        }
        return True

    def query(self, query: str | Sequence[str]) -> list[tuple[str, float]]:
        """
        Return the paths matching query with their weights, best first.

        Tokens must appear as substrings of the path components in order, each
        in a later component than the one before. Lowercase tokens match any
        case. An empty query matches every path.

        Ties on weight go to the path with fewer components after the last
        match, then the shorter path, then the lexicographically smaller one.
        """
        tokens = tokenize(query)
        matches: list[tuple[tuple[float, int, int, str], VisitRecord]] = []

        for record in self._records.values():
            unmatched = _unmatched_suffix(record.path, tokens)
            if unmatched is None:
                continue
            key = (-record.weight, unmatched, len(record.path), record.path)
            matches.append((key, record))

        matches.sort(key=lambda match: match[0])
        self.logger.debug("Query %s matched %s paths", tokens, len(matches))
        return [(record.path, record.weight) for _, record in matches]

    def ranked(self) -> list[VisitRecord]:
        """Return every record ordered by weight, heaviest first."""
        return sorted(
            self._records.values(),
            key=lambda record: (-record.weight, len(record.path), record.path),
        )


def _unmatched_suffix(path: str, tokens: list[str]) -> int | None:
    """
    Match tokens against the components of path.

    Returns:
        The number of components after the one matching the last token, or
        None if the path does not match.
    """
    components = [part for part in re.split(r"[/\\]", path) if part]
    if not tokens:
        return 0

    position = 0
    for token in tokens[:-1]:
        found = _find_component(components, token, range(position, len(components)))
        if found is None:
            return None
        position = found + 1

    # Match the last token as deep as possible for the tightest fit.
    last = _find_component(
        components, tokens[-1], range(len(components) - 1, position - 1, -1)
    )
    if last is None:
        return None
    return len(components) - 1 - last


def _find_component(components: list[str], token: str, indexes: range) -> int | None:
    """Return the first index in indexes whose component contains token."""
    case_sensitive = token != token.lower()
    needle = token if case_sensitive else token.lower()

    for index in indexes:
        component = components[index] if case_sensitive else components[index].lower()
        if needle in component:
            return index
    return None
