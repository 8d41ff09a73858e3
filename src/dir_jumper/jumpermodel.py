from __future__ import annotations

import dataclasses
import math
from datetime import datetime


@dataclasses.dataclass(frozen=True)
class VisitRecord:
    """A visited directory row in the store."""

    path: str
    weight: float
    last_visit: int

    def __str__(self) -> str:
        """Return a string representation of the record."""
        lastvisit = datetime.fromtimestamp(self.last_visit).strftime(
            "%Y-%m-%d %H:%M:%S"
        )
        return f"{self.weight:>10.1f}:  {self.path} (last visit {lastvisit})"

    def as_line(self) -> str:
        """Return the record in store line format: path, weight, last_visit."""
        return f"{self.path}\t{self.weight!r}\t{self.last_visit}"

    @classmethod
    def from_line(cls, line: str) -> VisitRecord:
        """
        Parse a store line into a VisitRecord.

        Fields after the third are ignored so newer store files stay readable.

        Raises:
            ValueError: The line is not a valid record.
        """
        fields = line.rstrip("\n").split("\t")
        if len(fields) < 3 or not fields[0]:
            raise ValueError(f"Expected at least 3 tab separated fields: {line!r}")

        weight = float(fields[1])
        if not math.isfinite(weight) or weight < 0:
            raise ValueError(f"Invalid weight {fields[1]!r}")

        return cls(path=fields[0], weight=weight, last_visit=int(fields[2]))
