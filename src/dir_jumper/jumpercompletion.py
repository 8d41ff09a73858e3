from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Protocol

    class _Resolver(Protocol):
        def resolve_ranked(self, query: str | Sequence[str], limit: int) -> list[str]:
            ...


class CompletionAdapter:
    """Format ranked directories for a shell's completion function."""

    logger = logging.getLogger(__name__)

    def __init__(self, resolver: _Resolver, limit: int = 9) -> None:
        """
        Initialize a new CompletionAdapter.

        Args:
            resolver: Provides ranked directories for a partial query.
            limit: The maximum number of candidates to offer. Defaults to 9.
        """
        self._resolver = resolver
        self._limit = limit

    def complete(self, partial: str) -> list[str]:
        """Return the ranked candidates for partial, best first."""
        candidates = self._resolver.resolve_ranked(partial, self._limit)
        self.logger.debug("Completing %r with %s candidates", partial, len(candidates))
        return candidates

    def render(self, partial: str) -> str:
        """Return the candidates as newline separated text for the shell."""
        candidates = self.complete(partial)
        if not candidates:
            return ""
        return "\n".join(candidates) + "\n"
