"""
overlayconf.provenance
----------------------

Optional provenance tracking for configuration properties.

When enabled via ``ConfigProcessor(track_provenance=True)``, every value
written by a baseline load, an overlay source or an explicit ``set`` is
recorded with its source, so "why is this value X?" can be answered by
reading the history of a path.

Source labels:
    ``"file:/etc/app/config.json"``  baseline loaded from a file
    ``"string"``                     baseline loaded from a JSON string
    ``"cli:server.ip=1.2.3.4"``      command line argument
    ``"sysprop:server.ip"``          system property
    ``"env:APP__server.ip"``         environment variable
    ``"set"``                        explicit application-level set
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ProvenanceEntry:
    """Records the origin of a single property value.

    Attributes:
        value: The value that was written.
        source: Where it came from (see module docstring).
        path: The full property path (e.g., ``"nested[0].enabled"``).
    """

    value: Any
    source: str
    path: str

    @property
    def category(self) -> str:
        """The kind of source without its detail: ``"cli"`` for ``"cli:port=1"``."""
        return self.source.partition(":")[0]

    def __repr__(self) -> str:
        return f"{self.path} = {self.value!r}  ← {self.source}"


@dataclass
class ProvenanceStore:
    """Every value written to each property path, oldest first.

    The last entry of a path's history is its current provenance.
    """

    _history: dict[str, list[ProvenanceEntry]] = field(default_factory=dict)

    def record(self, path: str, value: Any, source: str) -> ProvenanceEntry:
        """Append a write of ``value`` by ``source`` to the history of ``path``."""
        entry = ProvenanceEntry(value=value, source=source, path=path)
        self._history.setdefault(path, []).append(entry)
        return entry

    def get(self, path: str) -> ProvenanceEntry | None:
        history = self._history.get(path)
        return history[-1] if history else None

    def get_history(self, path: str) -> list[ProvenanceEntry]:
        return list(self._history.get(path, ()))

    def discard(self, path: str) -> int:
        """Forget ``path`` and every path nested below it (``path.x``, ``path[0]``).

        Used when a whole container is replaced, so element histories of the
        old storage do not outlive it.

        Returns:
            The number of paths forgotten.
        """
        gone = [p for p in self._history
                if p == path or p.startswith(path + ".") or p.startswith(path + "[")]
        for p in gone:
            del self._history[p]
        return len(gone)

    def all_entries(self) -> dict[str, ProvenanceEntry]:
        """Current entry of every recorded path, in first-recorded order."""
        return {path: history[-1] for path, history in self._history.items()}

    def paths_from(self, category: str) -> list[str]:
        """Paths whose current value came from a source of ``category`` (``"env"``, ``"cli"``...)."""
        return [path for path, entry in self.all_entries().items() if entry.category == category]

    def sources_summary(self) -> dict[str, int]:
        """Count current entries per source category."""
        return dict(Counter(entry.category for entry in self.all_entries().values()))
