"""Exception types raised by the reconciliation engine."""

from __future__ import annotations


class OptruthError(Exception):
    """Base class for engine errors."""


class ConfigurationError(OptruthError):
    """Configuration file is invalid or missing."""


class PersistenceError(OptruthError):
    """Remote project store could not be read or written.

    Fatal for the triggering operation only; in-memory state stays authoritative.
    """


class CitationStorageError(OptruthError):
    """A citation could not be appended to durable storage."""


class DataIntegrityError(OptruthError):
    """A citation references a subject the project has never known."""

    def __init__(self, citation_ids: list[str], subject_ids: list[str]):
        self.citation_ids = citation_ids
        self.subject_ids = subject_ids
        super().__init__(
            f"{len(citation_ids)} citation(s) reference unknown subjects: "
            f"{', '.join(sorted(set(subject_ids)))}"
        )
