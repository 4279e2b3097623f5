"""Citation registry: append-only log of provenance events.

Every mutation to the material ledger or to a pillar's authoritative value
records exactly one citation here. There is no update or delete operation;
the log only grows.
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from collections.abc import Callable, Iterable, Iterator
from typing import Any

from optruth.errors import CitationStorageError, DataIntegrityError
from optruth.models import CITATION_PREFIXES, Citation, PillarId, Source, to_fact_value

logger = logging.getLogger(__name__)

CitationSink = Callable[[Citation], None]

_SEQUENCE_RE = re.compile(r"-(\d+)$")

# File name keywords -> pillar, checked in order
_BLUEPRINT_KEYWORDS = (
    "blueprint",
    "floorplan",
    "floor_plan",
    "floor-plan",
    "architectural",
    "drawing",
    "cad",
    "layout",
    "plan.pdf",
    "plans.pdf",
)
_COMPLIANCE_KEYWORDS = (
    "permit",
    "license",
    "obc",
    "building_code",
    "building-code",
    "inspection",
    "compliance",
    "regulation",
    "certificate",
    "approval",
)
_MATERIAL_KEYWORDS = (
    "material",
    "bom",
    "bill_of_materials",
    "supply",
    "inventory",
    "quote",
    "estimate",
)


class CitationTrail:
    """Chronological view of one subject's citations.

    Iteration is lazy and restartable: each ``iter()`` walks the registry
    from the beginning, so citations appended after the trail was created
    show up on the next pass.
    """

    def __init__(self, citations: list[Citation], subject_id: str):
        self._citations = citations
        self.subject_id = subject_id

    def __iter__(self) -> Iterator[Citation]:
        return (c for c in self._citations if c.subject_id == self.subject_id)

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def __bool__(self) -> bool:
        return any(True for _ in self)

    def latest(self) -> Citation | None:
        last = None
        for citation in self:
            last = citation
        return last

    def explain(self) -> list[str]:
        """Human-readable "why is this value X" lines, oldest first."""
        lines = []
        for c in self:
            old = c.previous_value.value if c.previous_value is not None else None
            new = c.new_value.value if c.new_value is not None else None
            lines.append(
                f"[{c.id}] {c.timestamp.isoformat()} {c.source.value}: "
                f"{c.field} {old} -> {new}"
            )
        return lines


class CitationRegistry:
    """Append-only provenance log for one project.

    Citation ids are ``<PREFIX>-<NNN>`` where the prefix identifies the source
    (``P`` photo, ``B`` blueprint, ``MO`` manual override, ...) and the number
    is a registry-wide sequence.

    Optional sinks receive each citation right after it is appended (durable
    storage, audit streams). A failing sink is a storage failure: the append
    is undone and ``CitationStorageError`` propagates.

    ``copy()`` returns a draft that holds its new citations back from the
    sinks until ``flush()``; a draft that is dropped never reaches them.
    """

    def __init__(
        self,
        citations: Iterable[Citation] = (),
        sinks: Iterable[CitationSink] = (),
    ):
        self._citations: list[Citation] = list(citations)
        self._sinks: list[CitationSink] = list(sinks)
        # None while live; drafts collect undelivered citations here
        self._pending: list[Citation] | None = None
        self._sequence = max(
            (_sequence_of(c.id) for c in self._citations), default=0
        )

    def __len__(self) -> int:
        return len(self._citations)

    def __iter__(self) -> Iterator[Citation]:
        return iter(list(self._citations))

    def add_sink(self, sink: CitationSink) -> None:
        self._sinks.append(sink)

    def record(
        self,
        subject_id: str,
        source: Source,
        field: str,
        previous_value: Any = None,
        new_value: Any = None,
        *,
        cite_type: str | None = None,
    ) -> str:
        """Append a citation and return its id.

        Raises:
            CitationStorageError: If a storage sink rejects the citation
        """
        self._sequence += 1
        citation = Citation(
            id=f"{CITATION_PREFIXES[source]}-{self._sequence:03d}",
            subject_id=subject_id,
            source=source,
            field=field,
            previous_value=to_fact_value(previous_value),
            new_value=to_fact_value(new_value),
            cite_type=cite_type,
        )
        self._citations.append(citation)

        if self._pending is not None:
            self._pending.append(citation)
            return citation.id

        for sink in self._sinks:
            try:
                sink(citation)
            except Exception as exc:
                self._citations.pop()
                self._sequence -= 1
                logger.error(
                    "Citation sink failed for %s (%s)", citation.id, subject_id,
                    exc_info=True,
                )
                raise CitationStorageError(
                    f"Could not store citation {citation.id}: {exc}"
                ) from exc

        return citation.id

    def register_pillar_citation(
        self, cite_type: str, source: Source, value: Any = None
    ) -> str:
        """Record a health-pillar citation (subject is the citation type)."""
        return self.record(
            cite_type, source, "pillar", None, value, cite_type=cite_type
        )

    def query(self, subject_id: str) -> CitationTrail:
        return CitationTrail(self._citations, subject_id)

    def get(self, citation_id: str) -> Citation | None:
        for citation in self._citations:
            if citation.id == citation_id:
                return citation
        return None

    def for_cite_type(self, cite_type: str) -> list[Citation]:
        return [c for c in self._citations if c.cite_type == cite_type]

    def has_cite_type(self, cite_type: str) -> bool:
        return any(c.cite_type == cite_type for c in self._citations)

    def cite_types(self) -> set[str]:
        return {c.cite_type for c in self._citations if c.cite_type}

    def source_stats(self) -> dict[str, int]:
        """Citation count per source."""
        counts = Counter(c.source.value for c in self._citations)
        return dict(sorted(counts.items()))

    def verify_subjects(
        self, known_subjects: Iterable[str], *, strict: bool = True
    ) -> list[Citation]:
        """Find citations whose subject the project has never known.

        Pillar citations (those carrying a ``cite_type``) and pillar-scoped
        citations are always valid.

        Raises:
            DataIntegrityError: If violations exist and ``strict`` is set
        """
        known = set(known_subjects) | {p.value for p in PillarId}
        violations = [
            c
            for c in self._citations
            if c.cite_type is None and c.subject_id not in known
        ]
        if violations:
            ids = [c.id for c in violations]
            subjects = [c.subject_id for c in violations]
            if strict:
                raise DataIntegrityError(ids, subjects)
            logger.error(
                "Ignoring %d citation(s) with unknown subjects: %s",
                len(violations),
                ", ".join(ids),
            )
        return violations

    def copy(self) -> CitationRegistry:
        clone = CitationRegistry(sinks=self._sinks)
        clone._citations = list(self._citations)
        clone._sequence = self._sequence
        clone._pending = list(self._pending or [])
        return clone

    @property
    def pending(self) -> int:
        """Citations recorded on this draft that no sink has seen yet."""
        return len(self._pending or [])

    def flush(self) -> int:
        """Deliver held-back citations to the sinks and go live.

        Delivery is at-least-once: if a sink fails part way, citations
        before the failing one have already been delivered and the registry
        stays a draft.

        Raises:
            CitationStorageError: If a storage sink rejects a citation
        """
        pending = self._pending or []
        for citation in pending:
            for sink in self._sinks:
                try:
                    sink(citation)
                except Exception as exc:
                    logger.error(
                        "Citation sink failed for %s (%s)", citation.id, citation.subject_id,
                        exc_info=True,
                    )
                    raise CitationStorageError(
                        f"Could not store citation {citation.id}: {exc}"
                    ) from exc
        self._pending = None
        return len(pending)

    def dump(self) -> list[dict[str, Any]]:
        return [c.model_dump(mode="json") for c in self._citations]

    @classmethod
    def load(cls, payload: Iterable[dict[str, Any]]) -> CitationRegistry:
        return cls(Citation.model_validate(item) for item in payload)


def _sequence_of(citation_id: str) -> int:
    match = _SEQUENCE_RE.search(citation_id)
    return int(match.group(1)) if match else 0


def auto_pillar_link(
    file_name: str, document_type: str | None = None
) -> PillarId | None:
    """Guess which pillar an uploaded file supports from its name.

    Site photos default to the area pillar unless the name points at
    materials. Generic documents get no link.
    """
    lower = file_name.lower()

    if document_type in ("site_photo", "image"):
        if any(k in lower for k in ("material", "supply", "inventory")):
            return PillarId.MATERIALS
        return PillarId.CONFIRMED_AREA

    if any(k in lower for k in _BLUEPRINT_KEYWORDS):
        return PillarId.BLUEPRINT
    if any(k in lower for k in _COMPLIANCE_KEYWORDS):
        return PillarId.OBC_COMPLIANCE
    if any(k in lower for k in _MATERIAL_KEYWORDS):
        return PillarId.MATERIALS
    return None
