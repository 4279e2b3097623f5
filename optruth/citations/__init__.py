"""Append-only provenance log for project facts."""

from optruth.citations.registry import CitationRegistry, CitationTrail, auto_pillar_link

__all__ = ["CitationRegistry", "CitationTrail", "auto_pillar_link"]
