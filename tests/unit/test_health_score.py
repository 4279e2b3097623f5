"""Tests for the weighted project health score."""

from __future__ import annotations

from decimal import Decimal

import pytest

from optruth.citations.registry import CitationRegistry
from optruth.models import ProjectMode, Source
from optruth.scoring.health import DATA_SOURCE_PILLARS, calculate_health_score, health_status

SOLO_CITE_TYPES = [p.cite_type for p in DATA_SOURCE_PILLARS if p.solo_required]
TEAM_CITE_TYPES = [p.cite_type for p in DATA_SOURCE_PILLARS if not p.solo_required]


def _citations(*cite_types):
    registry = CitationRegistry()
    for cite_type in cite_types:
        registry.register_pillar_citation(cite_type, Source.MANUAL_OVERRIDE)
    return list(registry)


class TestPillarTable:
    def test_sixteen_pillars_split_evenly(self):
        assert len(DATA_SOURCE_PILLARS) == 16
        assert len(SOLO_CITE_TYPES) == 8
        assert len(TEAM_CITE_TYPES) == 8

    def test_total_weights(self):
        solo = sum(p.weight for p in DATA_SOURCE_PILLARS if p.solo_required)
        team = sum(p.weight for p in DATA_SOURCE_PILLARS)

        assert solo == Decimal("9")
        assert team == Decimal("15.5")


class TestSoloMode:
    def test_all_solo_pillars(self):
        result = calculate_health_score(_citations(*SOLO_CITE_TYPES), team_member_count=0)

        assert result.score == 100
        assert result.mode == ProjectMode.SOLO
        assert result.health_status == "excellent"

    def test_gfa_and_work_type_only(self):
        result = calculate_health_score(_citations("GFA_LOCK", "WORK_TYPE"), team_member_count=0)

        # 2.5 / 9
        assert result.score == 28
        assert result.health_status == "critical"

    def test_team_pillars_excluded_from_both_sides(self):
        result = calculate_health_score(
            _citations(*SOLO_CITE_TYPES, "CONTRACT", "WEATHER"), team_member_count=0
        )

        assert result.score == 100
        assert result.total_weight == Decimal("9")
        assert set(result.excluded_pillars) == {
            p.id for p in DATA_SOURCE_PILLARS if not p.solo_required
        }
        assert not set(result.excluded_pillars) & set(result.completed_pillars)
        assert not set(result.excluded_pillars) & set(result.missing_pillars)
        assert result.is_solo_mode

    def test_no_citations(self):
        result = calculate_health_score([], team_member_count=0)

        assert result.score == 0
        assert len(result.missing_pillars) == 8


class TestTeamMode:
    def test_core_citations_only(self):
        result = calculate_health_score(_citations(*SOLO_CITE_TYPES), team_member_count=4)

        # 9 / 15.5
        assert result.score == 58
        assert result.health_status == "needs-attention"
        assert result.excluded_pillars == []

    def test_document_and_contract_counts_complete_pillars(self):
        result = calculate_health_score(
            [], team_member_count=2, document_count=3, contract_count=1
        )

        assert "documents_team" in result.completed_pillars
        assert "contracts" in result.completed_pillars
        # 2 / 15.5
        assert result.score == 13

    def test_everything(self):
        result = calculate_health_score(
            _citations(*SOLO_CITE_TYPES, *TEAM_CITE_TYPES), team_member_count=1
        )

        assert result.score == 100


class TestMonotonicity:
    @pytest.mark.parametrize("team_member_count", [0, 3])
    def test_adding_citations_never_lowers_score(self, team_member_count):
        previous = 0
        seen: list[str] = []
        for cite_type in SOLO_CITE_TYPES + TEAM_CITE_TYPES:
            seen.append(cite_type)
            score = calculate_health_score(_citations(*seen), team_member_count).score
            assert score >= previous
            previous = score

    def test_duplicate_citations_count_once(self):
        once = calculate_health_score(_citations("GFA_LOCK"), 0)
        twice = calculate_health_score(_citations("GFA_LOCK", "GFA_LOCK"), 0)

        assert once.score == twice.score


class TestHealthStatus:
    @pytest.mark.parametrize(
        ("score", "status"),
        [(100, "excellent"), (90, "excellent"), (89, "good"), (70, "good"), (40, "needs-attention"), (39, "critical")],
    )
    def test_bands(self, score, status):
        assert health_status(score)[0] == status
