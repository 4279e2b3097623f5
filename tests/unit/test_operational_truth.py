"""Tests for the operational truth summary."""

from __future__ import annotations

from decimal import Decimal

import pytest

from optruth.models import Fact, MaterialLineItem, PillarId, ProjectMode, Source, to_fact_value
from optruth.truth.operational import (
    build_operational_truth,
    resolve_confirmed_area,
    size_for_cost,
)
from optruth.truth.sources import ComplianceResult, PhotoEstimate


class TestConfirmedArea:
    def test_blueprint_beats_photo(self, photo_500, blueprint_420):
        assert resolve_confirmed_area(photo_500, blueprint_420) == (
            Decimal("420"),
            Source.AI_BLUEPRINT,
        )

    def test_manual_beats_everything(self, photo_500, blueprint_420):
        fact = Fact(
            pillar_id=PillarId.CONFIRMED_AREA,
            value=to_fact_value(455),
            source=Source.MANUAL_OVERRIDE,
        )

        assert resolve_confirmed_area(photo_500, blueprint_420, facts=[fact]) == (
            Decimal("455"),
            Source.MANUAL_OVERRIDE,
        )

    def test_photo_material_area(self):
        photo = PhotoEstimate.model_validate(
            {"materials": [{"item": "Tile", "quantity": 96, "unit": "sq ft"}]}
        )

        assert resolve_confirmed_area(photo, None) == (Decimal("96"), Source.AI_PHOTO)

    def test_ledger_area_item(self, sample_item):
        assert resolve_confirmed_area(None, None, [sample_item]) == (
            Decimal("550"),
            Source.TEMPLATE_PRESET,
        )

    def test_unknown(self):
        assert resolve_confirmed_area(None, None) == (None, None)


class TestProjectSize:
    @pytest.mark.parametrize(
        ("cost", "expected"),
        [
            (None, "medium"),
            (Decimal("0"), "small"),
            (Decimal("10000"), "small"),
            (Decimal("10000.01"), "medium"),
            (Decimal("50000"), "medium"),
            (Decimal("50001"), "large"),
        ],
    )
    def test_thresholds(self, cost, expected):
        assert size_for_cost(cost) == expected


class TestBuildOperationalTruth:
    def test_empty_project(self):
        truth = build_operational_truth()

        assert truth.confirmed_area is None
        assert truth.blueprint_status == "pending"
        assert truth.conflict_status == "pending"
        assert truth.verified_pillars == 3
        assert truth.verification_rate == 38  # 3 / 8, half-up

    def test_conflicting_sources(self, photo_500, blueprint_420):
        truth = build_operational_truth(photo=photo_500, blueprint=blueprint_420)

        assert truth.confirmed_area == Decimal("420")
        assert truth.materials_count == 2
        assert truth.blueprint_status == "analyzed"
        assert truth.conflict_status == "conflict_detected"
        assert truth.confidence_level == "high"
        assert truth.verified_pillars == 7
        assert truth.verification_rate == 88

    def test_photo_without_blueprint(self, photo_500):
        truth = build_operational_truth(photo=photo_500)

        assert truth.blueprint_status == "none"
        assert truth.confirmed_area_source == Source.AI_PHOTO

    def test_compliance_and_mode(self):
        compliance = ComplianceResult.model_validate(
            {"checks": [{"section": "9.8", "status": "pass"}], "permitRequired": True}
        )

        truth = build_operational_truth(
            compliance=compliance,
            project_mode=ProjectMode.TEAM,
            total_cost=Decimal("75000"),
        )

        assert truth.obc_status == "permit_required"
        assert truth.project_mode == ProjectMode.TEAM
        assert truth.project_size == "large"

    def test_ledger_count_wins_over_photo(self, photo_500, sample_item):
        truth = build_operational_truth(photo=photo_500, materials=[sample_item])

        assert truth.materials_count == 1

    def test_unknown_confidence_is_low(self):
        truth = build_operational_truth(photo=PhotoEstimate(confidence="certain"))

        assert truth.confidence_level == "low"


class TestMaterialSource:
    def test_zero_area_item_ignored(self):
        item = MaterialLineItem(name="Tile", unit="sq ft", source=Source.CALCULATOR)

        assert resolve_confirmed_area(None, None, [item]) == (None, None)
