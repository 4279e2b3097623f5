"""Tests for the material ledger: precedence, overrides and citations."""

from __future__ import annotations

from decimal import Decimal

import pytest

from optruth.citations.registry import CitationRegistry
from optruth.ledger.materials import MaterialLedger
from optruth.models import MaterialLineItem, Source


def _template_items():
    return [
        {"name": "Laminate Flooring", "quantity": "550", "unit": "sq ft", "unit_price": "2.85"},
        {"name": "Baseboard Trim", "quantity": "220", "unit": "ft", "unit_price": "1.25"},
    ]


class TestBulkLoads:
    def test_template_load_cites_every_item(self, ledger, registry):
        items = ledger.load_from_template(_template_items())

        assert len(ledger) == 2
        assert len(registry) == 2
        for item in items:
            assert item.source == Source.TEMPLATE_PRESET
            assert item.citation_id.startswith("TMPL-")
            assert registry.query(item.id).latest().field == "added"

    def test_template_load_requires_empty_ledger(self, ledger):
        ledger.load_from_template(_template_items())

        with pytest.raises(ValueError, match="empty ledger"):
            ledger.load_from_template(_template_items())

    def test_invalid_batch_appends_nothing(self, ledger, registry):
        batch = _template_items() + [{"name": "Bad", "quantity": "-3"}]

        with pytest.raises(ValueError):
            ledger.load_batch(batch, Source.IMPORTED)

        assert len(ledger) == 0
        assert len(registry) == 0

    def test_calculator_skips_names_held_by_higher_sources(self, ledger):
        ledger.load_batch(
            [{"name": "Laminate Flooring", "quantity": "500", "unit": "sq ft"}],
            Source.AI_PHOTO,
        )

        added = ledger.load_from_calculator(
            [
                {"name": "laminate flooring", "quantity": "480", "unit": "sq ft"},
                {"name": "Underlayment", "quantity": "480", "unit": "sq ft"},
                {"name": "Underlayment", "quantity": "10", "unit": "sq ft"},
            ]
        )

        assert [i.name for i in added] == ["Underlayment"]
        assert ledger.find_by_name("Laminate Flooring").quantity == Decimal("500")

    def test_calculator_appends_next_to_template_items(self, ledger):
        ledger.load_from_template(_template_items())

        added = ledger.load_from_calculator([{"name": "Baseboard Trim", "quantity": "240"}])

        assert len(added) == 1
        assert len(ledger) == 3

    def test_reused_id_gets_fresh_id(self, ledger):
        ledger.load_batch([{"id": "mat-1", "name": "Tile"}], Source.IMPORTED)
        ledger.remove_material("mat-1")

        (item,) = ledger.load_batch([{"id": "mat-1", "name": "Tile"}], Source.IMPORTED)

        assert item.id != "mat-1"
        assert "mat-1" in ledger.known_ids


class TestUpdateMaterial:
    def test_manual_edit_marks_override(self, ledger, registry):
        (item,) = ledger.load_from_template(_template_items()[:1])

        updated = ledger.update_material(item.id, "quantity", "600")

        assert updated.quantity == Decimal("600")
        assert updated.source == Source.MANUAL_OVERRIDE
        assert updated.origin_source == Source.TEMPLATE_PRESET
        assert updated.original_value == Decimal("550")
        assert updated.edited_at is not None
        citation = registry.get(updated.citation_id)
        assert citation.field == "quantity"
        assert citation.previous_value.value == Decimal("550")
        assert citation.new_value.value == Decimal("600")

    def test_camel_case_field_names(self, ledger):
        (item,) = ledger.load_from_template(_template_items()[:1])

        assert ledger.update_material(item.id, "unitPrice", 3).unit_price == Decimal("3")
        assert ledger.update_material(item.id, "item", " Vinyl Plank ").name == "Vinyl Plank"

    def test_override_survives_later_loads(self, ledger):
        (item,) = ledger.load_from_template(_template_items()[:1])
        ledger.update_material(item.id, "quantity", 600)

        ledger.load_from_calculator([{"name": "Laminate Flooring", "quantity": "10"}])

        assert ledger.get(item.id).quantity == Decimal("600")
        assert len(ledger) == 1

    def test_unknown_id_is_noop(self, ledger, registry):
        assert ledger.update_material("missing", "quantity", 5) is None
        assert len(registry) == 0

    def test_unknown_field_rejected(self, ledger):
        with pytest.raises(ValueError, match="not editable"):
            ledger.update_material("missing", "source", "manual")

    @pytest.mark.parametrize("value", ["-1", "abc", "NaN", "Infinity"])
    def test_invalid_amounts_rejected(self, ledger, registry, value):
        (item,) = ledger.load_from_template(_template_items()[:1])

        with pytest.raises(ValueError):
            ledger.update_material(item.id, "quantity", value)

        assert ledger.get(item.id).quantity == Decimal("550")
        assert len(registry) == 1

    def test_empty_name_rejected(self, ledger):
        (item,) = ledger.load_from_template(_template_items()[:1])

        with pytest.raises(ValueError, match="empty"):
            ledger.update_material(item.id, "name", "   ")


class TestAddRemoveReset:
    def test_add_unpriced_material(self, ledger):
        item = ledger.add_material("Grout", "3", "bags")

        assert item.unit_price == Decimal("0")
        assert item.total_price == Decimal("0")
        assert item.source == Source.MANUAL_OVERRIDE
        assert item.citation_id.startswith("MO-")

    def test_remove_cites_last_quantity(self, ledger, registry):
        (item,) = ledger.load_from_template(_template_items()[:1])

        removed = ledger.remove_material(item.id)

        assert removed.id == item.id
        assert item.id not in ledger
        last = registry.query(item.id).latest()
        assert last.field == "removed"
        assert last.previous_value.value == Decimal("550")
        assert last.new_value is None

    def test_remove_missing_is_noop(self, ledger, registry):
        assert ledger.remove_material("missing") is None
        assert len(registry) == 0

    def test_reset_override_restores_origin(self, ledger):
        (item,) = ledger.load_from_template(_template_items()[:1])
        ledger.update_material(item.id, "quantity", 600)

        reset = ledger.reset_override(item.id)

        assert reset.source == Source.TEMPLATE_PRESET
        assert reset.quantity == Decimal("600")

    def test_reset_on_manual_item_is_unchanged(self, ledger, registry):
        item = ledger.add_material("Grout", "3", "bags")

        assert ledger.reset_override(item.id) == item
        assert len(registry) == 1


class TestEnrichmentWriteBack:
    def test_prices_written_with_citation(self, ledger, registry):
        (item,) = ledger.load_batch([{"name": "Paint", "quantity": "4", "unit": "gal"}], Source.AI_PHOTO)

        changed = ledger.apply_enrichment([item.model_copy(update={"unit_price": Decimal("55")})])

        assert changed == 1
        updated = ledger.get(item.id)
        assert updated.unit_price == Decimal("55")
        assert updated.source == Source.AI_PHOTO
        assert registry.get(updated.citation_id).field == "unit_price"

    def test_priced_items_are_not_overwritten(self, ledger, registry):
        (item,) = ledger.load_from_template(_template_items()[:1])

        changed = ledger.apply_enrichment([item.model_copy(update={"unit_price": Decimal("9")})])

        assert changed == 0
        assert ledger.get(item.id).unit_price == Decimal("2.85")
        assert len(registry) == 1


class TestTotalsAndCopy:
    def test_totals(self, ledger):
        ledger.load_from_template(_template_items())
        (item,) = [i for i in ledger if i.name == "Baseboard Trim"]
        ledger.update_material(item.id, "quantity", 200)

        totals = ledger.totals()

        # 550 x 2.85 + 200 x 1.25
        assert totals.material_cost == Decimal("1817.50")
        assert totals.item_count == 2
        assert totals.source_counts == {"manual_override": 1, "template_preset": 1}
        assert totals.has_manual_overrides

    def test_fully_unpriced(self, ledger):
        assert ledger.is_fully_unpriced is False

        ledger.add_material("Grout", "3", "bags")
        assert ledger.is_fully_unpriced is True

    def test_copy_does_not_touch_original(self, ledger, registry):
        ledger.load_from_template(_template_items())
        clone = ledger.copy()

        clone.add_material("Grout", "3", "bags")

        assert len(ledger) == 2
        assert len(registry) == 2
        assert len(clone.registry) == 3

    def test_dump_and_reload(self, ledger, registry):
        ledger.load_from_template(_template_items())

        restored = MaterialLedger(
            CitationRegistry.load(registry.dump()),
            (MaterialLineItem.model_validate(i) for i in ledger.dump()),
        )

        assert restored.items == ledger.items
        assert restored.known_ids == ledger.known_ids
