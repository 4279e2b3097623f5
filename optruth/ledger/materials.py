"""Material ledger with source precedence and citation tracking.

Every mutation appends exactly one citation to the project's registry.
Manual edits stamp the item ``manual_override`` permanently; only an
explicit ``reset_override`` returns it to its original source.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import uuid4

from optruth.citations.registry import CitationRegistry
from optruth.models import SOURCE_PRIORITY, MaterialLineItem, Source, utcnow

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("quantity", "unit_price", "name")

# Accept the camelCase names the dashboard sends
_FIELD_ALIASES = {"item": "name", "unitPrice": "unit_price"}


@dataclass
class LedgerTotals:
    material_cost: Decimal
    item_count: int
    source_counts: dict[str, int] = field(default_factory=dict)
    manual_override_count: int = 0

    @property
    def has_manual_overrides(self) -> bool:
        return self.manual_override_count > 0


class MaterialLedger:
    """Ordered material line items for one project.

    Args:
        registry: Citation registry receiving one citation per mutation
        items: Initial items (already cited, e.g. loaded from storage)
    """

    def __init__(
        self,
        registry: CitationRegistry,
        items: Iterable[MaterialLineItem] = (),
    ):
        self.registry = registry
        self._items: dict[str, MaterialLineItem] = {i.id: i for i in items}
        self._known_ids: set[str] = set(self._items) | {
            c.subject_id for c in registry if c.field == "added"
        }

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[MaterialLineItem]:
        return iter(list(self._items.values()))

    def __contains__(self, material_id: object) -> bool:
        return material_id in self._items

    @property
    def items(self) -> list[MaterialLineItem]:
        return list(self._items.values())

    @property
    def known_ids(self) -> frozenset[str]:
        """Every id this ledger has ever held, including removed items."""
        return frozenset(self._known_ids)

    @property
    def is_fully_unpriced(self) -> bool:
        return bool(self._items) and all(
            i.total_price == 0 for i in self._items.values()
        )

    def get(self, material_id: str) -> MaterialLineItem | None:
        return self._items.get(material_id)

    def find_by_name(self, name: str) -> MaterialLineItem | None:
        wanted = name.strip().lower()
        for item in self._items.values():
            if item.name.strip().lower() == wanted:
                return item
        return None

    # Bulk loads

    def load_from_template(
        self, items: Iterable[MaterialLineItem | Mapping[str, Any]]
    ) -> list[MaterialLineItem]:
        """Fill an empty ledger with template presets.

        Raises:
            ValueError: If the ledger already holds items
        """
        if self._items:
            raise ValueError(
                f"Template presets can only be loaded into an empty ledger "
                f"({len(self._items)} item(s) present)"
            )
        return self.load_batch(items, Source.TEMPLATE_PRESET)

    def load_from_calculator(
        self, items: Iterable[MaterialLineItem | Mapping[str, Any]]
    ) -> list[MaterialLineItem]:
        """Append calculator items, skipping names already held by an equal or
        higher-precedence source."""
        floor = SOURCE_PRIORITY[Source.CALCULATOR]
        accepted: list[MaterialLineItem] = []
        seen: set[str] = set()

        for raw in items:
            item = _coerce(raw, Source.CALCULATOR)
            key = item.name.strip().lower()
            existing = self.find_by_name(item.name)
            if existing is not None and SOURCE_PRIORITY[existing.source] >= floor:
                logger.debug(
                    "Skipping calculator item %r: already held by %s",
                    item.name,
                    existing.source.value,
                )
                continue
            if key in seen:
                continue
            seen.add(key)
            accepted.append(item)

        return self.load_batch(accepted, Source.CALCULATOR)

    def load_batch(
        self,
        items: Iterable[MaterialLineItem | Mapping[str, Any]],
        source: Source,
    ) -> list[MaterialLineItem]:
        """Append a batch from one source, one ``added`` citation per item.

        Every item is validated before anything is appended.
        """
        prepared = [_coerce(raw, source) for raw in items]

        added: list[MaterialLineItem] = []
        for item in prepared:
            if item.id in self._known_ids:
                item = item.model_copy(update={"id": _new_id()})
            citation_id = self.registry.record(
                item.id, source, "added", None, item.quantity
            )
            item = item.model_copy(update={"citation_id": citation_id})
            self._items[item.id] = item
            self._known_ids.add(item.id)
            added.append(item)

        if added:
            logger.debug("Loaded %d %s item(s)", len(added), source.value)
        return added

    # Single-item edits

    def update_material(
        self, material_id: str, field_name: str, new_value: Any
    ) -> MaterialLineItem | None:
        """Apply a manual edit to one field.

        Unknown ids are a no-op (concurrent deletion is expected).

        Raises:
            ValueError: If the field is not editable or the value is invalid
        """
        field_name = _FIELD_ALIASES.get(field_name, field_name)
        if field_name not in EDITABLE_FIELDS:
            raise ValueError(
                f"Field '{field_name}' is not editable; "
                f"expected one of {', '.join(EDITABLE_FIELDS)}"
            )

        item = self._items.get(material_id)
        if item is None:
            logger.info("update_material: %s not found, ignoring", material_id)
            return None

        if field_name == "name":
            value: Any = str(new_value).strip()
            if not value:
                raise ValueError("Material name cannot be empty")
        else:
            value = _to_amount(new_value, field_name)

        previous = getattr(item, field_name)
        citation_id = self.registry.record(
            material_id, Source.MANUAL_OVERRIDE, field_name, previous, value
        )

        original = item.original_value
        if original is None and field_name == "quantity":
            original = item.quantity

        updated = item.model_copy(
            update={
                field_name: value,
                "source": Source.MANUAL_OVERRIDE,
                "origin_source": item.origin,
                "citation_id": citation_id,
                "original_value": original,
                "edited_at": utcnow(),
            }
        )
        self._items[material_id] = updated
        return updated

    def add_material(
        self,
        name: str,
        quantity: Any,
        unit: str,
        unit_price: Any = None,
    ) -> MaterialLineItem:
        """Create a manual item; unpriced items total zero."""
        item = MaterialLineItem(
            name=name,
            quantity=_to_amount(quantity, "quantity"),
            unit=unit,
            unit_price=_to_amount(unit_price or 0, "unit_price"),
            source=Source.MANUAL_OVERRIDE,
            origin_source=Source.MANUAL_OVERRIDE,
        )
        return self.load_batch([item], Source.MANUAL_OVERRIDE)[0]

    def remove_material(self, material_id: str) -> MaterialLineItem | None:
        """Remove an item, citing only its last quantity."""
        item = self._items.get(material_id)
        if item is None:
            logger.info("remove_material: %s not found, ignoring", material_id)
            return None

        self.registry.record(
            material_id, Source.MANUAL_OVERRIDE, "removed", item.quantity, None
        )
        del self._items[material_id]
        return item

    def reset_override(self, material_id: str) -> MaterialLineItem | None:
        """Return a manually edited item to the source that created it."""
        item = self._items.get(material_id)
        if item is None:
            logger.info("reset_override: %s not found, ignoring", material_id)
            return None
        if item.source != Source.MANUAL_OVERRIDE or item.origin == Source.MANUAL_OVERRIDE:
            return item

        citation_id = self.registry.record(
            material_id,
            Source.MANUAL_OVERRIDE,
            "source",
            Source.MANUAL_OVERRIDE.value,
            item.origin.value,
        )
        updated = item.model_copy(
            update={"source": item.origin, "citation_id": citation_id}
        )
        self._items[material_id] = updated
        return updated

    def apply_enrichment(self, enriched: Iterable[MaterialLineItem]) -> int:
        """Write catalog prices back, one citation per changed item.

        Items priced in the meantime (e.g. a manual edit that landed while
        enrichment ran) are left alone.
        """
        changed = 0
        for candidate in enriched:
            current = self._items.get(candidate.id)
            if current is None or current.is_priced:
                continue
            price_changed = candidate.unit_price != current.unit_price
            quantity_changed = candidate.quantity != current.quantity
            if not (price_changed or quantity_changed):
                continue

            if quantity_changed:
                citation_id = self.registry.record(
                    current.id,
                    Source.TEMPLATE_PRESET,
                    "enrichment",
                    {"quantity": str(current.quantity), "unit_price": str(current.unit_price)},
                    {"quantity": str(candidate.quantity), "unit_price": str(candidate.unit_price)},
                )
            else:
                citation_id = self.registry.record(
                    current.id,
                    Source.TEMPLATE_PRESET,
                    "unit_price",
                    current.unit_price,
                    candidate.unit_price,
                )
            self._items[current.id] = current.model_copy(
                update={
                    "quantity": candidate.quantity,
                    "unit_price": candidate.unit_price,
                    "citation_id": citation_id,
                }
            )
            changed += 1
        return changed

    def totals(self) -> LedgerTotals:
        items = self._items.values()
        counts = Counter(i.source.value for i in items)
        return LedgerTotals(
            material_cost=sum((i.total_price for i in items), Decimal("0")),
            item_count=len(self._items),
            source_counts=dict(sorted(counts.items())),
            manual_override_count=counts.get(Source.MANUAL_OVERRIDE.value, 0),
        )

    def copy(self, registry: CitationRegistry | None = None) -> MaterialLedger:
        clone = MaterialLedger(registry or self.registry.copy(), self._items.values())
        clone._known_ids = set(self._known_ids)
        return clone

    def dump(self) -> list[dict[str, Any]]:
        return [i.model_dump(mode="json", exclude={"total_price"}) for i in self]


def _new_id() -> str:
    return f"mat-{uuid4().hex[:12]}"


def _coerce(raw: MaterialLineItem | Mapping[str, Any], source: Source) -> MaterialLineItem:
    if isinstance(raw, MaterialLineItem):
        return raw.model_copy(
            update={"source": source, "origin_source": raw.origin_source or source}
        )
    data = dict(raw)
    data.pop("total_price", None)
    data["source"] = source
    data.setdefault("origin_source", source)
    return MaterialLineItem.model_validate(data)


def _to_amount(value: Any, field_name: str) -> Decimal:
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise ValueError(f"{field_name} must be numeric, got {value!r}") from exc
    if not amount.is_finite():
        raise ValueError(f"{field_name} must be finite, got {value!r}")
    if amount < 0:
        raise ValueError(f"{field_name} must be non-negative, got {value!r}")
    return amount
