"""Canonical list of material/labor/other line items."""

from optruth.ledger.materials import EDITABLE_FIELDS, LedgerTotals, MaterialLedger

__all__ = ["EDITABLE_FIELDS", "LedgerTotals", "MaterialLedger"]
