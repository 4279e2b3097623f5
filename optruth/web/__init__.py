"""HTTP surface for the Operational Truth dashboard."""
