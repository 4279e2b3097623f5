"""Progress-proportional financial rollup."""

from optruth.finance.rollup import FinancialSummary, compute_financial_summary, progress_ratio

__all__ = ["FinancialSummary", "compute_financial_summary", "progress_ratio"]
