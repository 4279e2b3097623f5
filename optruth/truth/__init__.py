"""Cross-source verification: conflicts, operational summary and truth matrix."""

from optruth.truth.conflicts import has_conflict
from optruth.truth.matrix import EngineVerification, TruthMatrix, TruthPillar, build_truth_matrix
from optruth.truth.operational import OperationalTruth, build_operational_truth

__all__ = [
    "EngineVerification",
    "OperationalTruth",
    "TruthMatrix",
    "TruthPillar",
    "build_operational_truth",
    "build_truth_matrix",
    "has_conflict",
]
