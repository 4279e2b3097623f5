"""Weighted completeness scoring over the citation set."""

from optruth.scoring.health import DATA_SOURCE_PILLARS, HealthScore, calculate_health_score

__all__ = ["DATA_SOURCE_PILLARS", "HealthScore", "calculate_health_score"]
