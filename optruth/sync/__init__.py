"""Project state handle, reconcile step and dashboard facade."""

from optruth.sync.facade import DashboardSyncFacade, ProjectRegistry
from optruth.sync.persistence import InMemoryProjectStore, ProjectRecord, ProjectStore
from optruth.sync.state import ProjectState, apply_analysis, needs_reconciliation, reconcile

__all__ = [
    "DashboardSyncFacade",
    "InMemoryProjectStore",
    "ProjectRecord",
    "ProjectRegistry",
    "ProjectState",
    "ProjectStore",
    "apply_analysis",
    "needs_reconciliation",
    "reconcile",
]
