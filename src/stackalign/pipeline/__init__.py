"""Pipeline modules.

- reconciler: Plan/commit merge of batches into tile collections
- orchestrator: Main run controller (MET import, TrakEM2 export)
- progress: Wall-clock progress logging interval
"""

from stackalign.pipeline.reconciler import SectionPlan, SectionReconciler, UpdatePolicy
from stackalign.pipeline.orchestrator import ReconciliationOrchestrator

__all__ = [
    "SectionPlan",
    "SectionReconciler",
    "UpdatePolicy",
    "ReconciliationOrchestrator",
]
