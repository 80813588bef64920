"""Statutory payroll record services."""

from statutory_payroll.services.constraint_reconciler import (
    ConstraintReconciler,
    ConstraintTarget,
    ReconcileReport,
    default_targets,
)
from statutory_payroll.services.lifecycle import (
    BonusFacts,
    BonusLifecycle,
    GratuityFacts,
    GratuityLifecycle,
)
from statutory_payroll.services.record_store import RecordStore, UpsertResult
from statutory_payroll.services.state_machine import (
    BonusStateMachine,
    BonusStatus,
    GratuityStateMachine,
    GratuityStatus,
)

__all__ = [
    "ConstraintReconciler",
    "ConstraintTarget",
    "ReconcileReport",
    "default_targets",
    "BonusFacts",
    "BonusLifecycle",
    "GratuityFacts",
    "GratuityLifecycle",
    "RecordStore",
    "UpsertResult",
    "BonusStateMachine",
    "BonusStatus",
    "GratuityStateMachine",
    "GratuityStatus",
]
