"""Periodic status reconciliation and the notification throttle."""

from src.reconcile.loop import ReconciliationTask, ReconcileReport, Reconciler
from src.reconcile.policy import Action, Decision, decide

__all__ = [
    "Action",
    "Decision",
    "ReconcileReport",
    "Reconciler",
    "ReconciliationTask",
    "decide",
]
