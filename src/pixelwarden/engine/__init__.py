"""Reconciliation engine and mutation response interpretation."""

from .reconciler import CycleResult, CycleState, Outcome, ReconciliationEngine
from .responses import Interpretation, InterpretationKind, interpret_response

__all__ = [
    "CycleResult",
    "CycleState",
    "Interpretation",
    "InterpretationKind",
    "Outcome",
    "ReconciliationEngine",
    "interpret_response",
]
