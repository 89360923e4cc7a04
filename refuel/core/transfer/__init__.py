"""
Transfer Module

Turns a completed conversation into a native transfer or a bridge:
amount resolution, balance verification, submission and confirmation.
"""

from .amounts import compute_native_amount, from_smallest_unit, to_smallest_unit
from .models import (
    FailureKind,
    FlowKind,
    OutcomeStatus,
    TransferIntent,
    TransferOutcome,
    TransferRequest,
)
from .orchestrator import TransferOrchestrator

__all__ = [
    "compute_native_amount",
    "to_smallest_unit",
    "from_smallest_unit",
    "FlowKind",
    "FailureKind",
    "OutcomeStatus",
    "TransferRequest",
    "TransferIntent",
    "TransferOutcome",
    "TransferOrchestrator",
]
