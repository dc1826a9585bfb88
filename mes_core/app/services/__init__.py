"""
Services package initialization.
Business logic layer for ledger-backed shop-floor operations.
"""

from .ledger_service import (
    LedgerError,
    ValidationFailed,
    NotFoundError,
    InvalidTransitionError,
    PermissionDenied,
    ItemRejected,
    InsufficientStockError,
    StockNotFoundError,
    MovementNotFoundError,
    BatchRejected,
    SkipReason,
    Atomicity,
    BatchOutcome,
    run_batch,
)

__all__ = [
    'LedgerError',
    'ValidationFailed',
    'NotFoundError',
    'InvalidTransitionError',
    'PermissionDenied',
    'ItemRejected',
    'InsufficientStockError',
    'StockNotFoundError',
    'MovementNotFoundError',
    'BatchRejected',
    'SkipReason',
    'Atomicity',
    'BatchOutcome',
    'run_batch',
]
