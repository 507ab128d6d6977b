"""
settlement_batch -- bulk meeting operations with per-item SAVEPOINT isolation.

Architecture:
    settlement_batch/ is a top-level package.  It depends on the kernel
    only; the lifecycle service it drives is injected by the caller.
    Nothing in the kernel or the engines imports from settlement_batch.
"""

from settlement_batch.domain.types import (
    BulkItemFailure,
    BulkItemStatus,
    BulkOperation,
    BulkResult,
)
from settlement_batch.services.bulk_runner import UNHANDLED_ERROR_CODE, BulkOperationRunner

__all__ = [
    "BulkItemFailure",
    "BulkItemStatus",
    "BulkOperation",
    "BulkOperationRunner",
    "BulkResult",
    "UNHANDLED_ERROR_CODE",
]
