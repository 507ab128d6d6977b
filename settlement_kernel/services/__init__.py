"""Kernel services - flush-only writers."""

from settlement_kernel.services.base import BaseService
from settlement_kernel.services.counter_reconciler import CounterReconciler

__all__ = ["BaseService", "CounterReconciler"]
