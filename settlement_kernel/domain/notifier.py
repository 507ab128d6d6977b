"""
Notifier -- outbound notification boundary.

Responsibility:
    Declares the ``Notifier`` protocol the lifecycle calls for negative
    profit alerts, change-request events and cycle completion, plus two
    implementations: ``LoggingNotifier`` (default, writes a structured log
    line) and ``SafeNotifier`` (wraps any notifier and swallows delivery
    failures).

Architecture position:
    Kernel > Domain.  Delivery channels (WhatsApp, email) live outside the
    engine and implement ``Notifier``.

Invariants enforced:
    - A failing notifier never fails or rolls back the transition that
      triggered it.  Services only ever hold a ``SafeNotifier``.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Protocol, runtime_checkable

from settlement_kernel.logging_config import get_logger

logger = get_logger("domain.notifier")


class NotificationKind(str, Enum):
    NEGATIVE_PROFIT = "negative_profit"
    CHANGE_REQUEST_CREATED = "change_request_created"
    CHANGE_REQUEST_APPROVED = "change_request_approved"
    CHANGE_REQUEST_REJECTED = "change_request_rejected"
    CYCLE_COMPLETED = "cycle_completed"


@runtime_checkable
class Notifier(Protocol):
    """Anything that can deliver a notification."""

    def notify(self, kind: NotificationKind, payload: dict[str, Any]) -> None:
        ...


class LoggingNotifier:
    """Records notifications as log lines. Used when no channel is wired."""

    def notify(self, kind: NotificationKind, payload: dict[str, Any]) -> None:
        logger.info(
            "notification_sent",
            extra={"kind": kind.value, "payload": payload},
        )


class SafeNotifier:
    """
    Fire-and-forget wrapper around a delivery notifier.

    Guarantees:
        ``notify`` never raises.  Delivery errors are logged with the
        notification kind and swallowed.
    """

    def __init__(self, delegate: Notifier):
        self._delegate = delegate

    @property
    def delegate(self) -> Notifier:
        return self._delegate

    def notify(self, kind: NotificationKind, payload: dict[str, Any]) -> None:
        try:
            self._delegate.notify(kind, payload)
        except Exception:
            logger.warning(
                "notification_failed",
                extra={"kind": kind.value},
                exc_info=True,
            )


def make_safe(notifier: Notifier | None) -> SafeNotifier:
    """Wrap ``notifier`` (or a LoggingNotifier) in a SafeNotifier once."""
    if isinstance(notifier, SafeNotifier):
        return notifier
    return SafeNotifier(notifier or LoggingNotifier())
