"""
MeetingEngine -- transaction-owning facade over the meeting lifecycle.

Responsibility:
    The public entry point for callers (HTTP handlers, jobs, scripts).
    Each call opens a session, builds the services it needs, runs exactly
    one operation and commits.  Any error rolls the whole operation back
    and is re-raised.

Architecture position:
    Services.  Composes MeetingLifecycleService, BulkOperationRunner,
    ForecastService and the kernel selectors.  The only layer that calls
    ``session.commit()``.

Invariants enforced:
    - One operation, one transaction: a meeting write and its counter write
      commit together or not at all.
    - Results are frozen dataclasses, never live ORM rows.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Generator
from contextlib import contextmanager
from datetime import date, time
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from settlement_batch.domain.types import BulkOperation, BulkResult
from settlement_batch.services.bulk_runner import BulkOperationRunner
from settlement_config.schema import EngineSettings
from settlement_engines.forecast import ForecastReport
from settlement_kernel.db.engine import get_session_factory, init_engine_from_url
from settlement_kernel.domain.clock import Clock, SystemClock
from settlement_kernel.domain.dtos import (
    CounterCheck,
    MeetingView,
    PostponementResult,
    RecalculationResult,
)
from settlement_kernel.domain.enums import ActivityType
from settlement_kernel.domain.forecast import ForecastWindow
from settlement_kernel.domain.meeting_status import ChangeRequestType, MeetingStatus
from settlement_kernel.domain.notifier import Notifier, make_safe
from settlement_kernel.logging_config import LogContext, configure_logging, get_logger
from settlement_kernel.selectors.meeting_selector import MeetingSelector
from settlement_kernel.services.counter_reconciler import CounterReconciler
from settlement_services.forecast_service import ForecastService
from settlement_services.meeting_lifecycle import MeetingLifecycleService

logger = get_logger("services.meeting_engine")


class MeetingEngine:
    """
    Transactional facade.

    Every public method is one transaction.  Use ``transaction()`` directly
    to group several lifecycle calls atomically.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session] | Callable[[], Session] | None = None,
        notifier: Notifier | None = None,
        clock: Clock | None = None,
        settings: EngineSettings | None = None,
    ):
        self._session_factory = session_factory or get_session_factory()
        self._notifier = make_safe(notifier)
        self._clock = clock or SystemClock()
        self._settings = settings or EngineSettings()

    @classmethod
    def from_settings(
        cls,
        settings: EngineSettings,
        notifier: Notifier | None = None,
        clock: Clock | None = None,
    ) -> MeetingEngine:
        """Initialise logging and the database engine from ``settings``."""
        configure_logging(level=getattr(logging, settings.log_level))
        init_engine_from_url(settings.database_url)
        return cls(get_session_factory(), notifier=notifier, clock=clock, settings=settings)

    @property
    def settings(self) -> EngineSettings:
        return self._settings

    # ------------------------------------------------------------------
    # Transaction plumbing
    # ------------------------------------------------------------------

    @contextmanager
    def transaction(self, operation: str | None = None) -> Generator[Session, None, None]:
        """Commit on success; roll back and re-raise on error."""
        session = self._session_factory()
        with LogContext.bind(operation=operation):
            try:
                yield session
                session.commit()
                logger.debug("transaction_committed")
            except Exception:
                session.rollback()
                logger.warning("transaction_rolled_back", exc_info=True)
                raise
            finally:
                session.close()

    def lifecycle(self, session: Session) -> MeetingLifecycleService:
        """Lifecycle service bound to ``session`` with this engine's settings."""
        return MeetingLifecycleService(
            session,
            notifier=self._notifier,
            clock=self._clock,
            reschedule_interval_days=self._settings.reschedule_interval_days,
            negative_profit_alerts=self._settings.negative_profit_alerts,
        )

    def _run(self, operation: str, call: Callable[[MeetingLifecycleService], Any], **context: Any) -> Any:
        with self.transaction(operation) as session, LogContext.bind(**context):
            return call(self.lifecycle(session))

    # ------------------------------------------------------------------
    # Single-meeting operations
    # ------------------------------------------------------------------

    def complete(self, meeting_id: UUID, actor_id: UUID | None = None) -> MeetingView:
        return self._run(
            "complete", lambda svc: svc.complete(meeting_id, actor_id),
            meeting_id=str(meeting_id), actor_id=_opt(actor_id),
        )

    def cancel(
        self,
        meeting_id: UUID,
        reason: str | None = None,
        actor_id: UUID | None = None,
    ) -> MeetingView:
        return self._run(
            "cancel", lambda svc: svc.cancel(meeting_id, reason, actor_id),
            meeting_id=str(meeting_id), actor_id=_opt(actor_id),
        )

    def postpone(
        self,
        meeting_id: UUID,
        new_date: date | None = None,
        start_time: time | None = None,
        end_time: time | None = None,
        actor_id: UUID | None = None,
    ) -> PostponementResult:
        return self._run(
            "postpone",
            lambda svc: svc.postpone(meeting_id, new_date, start_time, end_time, actor_id),
            meeting_id=str(meeting_id), actor_id=_opt(actor_id),
        )

    def postpone_latest(
        self,
        meeting_id: UUID,
        new_date: date | None = None,
        start_time: time | None = None,
        end_time: time | None = None,
        actor_id: UUID | None = None,
    ) -> PostponementResult:
        """Postpone the newest meeting in ``meeting_id``'s reschedule chain."""
        return self._run(
            "postpone",
            lambda svc: svc.postpone_latest(meeting_id, new_date, start_time, end_time, actor_id),
            meeting_id=str(meeting_id), actor_id=_opt(actor_id),
        )

    def request_change(
        self,
        meeting_id: UUID,
        request_type: ChangeRequestType | str,
        reason: str | None = None,
        requested_date: date | None = None,
        actor_id: UUID | None = None,
    ) -> MeetingView:
        request_type = ChangeRequestType(request_type)
        return self._run(
            "request_change",
            lambda svc: svc.request_change(meeting_id, request_type, reason, requested_date, actor_id),
            meeting_id=str(meeting_id), actor_id=_opt(actor_id),
        )

    def approve(
        self,
        meeting_id: UUID,
        actor_id: UUID | None = None,
        new_date: date | None = None,
        start_time: time | None = None,
        end_time: time | None = None,
    ) -> MeetingView:
        return self._run(
            "approve",
            lambda svc: svc.approve(meeting_id, actor_id, new_date, start_time, end_time),
            meeting_id=str(meeting_id), actor_id=_opt(actor_id),
        )

    def reject(self, meeting_id: UUID, actor_id: UUID | None = None) -> MeetingView:
        return self._run(
            "reject", lambda svc: svc.reject(meeting_id, actor_id),
            meeting_id=str(meeting_id), actor_id=_opt(actor_id),
        )

    def update_status(
        self,
        meeting_id: UUID,
        status: MeetingStatus | str,
        actor_id: UUID | None = None,
        reason: str | None = None,
        new_date: date | None = None,
    ) -> MeetingView:
        target = MeetingStatus(status)
        return self._run(
            "update_status",
            lambda svc: svc.update_status(meeting_id, target, actor_id, reason, new_date),
            meeting_id=str(meeting_id), actor_id=_opt(actor_id),
        )

    def recalculate(self, meeting_id: UUID, force: bool = False) -> RecalculationResult:
        return self._run(
            "recalculate", lambda svc: svc.recalculate(meeting_id, force),
            meeting_id=str(meeting_id),
        )

    def create_meeting(
        self,
        cycle_id: UUID,
        scheduled_date: date,
        start_time: time | None = None,
        end_time: time | None = None,
        instructor_id: UUID | None = None,
        activity_type: ActivityType | str | None = None,
        topic: str | None = None,
        actor_id: UUID | None = None,
    ) -> MeetingView:
        return self._run(
            "create_meeting",
            lambda svc: svc.create_meeting(
                cycle_id, scheduled_date, start_time, end_time,
                instructor_id, activity_type, topic, actor_id,
            ),
            cycle_id=str(cycle_id), actor_id=_opt(actor_id),
        )

    def delete_meeting(self, meeting_id: UUID, actor_id: UUID | None = None) -> MeetingView:
        return self._run(
            "delete_meeting", lambda svc: svc.delete_meeting(meeting_id, actor_id),
            meeting_id=str(meeting_id), actor_id=_opt(actor_id),
        )

    # ------------------------------------------------------------------
    # Bulk
    # ------------------------------------------------------------------

    def bulk_apply(
        self,
        meeting_ids: list[UUID] | tuple[UUID, ...],
        operation: BulkOperation | str,
        **params: Any,
    ) -> BulkResult:
        """Apply ``operation`` to every meeting; failed items are rolled back
        individually and reported, the rest commit together."""
        with self.transaction("bulk_apply") as session:
            runner = BulkOperationRunner(session, self.lifecycle(session))
            return runner.bulk_apply(meeting_ids, operation, **params)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_meeting(self, meeting_id: UUID) -> MeetingView:
        with self.transaction("get_meeting") as session:
            return MeetingSelector(session).get(meeting_id)

    def get_chain(self, meeting_id: UUID) -> list[MeetingView]:
        with self.transaction("get_chain") as session:
            return MeetingSelector(session).chain(meeting_id)

    def forecast(
        self,
        window: ForecastWindow | None = None,
        cycle_id: UUID | None = None,
    ) -> ForecastReport:
        forecast_settings = self._settings.forecast
        with self.transaction("forecast") as session:
            service = ForecastService(
                session,
                clock=self._clock,
                historical_months=forecast_settings.historical_months,
                forecast_months=forecast_settings.forecast_months,
                pattern_frequency_threshold=forecast_settings.pattern_frequency_threshold,
            )
            return service.forecast(window, cycle_id=cycle_id)

    def verify_counters(self, cycle_id: UUID) -> CounterCheck:
        with self.transaction("verify_counters") as session:
            return CounterReconciler(session).verify(cycle_id)


def _opt(value: UUID | None) -> str | None:
    return str(value) if value is not None else None
