"""
MeetingEngine tests -- the transactional facade.

Data is seeded and committed through the ``session`` fixture before any
engine call; every engine call then runs in its own session.  Results are
checked through the engine's read methods so no two sessions hold a
transaction at the same time.

Tests cover:
- Each operation commits the meeting write and the counter write together
- Any error rolls the whole operation back
- A failing notifier never rolls an operation back
- Settings flow into the lifecycle (reschedule interval, alerts)
- Bulk, chain and forecast reads through the facade
"""

from datetime import date, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from settlement_batch.domain.types import BulkOperation
from settlement_config.schema import EngineSettings
from settlement_kernel.db.engine import create_tables, reset_engine
from settlement_kernel.domain.meeting_status import ChangeRequestType, MeetingStatus
from settlement_kernel.domain.notifier import NotificationKind
from settlement_kernel.exceptions import InvalidTransitionError, MeetingNotFoundError
from settlement_services.meeting_engine import MeetingEngine


class _Boom(Exception):
    pass


@pytest.fixture
def engine(session_factory, notifier, deterministic_clock):
    return MeetingEngine(session_factory, notifier=notifier, clock=deterministic_clock)


@pytest.fixture
def seeded(session, make_instructor, make_cycle, make_meeting):
    instructor = make_instructor(rate_frontal=Decimal("100"))
    cycle = make_cycle(total_meetings=3, meeting_revenue=Decimal("500"), instructor=instructor)
    first = make_meeting(cycle, scheduled_date=date(2024, 3, 10))
    second = make_meeting(cycle, scheduled_date=date(2024, 3, 17))
    third = make_meeting(cycle, scheduled_date=date(2024, 3, 24))
    session.commit()
    return cycle.id, [first.id, second.id, third.id]


class TestCommit:
    def test_complete_commits_meeting_and_counters(self, engine, seeded, test_actor_id):
        cycle_id, (meeting_id, _, _) = seeded

        view = engine.complete(meeting_id, actor_id=test_actor_id)

        assert view.status == MeetingStatus.COMPLETED
        stored = engine.get_meeting(meeting_id)
        assert stored.status == MeetingStatus.COMPLETED
        assert stored.profit == Decimal("400")
        check = engine.verify_counters(cycle_id)
        assert (check.completed_meetings, check.remaining_meetings) == (1, 2)
        assert check.matches_meetings

    def test_postpone_commits_successor(self, engine, seeded):
        _, (meeting_id, _, _) = seeded

        result = engine.postpone(meeting_id, new_date=date(2024, 4, 1))

        chain = engine.get_chain(meeting_id)
        assert [m.id for m in chain] == [meeting_id, result.successor.id]
        assert chain[0].status == MeetingStatus.POSTPONED
        assert chain[1].status == MeetingStatus.SCHEDULED
        assert chain[1].scheduled_date == date(2024, 4, 1)

    def test_string_arguments_are_coerced(self, engine, seeded):
        _, (meeting_id, _, _) = seeded

        view = engine.request_change(meeting_id, "cancel", reason="holiday")
        assert view.status == MeetingStatus.PENDING_CANCELLATION

        view = engine.update_status(meeting_id, "cancelled")
        assert view.status == MeetingStatus.CANCELLED


class TestRollback:
    def test_error_inside_transaction_discards_every_write(self, engine, seeded, captured_logs):
        cycle_id, (meeting_id, _, _) = seeded

        with pytest.raises(_Boom):
            with engine.transaction("complete") as session:
                engine.lifecycle(session).complete(meeting_id)
                raise _Boom()

        assert engine.get_meeting(meeting_id).status == MeetingStatus.SCHEDULED
        check = engine.verify_counters(cycle_id)
        assert (check.completed_meetings, check.remaining_meetings) == (0, 3)
        rolled_back = [r for r in captured_logs() if r["message"] == "transaction_rolled_back"]
        assert rolled_back[0]["operation"] == "complete"

    def test_invalid_transition_is_raised_and_nothing_changes(self, engine, seeded):
        cycle_id, (meeting_id, _, _) = seeded
        engine.cancel(meeting_id, reason="rain")

        with pytest.raises(InvalidTransitionError):
            engine.complete(meeting_id)

        assert engine.get_meeting(meeting_id).status == MeetingStatus.CANCELLED
        assert engine.verify_counters(cycle_id).completed_meetings == 0

    def test_unknown_meeting(self, engine, seeded):
        with pytest.raises(MeetingNotFoundError):
            engine.complete(uuid4())

    def test_failing_notifier_does_not_roll_back(
        self, session_factory, failing_notifier, deterministic_clock, seeded,
    ):
        engine = MeetingEngine(session_factory, notifier=failing_notifier, clock=deterministic_clock)
        _, (meeting_id, _, _) = seeded

        view = engine.request_change(meeting_id, ChangeRequestType.POSTPONE, reason="exams")

        assert view.status == MeetingStatus.PENDING_POSTPONEMENT
        assert engine.get_meeting(meeting_id).status == MeetingStatus.PENDING_POSTPONEMENT
        assert failing_notifier.attempts == 1


class TestSettings:
    def test_reschedule_interval(self, session_factory, deterministic_clock, seeded):
        engine = MeetingEngine(
            session_factory,
            clock=deterministic_clock,
            settings=EngineSettings(reschedule_interval_days=14),
        )
        _, (meeting_id, _, _) = seeded

        result = engine.postpone(meeting_id)

        assert result.successor.scheduled_date == date(2024, 3, 24) + timedelta(days=14)

    def test_negative_profit_alerts_disabled(
        self, session, session_factory, notifier, deterministic_clock, make_cycle, make_meeting,
        make_instructor,
    ):
        instructor = make_instructor(rate_frontal=Decimal("100"))
        meeting = make_meeting(make_cycle(meeting_revenue=Decimal("50"), instructor=instructor))
        meeting_id = meeting.id
        session.commit()
        engine = MeetingEngine(
            session_factory, notifier=notifier, clock=deterministic_clock,
            settings=EngineSettings(negative_profit_alerts=False),
        )

        view = engine.complete(meeting_id)

        assert view.profit == Decimal("-50")
        assert notifier.of_kind(NotificationKind.NEGATIVE_PROFIT) == []

    def test_from_settings_initialises_database(self, deterministic_clock):
        settings = EngineSettings(database_url="sqlite+pysqlite:///:memory:", log_level="DEBUG")
        try:
            engine = MeetingEngine.from_settings(settings, clock=deterministic_clock)
            create_tables()
            assert engine.settings is settings
            with pytest.raises(MeetingNotFoundError):
                engine.get_meeting(uuid4())
        finally:
            reset_engine()


class TestBulkAndReads:
    def test_bulk_apply_commits_successes(self, engine, seeded):
        cycle_id, (a, b, c) = seeded

        result = engine.bulk_apply([a, uuid4(), c], BulkOperation.COMPLETE)

        assert result.succeeded == 2
        assert len(result.failed) == 1
        assert engine.get_meeting(a).status == MeetingStatus.COMPLETED
        assert engine.get_meeting(b).status == MeetingStatus.SCHEDULED
        assert engine.get_meeting(c).status == MeetingStatus.COMPLETED
        check = engine.verify_counters(cycle_id)
        assert (check.completed_meetings, check.remaining_meetings) == (2, 1)

    def test_create_and_delete(self, engine, seeded):
        cycle_id, _ = seeded

        created = engine.create_meeting(cycle_id, date(2024, 3, 31), topic="Extra session")
        assert engine.verify_counters(cycle_id).total_meetings == 4

        engine.delete_meeting(created.id)
        with pytest.raises(MeetingNotFoundError):
            engine.get_meeting(created.id)

    def test_forecast(self, engine, seeded):
        cycle_id, (a, _, _) = seeded
        engine.complete(a)

        report = engine.forecast(cycle_id=cycle_id)

        assert report.historical[-1].month == "2024-03"
        assert report.historical[-1].revenue == Decimal("500.00")
        assert [m.month for m in report.forecast] == ["2024-04", "2024-05", "2024-06"]
