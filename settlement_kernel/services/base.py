"""
BaseService -- abstract base for all services that write rows.

Responsibility:
    Provides the common constructor and session-handling contract.  All
    concrete services receive a SQLAlchemy ``Session`` that they use via
    ``session.flush()`` -- never ``session.commit()``.

Invariants enforced:
    Transaction boundaries: services flush within the caller's transaction
    and never commit or rollback themselves.  The caller (``MeetingEngine``,
    the bulk runner's savepoints, or a test) owns commit/rollback, so a
    meeting write and its cycle counter write land atomically.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from settlement_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for write services.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide query-only (read) methods -- those belong
          in ``settlement_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session
