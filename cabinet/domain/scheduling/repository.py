"""Appointment repository - storage contract and SQLAlchemy implementation"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from ...errors import SlotTakenError, StorageError
from ...models import Appointment, AppointmentStatus, Patient

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = (AppointmentStatus.PENDING.value, AppointmentStatus.CONFIRMED.value)

# Exclusion constraint installed by migrations/add_appointment_overlap_constraint.py
OVERLAP_CONSTRAINT = "appointments_no_overlap"


class AppointmentRepository(ABC):
    """Storage operations the scheduling engine depends on"""

    @abstractmethod
    def get(self, appointment_id: str) -> Optional[Appointment]:
        ...

    @abstractmethod
    def find_overlapping(
        self, start: datetime, end: datetime, exclude_id: Optional[str] = None
    ) -> list[Appointment]:
        """Non-cancelled appointments intersecting [start, end)"""

    @abstractmethod
    def create(self, data: dict[str, Any]) -> Appointment:
        ...

    @abstractmethod
    def update(self, appointment_id: str, data: dict[str, Any]) -> Optional[Appointment]:
        ...

    @abstractmethod
    def delete(self, appointment_id: str) -> bool:
        ...

    @abstractmethod
    def find_in_range(
        self, start: datetime, end: datetime, include_cancelled: bool
    ) -> list[Appointment]:
        """Appointments intersecting the window, ascending by start time"""

    @abstractmethod
    def count_starting_between(self, start: datetime, end: datetime) -> int:
        ...

    @abstractmethod
    def find_upcoming(self, after: datetime, limit: int) -> list[Appointment]:
        """Next pending/confirmed appointments starting at or after ``after``"""


class PatientRepository:
    """Read-only patient lookups needed by scheduling"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, patient_id: str) -> Optional[Patient]:
        try:
            return self.db.query(Patient).filter(Patient.id == patient_id).first()
        except SQLAlchemyError as e:
            raise StorageError("patient lookup", e) from e


class SqlAlchemyAppointmentRepository(AppointmentRepository):
    """Repository for appointment database operations"""

    def __init__(self, db: Session):
        self.db = db

    def _query(self):
        return self.db.query(Appointment).options(joinedload(Appointment.patient))

    def _rollback(self, operation: str, error: SQLAlchemyError) -> StorageError:
        self.db.rollback()
        if isinstance(error, IntegrityError) and OVERLAP_CONSTRAINT in str(error.orig):
            logger.warning(f"⚠️ Appointment {operation} rejected by {OVERLAP_CONSTRAINT}")
            return SlotTakenError(f"appointment {operation}", error)
        logger.error(f"❌ Appointment {operation} failed: {error}")
        return StorageError(f"appointment {operation}", error)

    def get(self, appointment_id: str) -> Optional[Appointment]:
        try:
            return self._query().filter(Appointment.id == appointment_id).first()
        except SQLAlchemyError as e:
            raise self._rollback("lookup", e) from e

    def find_overlapping(
        self, start: datetime, end: datetime, exclude_id: Optional[str] = None
    ) -> list[Appointment]:
        query = self._query().filter(
            Appointment.status != AppointmentStatus.CANCELLED.value,
            Appointment.start_time < end,
            Appointment.end_time > start,
        )
        if exclude_id:
            query = query.filter(Appointment.id != exclude_id)
        try:
            return query.order_by(Appointment.start_time.asc(), Appointment.id.asc()).all()
        except SQLAlchemyError as e:
            raise self._rollback("overlap query", e) from e

    def create(self, data: dict[str, Any]) -> Appointment:
        now = datetime.utcnow()
        appointment = Appointment(created_at=now, updated_at=now, **data)
        try:
            self.db.add(appointment)
            self.db.commit()
            self.db.refresh(appointment)
        except SQLAlchemyError as e:
            raise self._rollback("create", e) from e
        return appointment

    def update(self, appointment_id: str, data: dict[str, Any]) -> Optional[Appointment]:
        appointment = self.get(appointment_id)
        if appointment is None:
            return None

        for key, value in data.items():
            if hasattr(appointment, key):
                setattr(appointment, key, value)
        appointment.updated_at = datetime.utcnow()

        try:
            self.db.commit()
            self.db.refresh(appointment)
        except SQLAlchemyError as e:
            raise self._rollback("update", e) from e
        return appointment

    def delete(self, appointment_id: str) -> bool:
        appointment = self.get(appointment_id)
        if appointment is None:
            return False
        try:
            self.db.delete(appointment)
            self.db.commit()
        except SQLAlchemyError as e:
            raise self._rollback("delete", e) from e
        return True

    def find_in_range(
        self, start: datetime, end: datetime, include_cancelled: bool
    ) -> list[Appointment]:
        query = self._query().filter(
            Appointment.start_time < end,
            Appointment.end_time > start,
        )
        if not include_cancelled:
            query = query.filter(Appointment.status != AppointmentStatus.CANCELLED.value)
        try:
            return query.order_by(Appointment.start_time.asc()).all()
        except SQLAlchemyError as e:
            raise self._rollback("range query", e) from e

    def count_starting_between(self, start: datetime, end: datetime) -> int:
        try:
            return (
                self.db.query(Appointment)
                .filter(Appointment.start_time >= start, Appointment.start_time <= end)
                .count()
            )
        except SQLAlchemyError as e:
            raise self._rollback("count", e) from e

    def find_upcoming(self, after: datetime, limit: int) -> list[Appointment]:
        try:
            return (
                self._query()
                .filter(Appointment.start_time >= after, Appointment.status.in_(ACTIVE_STATUSES))
                .order_by(Appointment.start_time.asc())
                .limit(limit)
                .all()
            )
        except SQLAlchemyError as e:
            raise self._rollback("upcoming query", e) from e
