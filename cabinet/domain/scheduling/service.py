"""Scheduling service - Business logic for booking and managing appointments"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from pydantic import ValidationError

from ...config import MAX_APPOINTMENT_MINUTES, UPCOMING_APPOINTMENTS_LIMIT
from ...errors import SchedulingError, SlotTakenError, Unauthorized
from ...models import STATUS_TRANSITIONS, Appointment, AppointmentStatus, User
from ...shared.timezone import now_local
from ...shared.validators import validate_uuid, validate_wall_clock
from .conflicts import ConflictDetector
from .repository import AppointmentRepository, PatientRepository
from .schemas import (
    ActionResult,
    AppointmentCreate,
    AppointmentResponse,
    AppointmentResult,
    AppointmentUpdate,
    DashboardStats,
)
from .time_grid import duration_minutes

logger = logging.getLogger(__name__)

# Marks "notes not supplied" so that None can still clear them
UNSET = object()


def _first_error(exc: ValidationError) -> str:
    message = exc.errors()[0]["msg"]
    return message.removeprefix("Value error, ")


class SchedulingService:
    """Service layer for appointment scheduling"""

    def __init__(
        self,
        repository: AppointmentRepository,
        patients: PatientRepository,
        identity: Callable[[], Optional[User]],
        clock: Optional[Callable[[], datetime]] = None,
        on_change: Optional[Callable[[], None]] = None,
    ):
        self.repo = repository
        self.patients = patients
        self.identity = identity
        self.clock = clock or now_local
        self.on_change = on_change
        self.detector = ConflictDetector(repository)

    def _ensure_auth(self) -> User:
        user = self.identity()
        if user is None:
            raise Unauthorized("User must be authenticated to access calendar appointments")
        return user

    def _changed(self) -> None:
        # Cached calendar windows are stale after any write
        if self.on_change is not None:
            self.on_change()

    def _conflict_error(self, appointment: Appointment) -> SchedulingError:
        name = appointment.patient.full_name if appointment.patient else "another patient"
        return SchedulingError.conflict(name, appointment.id)

    def create(
        self,
        patient_id: str,
        start_time: datetime,
        duration: int,
        type: str,
        notes: Optional[str] = None,
    ) -> AppointmentResult:
        """Book a new PENDING appointment after validation and a conflict check"""
        self._ensure_auth()

        try:
            data = AppointmentCreate(
                patient_id=patient_id, start_time=start_time, duration=duration, type=type, notes=notes
            )
        except ValidationError as e:
            return AppointmentResult.fail(SchedulingError.validation(_first_error(e)))

        if data.start_time <= self.clock():
            return AppointmentResult.fail(SchedulingError.validation("The appointment must be in the future"))

        try:
            if not validate_uuid(data.patient_id) or self.patients.get(data.patient_id) is None:
                return AppointmentResult.fail(SchedulingError.validation("Please select a patient"))

            end_time = data.start_time + timedelta(minutes=data.duration)
            check = self.detector.has_conflict(data.start_time, end_time)
            if check.conflict:
                return AppointmentResult.fail(self._conflict_error(check.with_appointment))

            appointment = self.repo.create(
                {
                    "patient_id": data.patient_id,
                    "start_time": data.start_time,
                    "end_time": end_time,
                    "type": data.type,
                    "notes": data.notes,
                    "status": AppointmentStatus.PENDING.value,
                }
            )
        except SlotTakenError:
            return AppointmentResult.fail(SchedulingError.slot_taken())
        except Exception as e:
            logger.error(f"❌ [create] Failed to create appointment for patient {patient_id}: {e}")
            return AppointmentResult.fail(SchedulingError.storage("create the appointment"))

        logger.info(f"✅ Appointment {appointment.id} booked at {appointment.start_time:%Y-%m-%d %H:%M}")
        self._changed()
        return AppointmentResult.ok(appointment)

    def reschedule(
        self,
        appointment_id: str,
        new_start: Optional[datetime] = None,
        new_duration: Optional[int] = None,
        type: Optional[str] = None,
        notes=UNSET,
    ) -> AppointmentResult:
        """
        Move and/or edit an appointment.

        When neither ``new_start`` nor ``new_duration`` is given the interval is
        kept and only type/notes are re-validated. A missing duration keeps the
        current length. The conflict check ignores the appointment itself.
        """
        self._ensure_auth()

        changes = {"start_time": new_start, "duration": new_duration, "type": type}
        changes = {key: value for key, value in changes.items() if value is not None}
        if notes is not UNSET:
            changes["notes"] = notes

        try:
            update = AppointmentUpdate(**changes)
        except ValidationError as e:
            return AppointmentResult.fail(SchedulingError.validation(_first_error(e)))

        try:
            existing = self.repo.get(appointment_id)
            if existing is None:
                return AppointmentResult.fail(SchedulingError.not_found())

            updates = {}
            if update.start_time is not None or update.duration is not None:
                start_time = update.start_time or existing.start_time
                minutes = update.duration
                if minutes is None:
                    minutes = duration_minutes(existing.start_time, existing.end_time)
                if minutes < 1 or minutes > MAX_APPOINTMENT_MINUTES:
                    return AppointmentResult.fail(
                        SchedulingError.validation(f"Invalid duration (1 to {MAX_APPOINTMENT_MINUTES} min)")
                    )
                end_time = start_time + timedelta(minutes=minutes)

                check = self.detector.has_conflict(start_time, end_time, exclude_id=appointment_id)
                if check.conflict:
                    return AppointmentResult.fail(self._conflict_error(check.with_appointment))
                updates["start_time"] = start_time
                updates["end_time"] = end_time

            if update.type is not None:
                updates["type"] = update.type
            if "notes" in update.model_fields_set:
                updates["notes"] = update.notes

            appointment = self.repo.update(appointment_id, updates)
            if appointment is None:
                return AppointmentResult.fail(SchedulingError.not_found())
        except SlotTakenError:
            return AppointmentResult.fail(SchedulingError.slot_taken())
        except Exception as e:
            logger.error(f"❌ [reschedule] Failed to update appointment {appointment_id}: {e}")
            return AppointmentResult.fail(SchedulingError.storage("update the appointment"))

        logger.info(f"🔄 Appointment {appointment_id} updated")
        self._changed()
        return AppointmentResult.ok(appointment)

    def set_status(self, appointment_id: str, new_status: str) -> ActionResult:
        """Move an appointment along PENDING -> CONFIRMED -> COMPLETED, or cancel it"""
        self._ensure_auth()

        try:
            status = AppointmentStatus(new_status)
        except ValueError:
            return ActionResult.fail(SchedulingError.validation("Invalid status."))

        try:
            existing = self.repo.get(appointment_id)
            if existing is None:
                return ActionResult.fail(SchedulingError.not_found())

            current = AppointmentStatus(existing.status)
            if status not in STATUS_TRANSITIONS[current]:
                return ActionResult.fail(
                    SchedulingError.validation(f"Cannot change status from {current.value} to {status.value}.")
                )

            if self.repo.update(appointment_id, {"status": status.value}) is None:
                return ActionResult.fail(SchedulingError.not_found())
        except Exception as e:
            logger.error(f"❌ [set_status] Failed to update status of {appointment_id}: {e}")
            return ActionResult.fail(SchedulingError.storage("change the status"))

        logger.info(f"📋 Appointment {appointment_id}: {current.value} -> {status.value}")
        self._changed()
        return ActionResult.ok()

    def delete(self, appointment_id: str) -> ActionResult:
        """Permanently delete an appointment"""
        self._ensure_auth()

        try:
            deleted = self.repo.delete(appointment_id)
        except Exception as e:
            logger.error(f"❌ [delete] Failed to delete appointment {appointment_id}: {e}")
            return ActionResult.fail(SchedulingError.storage("delete the appointment"))

        if not deleted:
            return ActionResult.fail(SchedulingError.not_found())

        logger.info(f"🗑️ Appointment {appointment_id} deleted")
        self._changed()
        return ActionResult.ok()

    def list_in_range(
        self, start: datetime, end: datetime, include_cancelled: bool = False
    ) -> list[Appointment]:
        """Appointments whose interval intersects [start, end], earliest first"""
        self._ensure_auth()
        start, end = validate_wall_clock(start), validate_wall_clock(end)
        return self.repo.find_in_range(start, end, include_cancelled)

    def dashboard_stats(self) -> DashboardStats:
        """Today's appointment count and the next few active appointments"""
        self._ensure_auth()

        now = self.clock()
        day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        day_end = day_start + timedelta(days=1) - timedelta(microseconds=1)

        return DashboardStats(
            today_appointments_count=self.repo.count_starting_between(day_start, day_end),
            upcoming_appointments=[
                AppointmentResponse.model_validate(appt)
                for appt in self.repo.find_upcoming(now, UPCOMING_APPOINTMENTS_LIMIT)
            ],
        )
