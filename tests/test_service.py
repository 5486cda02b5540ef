"""Tests for cabinet.domain.scheduling.service."""

from datetime import datetime, timedelta, timezone

import pytest

from cabinet.errors import ErrorCode, SlotTakenError, StorageError, Unauthorized
from cabinet.models import AppointmentStatus


def at(hour: int, minute: int = 0, day: int = 27) -> datetime:
    return datetime(2026, 1, day, hour, minute)


def book(service, patient, start, duration=30, type="Follow-up", notes=None):
    return service.create(patient.id, start, duration, type, notes)


class TestCreate:
    """Booking new appointments."""

    def test_creates_pending_appointment(self, service, alice):
        result = book(service, alice, at(9), notes="First visit after surgery")

        assert result.success is True
        assert result.error is None
        appointment = result.appointment
        assert appointment.status == AppointmentStatus.PENDING.value
        assert appointment.start_time == at(9)
        assert appointment.end_time == at(9, 30)
        assert appointment.patient.last_name == "Durand"
        assert appointment.notes == "First visit after surgery"
        assert appointment.created_at is not None

    def test_back_to_back_appointments_succeed(self, service, alice, bob):
        assert book(service, alice, at(9)).success
        assert book(service, bob, at(9, 30)).success

    def test_overlap_is_rejected_with_patient_name(self, service, alice, bob):
        first = book(service, alice, at(9)).appointment

        result = book(service, bob, at(9, 15))

        assert result.success is False
        assert result.error.code == ErrorCode.CONFLICT
        assert "Alice Durand" in result.error.message
        assert result.error.conflicting_appointment_id == first.id

    def test_cancelled_slot_can_be_reused(self, service, alice, bob):
        first = book(service, alice, at(9), duration=60).appointment
        assert service.set_status(first.id, "CANCELLED").success

        result = book(service, bob, at(9), duration=60)

        assert result.success is True

    @pytest.mark.parametrize("duration", [0, 20, 90, -15])
    def test_rejects_unoffered_duration(self, service, alice, duration):
        result = book(service, alice, at(9), duration=duration)

        assert result.success is False
        assert result.error.code == ErrorCode.VALIDATION
        assert "duration" in result.error.message

    def test_rejects_start_in_the_past(self, service, alice):
        result = book(service, alice, datetime(2026, 1, 26, 11, 0))

        assert result.error.code == ErrorCode.VALIDATION
        assert "future" in result.error.message

    def test_rejects_unknown_patient(self, service, practitioner):
        result = service.create("no-such-patient", at(9), 30, "Follow-up")

        assert result.error.code == ErrorCode.VALIDATION
        assert "patient" in result.error.message

    def test_rejects_unknown_type(self, service, alice):
        result = book(service, alice, at(9), type="Massage")

        assert result.error.code == ErrorCode.VALIDATION

    def test_rejects_long_notes(self, service, alice):
        result = book(service, alice, at(9), notes="x" * 501)

        assert result.error.code == ErrorCode.VALIDATION
        assert "500" in result.error.message

    def test_blank_notes_are_dropped(self, service, alice):
        result = book(service, alice, at(9), notes="   ")

        assert result.appointment.notes is None

    def test_storage_failure_is_generic(self, service, alice, monkeypatch):
        def broken_create(data):
            raise StorageError("appointment create", RuntimeError("connection reset by peer"))

        monkeypatch.setattr(service.repo, "create", broken_create)

        result = book(service, alice, at(9))

        assert result.success is False
        assert result.error.code == ErrorCode.STORAGE
        assert "connection reset" not in result.error.message

    def test_offset_aware_start_is_stored_as_practice_time(self, service, alice):
        result = book(service, alice, datetime(2026, 1, 27, 11, 0, tzinfo=timezone(timedelta(hours=2))))

        assert result.success is True
        assert result.appointment.start_time == at(9)
        assert result.appointment.end_time == at(9, 30)

    def test_offset_aware_past_start_is_a_validation_result(self, service, alice):
        result = book(service, alice, datetime(2026, 1, 26, 11, 0, tzinfo=timezone.utc))

        assert result.success is False
        assert result.error.code == ErrorCode.VALIDATION

    def test_store_constraint_reports_conflict(self, service, alice, monkeypatch):
        def racing_create(data):
            raise SlotTakenError("appointment create", RuntimeError("exclusion violation"))

        monkeypatch.setattr(service.repo, "create", racing_create)

        result = book(service, alice, at(9))

        assert result.error.code == ErrorCode.CONFLICT
        assert "exclusion" not in result.error.message

    def test_unauthenticated_call_raises(self, anonymous_service, alice):
        with pytest.raises(Unauthorized):
            book(anonymous_service, alice, at(9))


class TestReschedule:
    """Moving and editing appointments."""

    def test_moves_appointment(self, service, alice):
        original = book(service, alice, at(9)).appointment

        result = service.reschedule(original.id, new_start=at(14))

        assert result.success is True
        assert result.appointment.start_time == at(14)
        assert result.appointment.end_time == at(14, 30)

    def test_overlapping_own_slot_is_allowed(self, service, alice):
        original = book(service, alice, at(9)).appointment

        result = service.reschedule(original.id, new_start=at(9, 15))

        assert result.success is True
        assert result.appointment.end_time == at(9, 45)

    def test_changes_duration_only(self, service, alice):
        original = book(service, alice, at(9)).appointment

        result = service.reschedule(original.id, new_duration=90)

        assert result.appointment.start_time == at(9)
        assert result.appointment.end_time == at(10, 30)

    def test_conflict_with_other_appointment(self, service, alice, bob):
        book(service, alice, at(10))
        other = book(service, bob, at(9)).appointment

        result = service.reschedule(other.id, new_duration=90)

        assert result.error.code == ErrorCode.CONFLICT
        assert "Alice Durand" in result.error.message

    @pytest.mark.parametrize("duration", [0, 241])
    def test_duration_out_of_range(self, service, alice, duration):
        original = book(service, alice, at(9)).appointment

        result = service.reschedule(original.id, new_duration=duration)

        assert result.error.code == ErrorCode.VALIDATION

    def test_unknown_appointment(self, service):
        result = service.reschedule("missing", new_start=at(9))

        assert result.error.code == ErrorCode.NOT_FOUND

    def test_offset_aware_new_start(self, service, alice):
        original = book(service, alice, at(9)).appointment

        result = service.reschedule(original.id, new_start=datetime(2026, 1, 27, 14, tzinfo=timezone.utc))

        assert result.success is True
        assert result.appointment.start_time == at(14)

    def test_updates_type_and_notes_without_moving(self, service, alice):
        original = book(service, alice, at(9), notes="Bring X-rays").appointment

        result = service.reschedule(original.id, type="Emergency", notes="Moved up")

        assert result.appointment.type == "Emergency"
        assert result.appointment.notes == "Moved up"
        assert result.appointment.start_time == at(9)

    def test_none_notes_clears_them(self, service, alice):
        original = book(service, alice, at(9), notes="Bring X-rays").appointment

        result = service.reschedule(original.id, notes=None)

        assert result.appointment.notes is None

    def test_omitted_notes_are_kept(self, service, alice):
        original = book(service, alice, at(9), notes="Bring X-rays").appointment

        result = service.reschedule(original.id, new_start=at(11))

        assert result.appointment.notes == "Bring X-rays"

    def test_unauthenticated_call_raises(self, anonymous_service):
        with pytest.raises(Unauthorized):
            anonymous_service.reschedule("any", new_start=at(9))


class TestSetStatus:
    """Status transitions."""

    def test_confirm_then_complete(self, service, alice):
        appointment = book(service, alice, at(9)).appointment

        assert service.set_status(appointment.id, "CONFIRMED").success
        assert service.set_status(appointment.id, "COMPLETED").success
        assert service.repo.get(appointment.id).status == "COMPLETED"

    def test_accepts_enum_member(self, service, alice):
        appointment = book(service, alice, at(9)).appointment

        assert service.set_status(appointment.id, AppointmentStatus.CANCELLED).success

    def test_unknown_status(self, service, alice):
        appointment = book(service, alice, at(9)).appointment

        result = service.set_status(appointment.id, "ARCHIVED")

        assert result.success is False
        assert result.error.code == ErrorCode.VALIDATION

    @pytest.mark.parametrize("terminal", ["CANCELLED", "COMPLETED"])
    @pytest.mark.parametrize("target", ["PENDING", "CONFIRMED", "CANCELLED", "COMPLETED"])
    def test_terminal_states_are_final(self, service, alice, terminal, target):
        appointment = book(service, alice, at(9)).appointment
        assert service.set_status(appointment.id, terminal).success

        result = service.set_status(appointment.id, target)

        assert result.error.code == ErrorCode.VALIDATION
        assert service.repo.get(appointment.id).status == terminal

    def test_confirmed_cannot_go_back_to_pending(self, service, alice):
        appointment = book(service, alice, at(9)).appointment
        service.set_status(appointment.id, "CONFIRMED")

        result = service.set_status(appointment.id, "PENDING")

        assert result.error.code == ErrorCode.VALIDATION

    def test_unknown_appointment(self, service):
        assert service.set_status("missing", "CONFIRMED").error.code == ErrorCode.NOT_FOUND

    def test_row_removed_before_update(self, service, alice, monkeypatch):
        appointment = book(service, alice, at(9)).appointment
        monkeypatch.setattr(service.repo, "update", lambda appointment_id, data: None)

        result = service.set_status(appointment.id, "CONFIRMED")

        assert result.success is False
        assert result.error.code == ErrorCode.NOT_FOUND

    def test_unauthenticated_call_raises(self, anonymous_service):
        with pytest.raises(Unauthorized):
            anonymous_service.set_status("any", "CONFIRMED")


class TestDelete:
    def test_deletes_appointment(self, service, alice):
        appointment = book(service, alice, at(9)).appointment

        assert service.delete(appointment.id).success
        assert service.repo.get(appointment.id) is None

    def test_deleted_slot_is_free(self, service, alice, bob):
        appointment = book(service, alice, at(9)).appointment
        service.delete(appointment.id)

        assert book(service, bob, at(9)).success

    def test_unknown_appointment(self, service):
        assert service.delete("missing").error.code == ErrorCode.NOT_FOUND

    def test_unauthenticated_call_raises(self, anonymous_service):
        with pytest.raises(Unauthorized):
            anonymous_service.delete("any")


class TestListInRange:
    """Window queries."""

    @pytest.fixture
    def day_schedule(self, service, alice, bob):
        cancelled = book(service, alice, at(8)).appointment
        service.set_status(cancelled.id, "CANCELLED")
        late = book(service, bob, at(19, 45)).appointment
        morning = book(service, alice, at(10)).appointment
        next_day = book(service, bob, at(9, day=28)).appointment
        return {"cancelled": cancelled, "late": late, "morning": morning, "next_day": next_day}

    def test_excludes_cancelled_and_sorts(self, service, day_schedule):
        appointments = service.list_in_range(at(8), at(20), include_cancelled=False)

        assert [a.id for a in appointments] == [day_schedule["morning"].id, day_schedule["late"].id]

    def test_includes_partially_overlapping(self, service, day_schedule):
        """19:45-20:15 intersects the 08:00-20:00 window."""
        ids = {a.id for a in service.list_in_range(at(8), at(20), include_cancelled=False)}

        assert day_schedule["late"].id in ids
        assert day_schedule["next_day"].id not in ids

    def test_offset_aware_bounds(self, service, day_schedule):
        start = datetime(2026, 1, 27, 9, tzinfo=timezone(timedelta(hours=1)))
        end = datetime(2026, 1, 27, 20, tzinfo=timezone.utc)

        appointments = service.list_in_range(start, end)

        assert [a.id for a in appointments] == [day_schedule["morning"].id, day_schedule["late"].id]

    def test_includes_cancelled_on_request(self, service, day_schedule):
        appointments = service.list_in_range(at(8), at(20), include_cancelled=True)

        assert appointments[0].id == day_schedule["cancelled"].id
        assert len(appointments) == 3

    def test_unauthenticated_call_raises(self, anonymous_service):
        with pytest.raises(Unauthorized):
            anonymous_service.list_in_range(at(8), at(20))


class TestCacheInvalidation:
    """Every successful write clears the session's calendar windows."""

    def test_create_clears_cache(self, service, view_state, alice):
        view_state.set_appointments("2026-W05", [])

        book(service, alice, at(9))

        assert view_state.get_appointments("2026-W05") is None

    def test_reschedule_status_and_delete_clear_cache(self, service, view_state, alice):
        appointment = book(service, alice, at(9)).appointment

        view_state.set_appointments("2026-W05", [])
        service.reschedule(appointment.id, new_start=at(10))
        assert view_state.get_appointments("2026-W05") is None

        view_state.set_appointments("2026-W05", [])
        service.set_status(appointment.id, "CONFIRMED")
        assert view_state.get_appointments("2026-W05") is None

        view_state.set_appointments("2026-W05", [])
        service.delete(appointment.id)
        assert view_state.get_appointments("2026-W05") is None

    def test_failed_write_keeps_cache(self, service, view_state, alice, bob):
        book(service, alice, at(9))
        view_state.set_appointments("2026-W05", [])

        book(service, bob, at(9))

        assert view_state.get_appointments("2026-W05") == []


class TestNoOverlapInvariant:
    def test_no_two_active_appointments_overlap(self, service, alice, bob):
        """Book a dense grid of candidate slots and check the stored schedule."""
        patients = [alice, bob]
        for step in range(40):
            start = at(8) + timedelta(minutes=10 * step)
            duration = (15, 30, 45, 60)[step % 4]
            book(service, patients[step % 2], start, duration=duration)

        active = service.list_in_range(at(0), at(23, 59), include_cancelled=False)
        assert len(active) > 1
        for i, first in enumerate(active):
            for second in active[i + 1:]:
                assert not (first.start_time < second.end_time and first.end_time > second.start_time)


class TestDashboardStats:
    def test_counts_today_and_lists_upcoming(self, service, alice, bob):
        # NOW is 2026-01-26 12:00
        book(service, alice, at(14, day=26))
        book(service, bob, at(16, day=26))
        cancelled = book(service, alice, at(9)).appointment
        service.set_status(cancelled.id, "CANCELLED")
        for hour in range(10, 16):
            book(service, bob, at(hour, day=28))

        stats = service.dashboard_stats()

        assert stats.today_appointments_count == 2
        assert len(stats.upcoming_appointments) == 5
        assert stats.upcoming_appointments[0].start_time == at(14, day=26)
        assert all(a.status != "CANCELLED" for a in stats.upcoming_appointments)

    def test_unauthenticated_call_raises(self, anonymous_service):
        with pytest.raises(Unauthorized):
            anonymous_service.dashboard_stats()
