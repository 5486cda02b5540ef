"""Calendar router - FastAPI endpoints for appointment scheduling"""

import logging
from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ...auth import get_current_user, get_current_user_optional
from ...cache import PreferenceStore
from ...database import get_db
from ...errors import ErrorCode, Unauthorized
from ...models import User
from .calendar_view import CalendarViewState
from .repository import PatientRepository, SqlAlchemyAppointmentRepository
from .schemas import (
    ActionResult,
    AppointmentResponse,
    AppointmentResult,
    BookingRequest,
    CalendarPreferences,
    CalendarWindowResponse,
    DashboardStats,
    GridAppointment,
    RescheduleRequest,
    StatusUpdate,
    ViewGranularity,
)
from .service import UNSET, SchedulingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/calendar", tags=["Calendar"])

ERROR_STATUS_CODES = {
    ErrorCode.VALIDATION: 400,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.CONFLICT: 409,
    ErrorCode.STORAGE: 503,
}


def get_preference_store() -> PreferenceStore:
    return PreferenceStore()


# Live view state per practitioner id, seeded from stored preferences on first use
view_states: dict[str, CalendarViewState] = {}


def get_view_state(
    current_user: Optional[User] = Depends(get_current_user_optional),
    store: PreferenceStore = Depends(get_preference_store),
) -> Optional[CalendarViewState]:
    if current_user is None:
        return None

    state = view_states.get(current_user.id)
    if state is None:
        state = CalendarViewState.from_preferences(store.load(current_user.id))
        view_states[current_user.id] = state
        logger.info(f"📅 Calendar view state created for user {current_user.id}")
    return state


def get_scheduling_service(
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_current_user_optional),
    state: Optional[CalendarViewState] = Depends(get_view_state),
) -> SchedulingService:
    """Dependency injection for SchedulingService"""
    return SchedulingService(
        SqlAlchemyAppointmentRepository(db),
        PatientRepository(db),
        identity=lambda: current_user,
        on_change=state.clear_cache if state is not None else None,
    )


class SnapshotReader:
    """Serves windows as response models so cached entries outlive the request's session"""

    def __init__(self, service: SchedulingService):
        self.service = service

    def list_in_range(self, start: datetime, end: datetime, include_cancelled: bool = False):
        return [
            AppointmentResponse.model_validate(a)
            for a in self.service.list_in_range(start, end, include_cancelled)
        ]


def _respond(result, success_status: int = 200) -> JSONResponse:
    status_code = success_status if result.success else ERROR_STATUS_CODES[result.error.code]
    return JSONResponse(status_code=status_code, content=result.model_dump(mode="json"))


# ============================================================================
# QUERIES
# ============================================================================


@router.get("/appointments", response_model=list[AppointmentResponse])
async def list_appointments(
    start: datetime = Query(...),
    end: datetime = Query(...),
    show_cancelled: bool = Query(False),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Appointments intersecting [start, end], earliest first"""
    appointments = service.list_in_range(start, end, include_cancelled=show_cancelled)
    return [AppointmentResponse.model_validate(a) for a in appointments]


@router.get("/view", response_model=CalendarWindowResponse)
async def get_calendar_view(
    pivot: Optional[date] = Query(None, alias="date"),
    granularity: Optional[ViewGranularity] = Query(None),
    show_cancelled: Optional[bool] = Query(None),
    service: SchedulingService = Depends(get_scheduling_service),
    state: Optional[CalendarViewState] = Depends(get_view_state),
):
    """
    The practitioner's current window with grid coordinates for each appointment.

    Omitted parameters keep the session's pivot date, granularity and
    cancelled filter. Windows are served from the view state's cache until
    a booking change clears it.
    """
    if state is None:
        raise Unauthorized("User must be authenticated to access calendar appointments")

    if pivot is not None:
        state.set_date(pivot)
    if granularity is not None:
        state.set_granularity(granularity)
    if show_cancelled is not None and show_cancelled != state.show_cancelled:
        state.toggle_show_cancelled()

    layout = state.grid_layout(SnapshotReader(service))
    start, end = state.visible_window()

    return CalendarWindowResponse(
        key=state.cache_key(),
        granularity=state.granularity,
        start=start,
        end=end,
        appointments=[
            GridAppointment(**appt.model_dump(), top=placement.top, height=placement.height)
            for appt, placement in layout
        ],
    )


@router.get("/dashboard", response_model=DashboardStats)
async def get_dashboard(service: SchedulingService = Depends(get_scheduling_service)):
    """Today's appointment count and the next upcoming appointments"""
    return service.dashboard_stats()


# ============================================================================
# MUTATIONS
# ============================================================================


@router.post("/appointments", response_model=AppointmentResult)
async def create_appointment(
    data: BookingRequest,
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Book a new appointment (status PENDING)"""
    result = service.create(data.patient_id, data.start_time, data.duration, data.type, data.notes)
    return _respond(result, success_status=201)


@router.patch("/appointments/{appointment_id}", response_model=AppointmentResult)
async def reschedule_appointment(
    appointment_id: str,
    data: RescheduleRequest,
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Move an appointment or edit its type/notes"""
    notes = data.notes if "notes" in data.model_fields_set else UNSET
    result = service.reschedule(
        appointment_id, data.start_time, data.duration, type=data.type, notes=notes
    )
    return _respond(result)


@router.patch("/appointments/{appointment_id}/status", response_model=ActionResult)
async def update_appointment_status(
    appointment_id: str,
    data: StatusUpdate,
    service: SchedulingService = Depends(get_scheduling_service),
):
    result = service.set_status(appointment_id, data.status)
    return _respond(result)


@router.delete("/appointments/{appointment_id}", response_model=ActionResult)
async def delete_appointment(
    appointment_id: str,
    service: SchedulingService = Depends(get_scheduling_service),
):
    result = service.delete(appointment_id)
    return _respond(result)


# ============================================================================
# VIEW PREFERENCES
# ============================================================================


@router.get("/preferences", response_model=CalendarPreferences)
async def get_preferences(
    current_user: User = Depends(get_current_user),
    store: PreferenceStore = Depends(get_preference_store),
):
    """Stored view preferences, or the defaults (week, cancellations hidden)"""
    stored = store.load(current_user.id)
    if stored is None:
        return CalendarPreferences()
    return CalendarPreferences.model_validate(stored)


@router.put("/preferences", response_model=CalendarPreferences)
async def update_preferences(
    data: CalendarPreferences,
    current_user: User = Depends(get_current_user),
    store: PreferenceStore = Depends(get_preference_store),
):
    if not store.save(current_user.id, data.model_dump(mode="json")):
        logger.warning(f"⚠️ Calendar preferences for user {current_user.id} were not persisted")

    state = view_states.get(current_user.id)
    if state is not None:
        state.set_granularity(data.granularity)
        if state.show_cancelled != data.show_cancelled:
            state.toggle_show_cancelled()
    return data
