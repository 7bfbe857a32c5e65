from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional

from ...core.database import get_db
from ...api.deps import get_page_params, require_permission
from ...models import AppointmentStatus
from ...schemas.appointment import AppointmentCreate, AppointmentResponse, AppointmentUpdate
from ...schemas.common import ApiResponse, PageParams
from ...services.appointment_service import AppointmentService
from ...services.identity import Principal
from ...services.policy import Action, Entity

router = APIRouter(prefix="/appointments", tags=["Appointments"])

can_read = require_permission(Entity.APPOINTMENT, Action.READ)

def _listing(items, total, params: PageParams, message: str):
    return ApiResponse(
        message=message,
        data=[AppointmentResponse.from_record(item) for item in items],
        pagination=params.pagination(total)
    )

@router.get("", response_model=ApiResponse[List[AppointmentResponse]])
async def list_appointments(
    status_filter: Optional[AppointmentStatus] = Query(None, alias="status"),
    params: PageParams = Depends(get_page_params),
    principal: Principal = Depends(can_read),
    db: Session = Depends(get_db)
):
    """List appointments. Patients only ever see their own."""
    items, total = AppointmentService(db).list_appointments(principal, params, status_filter)
    return _listing(items, total, params, "Appointments retrieved successfully")

@router.get("/doctor/{doctor_id}", response_model=ApiResponse[List[AppointmentResponse]])
async def list_doctor_appointments(
    doctor_id: int,
    params: PageParams = Depends(get_page_params),
    principal: Principal = Depends(can_read),
    db: Session = Depends(get_db)
):
    items, total = AppointmentService(db).list_for_doctor(principal, doctor_id, params)
    return _listing(items, total, params, "Doctor appointments retrieved")

@router.get("/patient/{patient_id}", response_model=ApiResponse[List[AppointmentResponse]])
async def list_patient_appointments(
    patient_id: int,
    params: PageParams = Depends(get_page_params),
    principal: Principal = Depends(can_read),
    db: Session = Depends(get_db)
):
    items, total = AppointmentService(db).list_for_patient(principal, patient_id, params)
    return _listing(items, total, params, "Patient appointments retrieved")

@router.get("/{appointment_id}", response_model=ApiResponse[AppointmentResponse])
async def get_appointment(
    appointment_id: int,
    principal: Principal = Depends(can_read),
    db: Session = Depends(get_db)
):
    appointment = AppointmentService(db).get_appointment(principal, appointment_id)
    return ApiResponse(
        message="Appointment retrieved successfully",
        data=AppointmentResponse.from_record(appointment)
    )

@router.post(
    "",
    response_model=ApiResponse[AppointmentResponse],
    status_code=status.HTTP_201_CREATED
)
async def create_appointment(
    data: AppointmentCreate,
    principal: Principal = Depends(require_permission(Entity.APPOINTMENT, Action.CREATE)),
    db: Session = Depends(get_db)
):
    """Book an appointment. Patient bookings always start as pending."""
    appointment = AppointmentService(db).create_appointment(principal, data)
    return ApiResponse(
        message="Appointment created successfully",
        data=AppointmentResponse.from_record(appointment)
    )

@router.put("/{appointment_id}", response_model=ApiResponse[AppointmentResponse])
async def update_appointment(
    appointment_id: int,
    data: AppointmentUpdate,
    principal: Principal = Depends(require_permission(Entity.APPOINTMENT, Action.UPDATE)),
    db: Session = Depends(get_db)
):
    appointment = AppointmentService(db).update_appointment(principal, appointment_id, data)
    return ApiResponse(
        message="Appointment updated successfully",
        data=AppointmentResponse.from_record(appointment)
    )

@router.delete("/{appointment_id}", response_model=ApiResponse[None])
async def delete_appointment(
    appointment_id: int,
    principal: Principal = Depends(require_permission(Entity.APPOINTMENT, Action.DELETE)),
    db: Session = Depends(get_db)
):
    AppointmentService(db).delete_appointment(principal, appointment_id)
    return ApiResponse(message="Appointment deleted successfully")
