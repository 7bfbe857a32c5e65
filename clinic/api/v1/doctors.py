from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List, Optional

from ...core.database import get_db
from ...api.deps import get_page_params, require_permission
from ...schemas.common import ApiResponse, PageParams
from ...schemas.profile import DoctorResponse
from ...services.directory_service import DirectoryService
from ...services.identity import Principal
from ...services.policy import Action, Entity

router = APIRouter(prefix="/doctors", tags=["Doctors"])

can_read = require_permission(Entity.DOCTOR, Action.READ)

@router.get("", response_model=ApiResponse[List[DoctorResponse]])
async def list_doctors(
    search: Optional[str] = None,
    params: PageParams = Depends(get_page_params),
    principal: Principal = Depends(can_read),
    db: Session = Depends(get_db)
):
    """List doctors, optionally matching name, email or specialization."""
    items, total = DirectoryService(db).list_doctors(principal, params, search)
    return ApiResponse(
        message="Doctors retrieved successfully",
        data=[DoctorResponse.model_validate(item) for item in items],
        pagination=params.pagination(total)
    )

@router.get("/{doctor_id}", response_model=ApiResponse[DoctorResponse])
async def get_doctor(
    doctor_id: int,
    principal: Principal = Depends(can_read),
    db: Session = Depends(get_db)
):
    doctor = DirectoryService(db).get_doctor(principal, doctor_id)
    return ApiResponse(
        message="Doctor retrieved successfully",
        data=DoctorResponse.model_validate(doctor)
    )
