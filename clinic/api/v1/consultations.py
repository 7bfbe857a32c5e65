from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional

from ...core.database import get_db
from ...api.deps import get_page_params, require_permission
from ...models import ConsultationStatus
from ...schemas.common import ApiResponse, PageParams
from ...schemas.consultation import ConsultationCreate, ConsultationResponse, ConsultationUpdate
from ...services.clinical_service import ClinicalRecordLinker
from ...services.identity import Principal
from ...services.policy import Action, Entity

router = APIRouter(prefix="/consultations", tags=["Consultations"])

@router.get("", response_model=ApiResponse[List[ConsultationResponse]])
async def list_consultations(
    status_filter: Optional[ConsultationStatus] = Query(None, alias="status"),
    params: PageParams = Depends(get_page_params),
    principal: Principal = Depends(require_permission(Entity.CONSULTATION, Action.READ)),
    db: Session = Depends(get_db)
):
    items, total = ClinicalRecordLinker(db).list_consultations(principal, params, status_filter)
    return ApiResponse(
        message="Consultations retrieved successfully",
        data=[ConsultationResponse.from_record(item) for item in items],
        pagination=params.pagination(total)
    )

@router.get("/{consultation_id}", response_model=ApiResponse[ConsultationResponse])
async def get_consultation(
    consultation_id: int,
    principal: Principal = Depends(require_permission(Entity.CONSULTATION, Action.READ)),
    db: Session = Depends(get_db)
):
    consultation = ClinicalRecordLinker(db).get_consultation(principal, consultation_id)
    return ApiResponse(
        message="Consultation retrieved successfully",
        data=ConsultationResponse.from_record(consultation)
    )

@router.post(
    "",
    response_model=ApiResponse[ConsultationResponse],
    status_code=status.HTTP_201_CREATED
)
async def create_consultation(
    data: ConsultationCreate,
    principal: Principal = Depends(require_permission(Entity.CONSULTATION, Action.CREATE)),
    db: Session = Depends(get_db)
):
    """Record the consultation for an appointment. Only one per appointment."""
    consultation = ClinicalRecordLinker(db).create_consultation(principal, data)
    return ApiResponse(
        message="Consultation created successfully",
        data=ConsultationResponse.from_record(consultation)
    )

@router.put("/{consultation_id}", response_model=ApiResponse[ConsultationResponse])
async def update_consultation(
    consultation_id: int,
    data: ConsultationUpdate,
    principal: Principal = Depends(require_permission(Entity.CONSULTATION, Action.UPDATE)),
    db: Session = Depends(get_db)
):
    consultation = ClinicalRecordLinker(db).update_consultation(principal, consultation_id, data)
    return ApiResponse(
        message="Consultation updated successfully",
        data=ConsultationResponse.from_record(consultation)
    )

@router.delete("/{consultation_id}", response_model=ApiResponse[None])
async def delete_consultation(
    consultation_id: int,
    principal: Principal = Depends(require_permission(Entity.CONSULTATION, Action.DELETE)),
    db: Session = Depends(get_db)
):
    ClinicalRecordLinker(db).delete_consultation(principal, consultation_id)
    return ApiResponse(message="Consultation deleted successfully")
