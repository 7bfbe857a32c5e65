from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional

from ...core.database import get_db
from ...api.deps import get_page_params, require_permission
from ...models import PrescriptionStatus
from ...schemas.common import ApiResponse, PageParams
from ...schemas.prescription import PrescriptionCreate, PrescriptionResponse, PrescriptionUpdate
from ...services.clinical_service import ClinicalRecordLinker
from ...services.identity import Principal
from ...services.policy import Action, Entity

router = APIRouter(prefix="/prescriptions", tags=["Prescriptions"])

@router.get("", response_model=ApiResponse[List[PrescriptionResponse]])
async def list_prescriptions(
    status_filter: Optional[PrescriptionStatus] = Query(None, alias="status"),
    params: PageParams = Depends(get_page_params),
    principal: Principal = Depends(require_permission(Entity.PRESCRIPTION, Action.READ)),
    db: Session = Depends(get_db)
):
    items, total = ClinicalRecordLinker(db).list_prescriptions(principal, params, status_filter)
    return ApiResponse(
        message="Prescriptions retrieved successfully",
        data=[PrescriptionResponse.from_record(item) for item in items],
        pagination=params.pagination(total)
    )

@router.get("/{prescription_id}", response_model=ApiResponse[PrescriptionResponse])
async def get_prescription(
    prescription_id: int,
    principal: Principal = Depends(require_permission(Entity.PRESCRIPTION, Action.READ)),
    db: Session = Depends(get_db)
):
    prescription = ClinicalRecordLinker(db).get_prescription(principal, prescription_id)
    return ApiResponse(
        message="Prescription retrieved successfully",
        data=PrescriptionResponse.from_record(prescription)
    )

@router.post(
    "",
    response_model=ApiResponse[PrescriptionResponse],
    status_code=status.HTTP_201_CREATED
)
async def create_prescription(
    data: PrescriptionCreate,
    principal: Principal = Depends(require_permission(Entity.PRESCRIPTION, Action.CREATE)),
    db: Session = Depends(get_db)
):
    prescription = ClinicalRecordLinker(db).create_prescription(principal, data)
    return ApiResponse(
        message="Prescription created successfully",
        data=PrescriptionResponse.from_record(prescription)
    )

@router.put("/{prescription_id}", response_model=ApiResponse[PrescriptionResponse])
async def update_prescription(
    prescription_id: int,
    data: PrescriptionUpdate,
    principal: Principal = Depends(require_permission(Entity.PRESCRIPTION, Action.UPDATE)),
    db: Session = Depends(get_db)
):
    """Update a prescription. A new medications list replaces the old one."""
    prescription = ClinicalRecordLinker(db).update_prescription(principal, prescription_id, data)
    return ApiResponse(
        message="Prescription updated successfully",
        data=PrescriptionResponse.from_record(prescription)
    )

@router.delete("/{prescription_id}", response_model=ApiResponse[None])
async def delete_prescription(
    prescription_id: int,
    principal: Principal = Depends(require_permission(Entity.PRESCRIPTION, Action.DELETE)),
    db: Session = Depends(get_db)
):
    ClinicalRecordLinker(db).delete_prescription(principal, prescription_id)
    return ApiResponse(message="Prescription deleted successfully")
