from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...api.deps import require_permission
from ...schemas.common import ApiResponse
from ...schemas.profile import PatientResponse
from ...services.directory_service import DirectoryService
from ...services.identity import Principal
from ...services.policy import Action, Entity

router = APIRouter(prefix="/patients", tags=["Patients"])

@router.get("/me", response_model=ApiResponse[PatientResponse])
async def get_current_patient(
    principal: Principal = Depends(require_permission(Entity.PATIENT, Action.READ)),
    db: Session = Depends(get_db)
):
    """Get the caller's own patient record."""
    patient = DirectoryService(db).get_own_patient(principal)
    return ApiResponse(
        message="Patient profile retrieved successfully",
        data=PatientResponse.model_validate(patient)
    )
