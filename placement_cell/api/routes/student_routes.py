"""
Student Routes

GET /students/profile - Get own eligibility profile
PUT /students/profile - Create or update profile
"""

from fastapi import APIRouter, HTTPException, Depends

from placement_cell.core.auth import get_current_user, get_current_student
from placement_cell.schemas.schemas import UserRole, StudentProfileUpdate, StudentProfileResponse
from placement_cell.services.student_service import get_student_service

router = APIRouter(prefix="/students", tags=["Students"])


@router.get("/profile", response_model=StudentProfileResponse)
async def get_profile(student: dict = Depends(get_current_student)):
    """Get current student's profile."""
    return StudentProfileResponse(**{k: v for k, v in student.items() if k in StudentProfileResponse.model_fields})


@router.put("/profile", response_model=StudentProfileResponse)
async def update_profile(data: StudentProfileUpdate, user: dict = Depends(get_current_user)):
    """Create or update profile. Only provided fields are updated."""
    if user["role"] != UserRole.student.value:
        raise HTTPException(status_code=403, detail="Only student accounts have student profiles")

    fields = data.model_dump(exclude_none=True)
    if not fields:
        raise HTTPException(status_code=400, detail="No fields to update")

    return get_student_service().upsert_profile(user["user_id"], fields)
