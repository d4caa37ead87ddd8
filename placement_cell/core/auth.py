"""
Authentication Utility - JWT verification and role dependencies.

Tokens are issued by the placement portal's login service and carry:
- sub:  user id (for students, also the student profile id)
- role: student | tpo | admin

Provides:
- JWT token creation/verification
- FastAPI dependencies for protected routes
"""

from datetime import timedelta
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt

from placement_cell.core.config import get_settings
from placement_cell.schemas.schemas import UserRole
from placement_cell.services.student_service import get_student_service
from placement_cell.utils.dates import utcnow

settings = get_settings()

# Bearer token extractor
bearer_scheme = HTTPBearer()

OFFICER_ROLES = {UserRole.tpo.value, UserRole.admin.value}


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token. Used by scripts and tests; the portal issues real ones."""
    to_encode = data.copy()
    expire = utcnow() + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> Optional[dict]:
    """Decode and verify JWT token."""
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None


async def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme)) -> dict:
    """
    FastAPI dependency - Get current authenticated user.

    Usage:
        @app.get("/protected")
        async def route(user: dict = Depends(get_current_user)):
            return user
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or expired token",
        headers={"WWW-Authenticate": "Bearer"},
    )

    payload = decode_token(credentials.credentials)
    if not payload:
        raise credentials_exception

    user_id = payload.get("sub")
    role = payload.get("role")
    if not user_id or not role:
        raise credentials_exception

    return {"user_id": str(user_id), "role": role}


async def get_current_student(user: dict = Depends(get_current_user)) -> dict:
    """Dependency - Require student role and load the eligibility profile."""
    if user["role"] != UserRole.student.value:
        raise HTTPException(status_code=403, detail="Students only")

    profile = get_student_service().get(user["user_id"])
    if not profile:
        raise HTTPException(status_code=404, detail="Student profile not found. Create profile first.")

    return {**user, **profile}


async def get_current_officer(user: dict = Depends(get_current_user)) -> dict:
    """Dependency - Require placement officer (tpo) or admin role."""
    if user["role"] not in OFFICER_ROLES:
        raise HTTPException(status_code=403, detail="Placement officers only")
    return user
