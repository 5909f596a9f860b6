import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from backend.auth import jwt_handler
from backend.core.constants import PROFESSIONAL_ROLES
from backend.database import get_db
from backend.models.patient import Patient
from backend.models.profile import Profile

security = HTTPBearer()


def get_token_subject(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> str:
    token = credentials.credentials
    try:
        payload = jwt_handler.decode_access_token(token)
    except jwt.PyJWTError as exc:
        raise HTTPException(status_code=401, detail="Invalid token") from exc

    subject = payload.get("sub")
    if not subject:
        raise HTTPException(status_code=401, detail="Invalid token subject")
    return subject


def get_current_professional(
    subject: str = Depends(get_token_subject),
    db: Session = Depends(get_db),
) -> Profile:
    profile = db.query(Profile).filter(Profile.user_id == subject).first()
    if profile is None:
        raise HTTPException(status_code=401, detail="User not found")
    if profile.role not in PROFESSIONAL_ROLES:
        raise HTTPException(status_code=403, detail="Only professionals can manage schedules")
    return profile


def get_current_patient(
    subject: str = Depends(get_token_subject),
    db: Session = Depends(get_db),
) -> Patient:
    patient = db.query(Patient).filter(Patient.user_id == subject).first()
    if patient is None:
        raise HTTPException(status_code=403, detail="No patient record is linked to this account")
    if not patient.is_active:
        raise HTTPException(status_code=403, detail="Patient record is inactive")
    return patient
