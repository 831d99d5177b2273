import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlmodel import Session

from .core.config import settings
from .database import get_session
from .exceptions import ForbiddenError
from .utils import decode_jwt_token
from .application.services.booking_service import BookingService
from .application.services.patient_identity_service import PatientIdentityService
from .infrastructure.audit.std_logger import StdAuditLogger
from .infrastructure.notifications.smtp_sender import get_notification_sender
from .infrastructure.persistence.sqlalchemy.repositories.appointments_repository_sql import SqlAppointmentsRepository
from .infrastructure.persistence.sqlalchemy.repositories.patients_repository_sql import SqlPatientsRepository
from .infrastructure.persistence.sqlalchemy.repositories.schedule_repository_sql import SqlScheduleRepository
from .infrastructure.persistence.sqlalchemy.repositories.user_repository_sql import SqlUserRepository

logger = logging.getLogger(__name__)

# Auth scheme
oauth2_scheme = HTTPBearer(auto_error=False)


@dataclass
class CurrentUser:
    id: int
    role: Optional[str] = None


def _user_from_token(token: str) -> Optional[CurrentUser]:
    payload = decode_jwt_token(token)
    if not payload:
        return None
    user_id = payload.get("sub") or payload.get("uid")
    try:
        return CurrentUser(id=int(user_id), role=payload.get("role"))
    except (ValueError, TypeError):
        logger.warning("JWT token carries an invalid user ID")
        return None


def _read_token(request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    if credentials and credentials.credentials:
        return credentials.credentials
    # Fallback to cookie
    return request.cookies.get("access_token")


def get_optional_user(request: Request, credentials: HTTPAuthorizationCredentials = Depends(oauth2_scheme)) -> Optional[CurrentUser]:
    token = _read_token(request, credentials)
    if not token:
        return None
    return _user_from_token(token)


def get_current_user(request: Request, credentials: HTTPAuthorizationCredentials = Depends(oauth2_scheme)) -> CurrentUser:
    token = _read_token(request, credentials)
    if not token:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    user = _user_from_token(token)
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return user


def require_patient(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if current_user.role != settings.PATIENT_ROLE:
        raise ForbiddenError("Only patient accounts can book appointments.")
    return current_user


def get_booking_service(session: Session = Depends(get_session)) -> BookingService:
    identities = PatientIdentityService(
        patients=SqlPatientsRepository(session),
        users=SqlUserRepository(session),
    )
    return BookingService(
        schedules=SqlScheduleRepository(session),
        appointments=SqlAppointmentsRepository(session),
        identities=identities,
        notifier=get_notification_sender(),
        audit=StdAuditLogger(),
    )
