import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from clinic_scheduler.auth import jwt_handler
from clinic_scheduler.core.errors import NotFoundError
from clinic_scheduler.database import get_db
from clinic_scheduler.models.professional import Professional

security = HTTPBearer()


def get_current_professional(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> Professional:
    """Resolve the dashboard session token to the caller's clinic profile."""
    token = credentials.credentials
    try:
        payload = jwt_handler.decode_session_token(token)
    except jwt.PyJWTError as exc:
        raise HTTPException(status_code=401, detail="Invalid token") from exc

    email = payload.get("sub")
    if not email:
        raise HTTPException(status_code=401, detail="Invalid token subject")

    professional = db.query(Professional).filter(Professional.email == email.strip().lower()).first()
    if professional is None:
        raise NotFoundError("Clinic profile not found.")
    return professional
