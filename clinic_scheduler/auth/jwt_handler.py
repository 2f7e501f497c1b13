from datetime import datetime, timedelta, timezone

import jwt

from clinic_scheduler.core import config

SESSION_AUDIENCE = "clinic-dashboard"


# Sessions are issued by the sign-in service; this mints compatible tokens for tests.
def create_session_token(subject: str, expires_minutes: int | None = None) -> str:
    expire_minutes = expires_minutes or config.JWT_EXPIRES_MINUTES
    issued_at = datetime.now(timezone.utc)
    payload = {
        "sub": subject,
        "aud": SESSION_AUDIENCE,
        "iat": issued_at,
        "exp": issued_at + timedelta(minutes=expire_minutes),
    }
    return jwt.encode(payload, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def decode_session_token(token: str) -> dict:
    return jwt.decode(
        token,
        config.JWT_SECRET_KEY,
        algorithms=[config.JWT_ALGORITHM],
        audience=SESSION_AUDIENCE,
    )
