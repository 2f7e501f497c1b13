import jwt
import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from clinic_scheduler.auth import jwt_handler
from clinic_scheduler.auth.api_key import require_api_key, validate_api_key
from clinic_scheduler.auth.dependencies import get_current_professional
from clinic_scheduler.core import config
from clinic_scheduler.core.errors import InvalidApiKey, NotFoundError


class _FakeRequest:
    def __init__(self, *, headers=None):
        self.headers = headers or {}


def test_validate_api_key_accepts_matching_key(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, 'INTERNAL_API_KEY', 'secret-key')

    assert validate_api_key(_FakeRequest(headers={'X-API-Key': 'secret-key'})) is True


@pytest.mark.parametrize('headers', [{}, {'X-API-Key': ''}, {'X-API-Key': 'wrong-key'}])
def test_validate_api_key_rejects_missing_or_wrong_key(monkeypatch: pytest.MonkeyPatch, headers) -> None:
    monkeypatch.setattr(config, 'INTERNAL_API_KEY', 'secret-key')

    assert validate_api_key(_FakeRequest(headers=headers)) is False


def test_validate_api_key_fails_closed_without_configured_key(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, 'INTERNAL_API_KEY', '')

    assert validate_api_key(_FakeRequest(headers={'X-API-Key': ''})) is False


def test_require_api_key_raises_unauthorized(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, 'INTERNAL_API_KEY', 'secret-key')

    with pytest.raises(InvalidApiKey) as exception_info:
        require_api_key(_FakeRequest(headers={'X-API-Key': 'nope'}))

    assert exception_info.value.status_code == 401
    assert exception_info.value.to_payload() == {'error': 'Unauthorized', 'code': 'INVALID_API_KEY'}


def test_session_token_round_trip() -> None:
    token = jwt_handler.create_session_token('dr.silva@example.com', expires_minutes=5)

    payload = jwt_handler.decode_session_token(token)

    assert payload['sub'] == 'dr.silva@example.com'
    assert payload['aud'] == jwt_handler.SESSION_AUDIENCE


def test_session_token_rejects_other_audience() -> None:
    token = jwt.encode({'sub': 'someone'}, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)

    with pytest.raises(jwt.PyJWTError):
        jwt_handler.decode_session_token(token)


def _credentials(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme='Bearer', credentials=token)


def test_get_current_professional_resolves_by_email(scheduling_db, professional) -> None:
    token = jwt_handler.create_session_token(' DR.SILVA@EXAMPLE.COM ')

    resolved = get_current_professional(credentials=_credentials(token), db=scheduling_db)

    assert resolved.id == professional.id


def test_get_current_professional_rejects_invalid_token(scheduling_db) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_current_professional(credentials=_credentials('not-a-token'), db=scheduling_db)

    assert exception_info.value.status_code == 401


def test_get_current_professional_without_profile(scheduling_db) -> None:
    token = jwt_handler.create_session_token('nobody@example.com')

    with pytest.raises(NotFoundError):
        get_current_professional(credentials=_credentials(token), db=scheduling_db)
