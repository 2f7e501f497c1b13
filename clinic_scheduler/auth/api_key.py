import logging
import secrets

from fastapi import Request

from clinic_scheduler.core import config
from clinic_scheduler.core.errors import InvalidApiKey

logger = logging.getLogger(__name__)


def validate_api_key(request: Request) -> bool:
    """Check the X-API-Key header against INTERNAL_API_KEY.

    An unset key rejects every request.
    """
    expected_key = config.INTERNAL_API_KEY
    if not expected_key:
        logger.error('INTERNAL_API_KEY is not configured; rejecting internal API request')
        return False

    supplied_key = request.headers.get(config.API_KEY_HEADER)
    if not supplied_key:
        return False

    return secrets.compare_digest(supplied_key.encode(), expected_key.encode())


def require_api_key(request: Request) -> None:
    if not validate_api_key(request):
        raise InvalidApiKey()
