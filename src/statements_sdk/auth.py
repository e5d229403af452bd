"""Authentication and rate limiting helpers for the API."""

import secrets
import logging

from fastapi import HTTPException, Security
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from slowapi import Limiter
from slowapi.util import get_remote_address

from .config import get_api_key

logger = logging.getLogger(__name__)

security = HTTPBearer()

# Rate limiter shared by all routers
limiter = Limiter(key_func=get_remote_address)


async def verify_api_key(credentials: HTTPAuthorizationCredentials = Security(security)) -> str:
    """Check the bearer token against the configured API_KEY.

    Raises:
        HTTPException: 500 if no key is configured, 401 if the key is wrong.
    """
    expected_key = get_api_key()
    if not expected_key:
        logger.error("API_KEY environment variable is not configured")
        raise HTTPException(status_code=500, detail="Server configuration error")
    if not secrets.compare_digest(credentials.credentials, expected_key):
        logger.warning("Rejected request with invalid API key")
        raise HTTPException(status_code=401, detail="Invalid API key")
    return credentials.credentials
