import logging
from typing import Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from portal.errors import NotAuthenticated
from portal.schemas.user import Identity
from portal.utils.security import decode_access_token


logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def _identity_from_credentials(credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[Identity]:
    if credentials is None or not credentials.credentials:
        return None
    try:
        payload = decode_access_token(credentials.credentials)
    except jwt.InvalidTokenError as exc:
        logger.info("rejected bearer token: %s", type(exc).__name__)
        return None
    subject = payload.get("sub")
    if not subject:
        return None
    return Identity(
        user_id=str(subject),
        email=payload.get("email"),
        first_name=payload.get("given_name"),
        last_name=payload.get("family_name"),
        image_url=payload.get("picture"),
    )


async def get_optional_user(credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)) -> Optional[Identity]:
    return _identity_from_credentials(credentials)


async def get_current_user(identity: Optional[Identity] = Depends(get_optional_user)) -> Identity:
    if identity is None:
        raise NotAuthenticated()
    return identity
