from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt

from portal.config import get_settings


def create_access_token(subject: str, expires_minutes: int = 60, extra_claims: Optional[Dict[str, Any]] = None) -> str:
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload: Dict[str, Any] = {
        "sub": subject,
        "iat": now,
        "exp": now + timedelta(minutes=expires_minutes),
    }
    if settings.jwt_audience:
        payload["aud"] = settings.jwt_audience
    if extra_claims:
        payload.update(extra_claims)
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> Dict[str, Any]:
    """Decode a provider-issued bearer token.

    Raises ``jwt.InvalidTokenError`` (or a subclass such as
    ``jwt.ExpiredSignatureError``) when the token cannot be trusted.
    """
    settings = get_settings()
    options = {"require": ["sub", "exp"]}
    if settings.jwt_audience:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            options=options,
        )
    return jwt.decode(
        token,
        settings.jwt_secret,
        algorithms=[settings.jwt_algorithm],
        options={**options, "verify_aud": False},
    )
