"""Backend auth dependency: verifies the bearer token and yields its subject."""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import Header

from calmly.common.errors import AuthenticationRequired
from calmly.identity.credentials import token_from_header
from calmly.identity.jwt_service import AuthContext, TokenError, TokenExpired, default_jwt_service

logger = logging.getLogger(__name__)


def get_auth_context(authorization: Optional[str] = Header(default=None)) -> AuthContext:
    # Bare tokens are accepted as well as "Bearer <token>".
    token = token_from_header(authorization)
    if not token:
        raise AuthenticationRequired("Authentication required")
    try:
        return default_jwt_service().decode_token(token)
    except TokenExpired:
        raise AuthenticationRequired("Token expired")
    except TokenError as exc:
        logger.info("Rejected bearer token: %s", exc)
        raise AuthenticationRequired("Invalid authentication token")
