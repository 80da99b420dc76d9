"""Minimal HS256 JWT issue/verify for backend bearer tokens."""
from __future__ import annotations

import base64
import hmac
import json
import time
from dataclasses import dataclass, field
from hashlib import sha256
from typing import Any, Dict, Optional

from calmly.config import runtime_config


class TokenError(ValueError):
    """Token could not be verified."""


class TokenExpired(TokenError):
    pass


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("utf-8")


def _b64url_decode(data: str) -> bytes:
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


@dataclass
class AuthContext:
    user_id: str
    email: str = ""
    claims: Dict[str, Any] = field(default_factory=dict)


class JwtService:
    def __init__(self, secret: str) -> None:
        if not secret:
            raise RuntimeError("JWT signing secret is empty")
        self._secret = secret.encode("utf-8")

    def _sign(self, signing_input: str) -> bytes:
        return hmac.new(self._secret, signing_input.encode("utf-8"), sha256).digest()

    def issue_token(self, claims: Dict[str, object], ttl_seconds: Optional[int] = None) -> str:
        header = {"alg": "HS256", "typ": "JWT"}
        payload = dict(claims)
        if ttl_seconds is not None:
            payload.setdefault("exp", int(time.time()) + ttl_seconds)
        signing_input = ".".join(
            [
                _b64url(json.dumps(header, separators=(",", ":"), sort_keys=True).encode()),
                _b64url(json.dumps(payload, separators=(",", ":"), sort_keys=True).encode()),
            ]
        )
        return signing_input + "." + _b64url(self._sign(signing_input))

    def decode_token(self, token: str) -> AuthContext:
        try:
            header_b64, payload_b64, sig_b64 = token.split(".")
        except ValueError:
            raise TokenError("invalid token")
        signing_input = header_b64 + "." + payload_b64
        try:
            signature = _b64url_decode(sig_b64)
            payload = json.loads(_b64url_decode(payload_b64))
        except ValueError:
            raise TokenError("invalid token")
        if not hmac.compare_digest(self._sign(signing_input), signature):
            raise TokenError("invalid signature")
        if not isinstance(payload, dict) or not payload.get("sub"):
            raise TokenError("invalid token payload")
        exp = payload.get("exp")
        if exp is not None and float(exp) < time.time():
            raise TokenExpired("token expired")
        return AuthContext(
            user_id=str(payload["sub"]),
            email=payload.get("email", ""),
            claims=payload,
        )


def default_jwt_service() -> JwtService:
    secret = runtime_config.get_jwt_secret()
    if not secret:
        raise RuntimeError("AUTH_JWT_SIGNING is not configured")
    return JwtService(secret)
