"""Caller credential extraction for the proxy tier.

One source for every proxy handler: the ``Authorization: Bearer`` header is
canonical and always wins; the ``token`` cookie is accepted when no header is
present.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional

from fastapi import Request

BEARER_SCHEME = "bearer"
TOKEN_COOKIE = "token"


@dataclass(frozen=True)
class Credential:
    token: str
    source: str  # header | cookie

    @property
    def authorization(self) -> str:
        return f"Bearer {self.token}"


def token_from_header(value: Optional[str]) -> Optional[str]:
    """Token from an Authorization value, "Bearer <t>" or a bare token.

    A scheme with nothing after it yields None.
    """
    if not value:
        return None
    value = value.strip()
    scheme, _, rest = value.partition(" ")
    if scheme.lower() == BEARER_SCHEME:
        value = rest.strip()
    return value or None


class CredentialSource:
    def __init__(self, header_name: str = "authorization", cookie_name: str = TOKEN_COOKIE) -> None:
        self.header_name = header_name
        self.cookie_name = cookie_name

    def extract(self, headers: Mapping[str, str], cookies: Mapping[str, str]) -> Optional[Credential]:
        token = token_from_header(headers.get(self.header_name) or headers.get(self.header_name.title()))
        if token:
            return Credential(token=token, source="header")
        cookie = (cookies.get(self.cookie_name) or "").strip()
        if cookie:
            return Credential(token=cookie, source="cookie")
        return None

    def from_request(self, request: Request) -> Optional[Credential]:
        return self.extract(request.headers, request.cookies)


default_credential_source = CredentialSource()
