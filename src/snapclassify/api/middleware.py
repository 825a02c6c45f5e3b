"""Dependencies: optional API key check and per-request state accessors."""

from __future__ import annotations

import secrets
from typing import TYPE_CHECKING, Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import APIKeyHeader, HTTPAuthorizationCredentials, HTTPBearer

if TYPE_CHECKING:
    from snapclassify.config import Settings
    from snapclassify.session import ClassifierSession

_bearer_scheme = HTTPBearer(auto_error=False)
_header_scheme = APIKeyHeader(name="X-API-Key", auto_error=False)


def get_settings_from_request(request: Request) -> Settings:
    settings: Settings = request.app.state.settings
    return settings


def get_session_from_request(request: Request) -> ClassifierSession:
    session: ClassifierSession = request.app.state.session
    return session


def _key_matches(candidate: str | None, expected: str) -> bool:
    if candidate is None:
        return False
    return secrets.compare_digest(candidate.encode(), expected.encode())


async def verify_api_key(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer_scheme)],
    header_key: Annotated[str | None, Depends(_header_scheme)],
) -> None:
    """Require the configured key as a Bearer token or an X-API-Key header.

    When SNAPCLASSIFY_API_KEY is unset every request passes.
    """
    expected = get_settings_from_request(request).api_key
    if expected is None:
        return

    bearer = credentials.credentials if credentials is not None else None
    if _key_matches(bearer, expected) or _key_matches(header_key, expected):
        return

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or missing API key",
        headers={"WWW-Authenticate": "Bearer"},
    )
