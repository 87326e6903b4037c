"""Request-scoped dependencies shared by the API routers."""

import os
import secrets

from fastapi import Request

from modelcompare.errors import AuthorizationError, StreamingDisabledError


async def require_authorization(request: Request) -> None:
    """Gate credit-consuming routes behind a bearer token when one is configured."""
    token_env = request.app.state.config.server.api_token_env
    expected = os.environ.get(token_env, "").strip() if token_env else ""
    if not expected:
        return
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not secrets.compare_digest(token.strip(), expected):
        raise AuthorizationError("Authentication required")


async def require_streaming(request: Request) -> None:
    if not request.app.state.config.server.streaming_enabled:
        raise StreamingDisabledError()
