from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Header, Request
from fastapi.security.utils import get_authorization_scheme_param
from starlette.concurrency import run_in_threadpool

from tasktracker.errors import HttpError
from tasktracker.middlewares import principal_ctx_var
from tasktracker.utils.auth import TokenVerificationError


@dataclass(frozen=True)
class AuthContext:
    user_id: str
    email: Optional[str] = None


async def authenticate(request: Request, authorization: Optional[str]) -> AuthContext:
    """Resolve the caller from ``Authorization: Bearer <token>`` or fail with 401."""
    scheme, token = get_authorization_scheme_param(authorization)
    if scheme.lower() != "bearer" or not token:
        raise HttpError.unauthorized("Unauthorized: Missing or invalid token.")
    verifier = request.app.state.verifier
    try:
        # verifiers may hit the network (certificate fetch), keep it off the event loop
        principal = await run_in_threadpool(verifier.verify, token)
    except TokenVerificationError as exc:
        raise HttpError.unauthorized("Unauthorized: Invalid token.") from exc
    principal_ctx_var.set(principal.uid)
    request.state.principal = principal.uid
    return AuthContext(user_id=principal.uid, email=principal.email)


async def get_auth_context(
    request: Request,
    authorization: Optional[str] = Header(default=None, alias="Authorization"),
) -> AuthContext:
    return await authenticate(request, authorization)
