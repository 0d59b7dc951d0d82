"""FastAPI dependencies for authentication.

Callers authenticate with a JWT Bearer token issued by the CRM's identity
provider. The token is verified with the configured secret and algorithm
and mapped to a CallerIdentity; the raw token is kept in the AuthContext so
tools can make delegated calls on the caller's behalf.

The HTTPBearer security scheme is exposed to OpenAPI so that SwaggerUI
shows the lock icon and allows authentication via the Authorize button.
"""

import logging
from typing import Any, Optional

import jwt
from fastapi import HTTPException, Request, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from application.orchestrator import StreamOrchestrator
from application.settings import Settings, app_settings
from domain.models.caller import AuthContext, CallerIdentity

logger = logging.getLogger(__name__)

# auto_error=False so that a missing token yields our own RFC6750 401 response
security_optional = HTTPBearer(auto_error=False, scheme_name="bearer")


def _unauthorized(detail: str, error: Optional[str] = "invalid_token") -> HTTPException:
    challenge = "Bearer" if error is None else f'Bearer error="{error}", error_description="{detail}"'
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": challenge},
    )


def decode_access_token(token: str, settings: Settings = app_settings) -> dict[str, Any]:
    """Verify a bearer token and return its claims.

    Raises:
        jwt.PyJWTError: If the token is malformed, expired or has a bad signature
    """
    return jwt.decode(
        token,
        settings.jwt_secret_key,
        algorithms=[settings.jwt_algorithm],
        audience=settings.jwt_audience or None,
        options={"verify_aud": bool(settings.jwt_audience)},
    )


async def get_current_caller(
    credentials: HTTPAuthorizationCredentials | None = Security(security_optional),
) -> CallerIdentity:
    """
    Get the authenticated caller from the JWT Bearer token.

    Args:
        credentials: JWT Bearer token from Authorization header

    Returns:
        The caller identity (user id, username, permissions)

    Raises:
        HTTPException: 401 if the token is missing, expired or invalid
    """
    if credentials is None:
        raise _unauthorized("Not authenticated", error=None)

    try:
        claims = decode_access_token(credentials.credentials)
    except jwt.ExpiredSignatureError:
        raise _unauthorized("The access token expired")
    except jwt.PyJWTError as e:
        logger.debug(f"Rejected bearer token: {e}")
        raise _unauthorized("Invalid bearer token")

    caller = CallerIdentity.from_claims(claims)
    if not caller.user_id:
        raise _unauthorized("Token has no subject")
    return caller


async def get_auth_context(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Security(security_optional),
) -> AuthContext:
    """
    Get the credentials forwarded to tools.

    Args:
        request: FastAPI request
        credentials: Optional JWT Bearer token from Authorization header

    Returns:
        AuthContext with the raw access token and the request id, if any
    """
    return AuthContext(
        access_token=credentials.credentials if credentials else None,
        request_id=request.headers.get("x-request-id"),
    )


def get_stream_orchestrator(request: Request) -> StreamOrchestrator:
    """
    Get StreamOrchestrator from scoped service provider.

    StreamOrchestrator is a scoped service, so it must be resolved from the
    request-scoped service provider, not the root service provider.

    Args:
        request: FastAPI request

    Returns:
        StreamOrchestrator instance (scoped to request)
    """
    scoped_provider = getattr(request.state, "service_provider", None)
    if scoped_provider is None:
        raise RuntimeError("Scoped service provider not found in request state.")
    return scoped_provider.get_required_service(StreamOrchestrator)
