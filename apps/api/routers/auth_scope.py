"""Authentication dependencies for API user scoping."""

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from services.session_token import RequestSession, session_from_token


auth_scheme = HTTPBearer(auto_error=False)


async def get_request_session(
    credentials: HTTPAuthorizationCredentials = Depends(auth_scheme),
) -> RequestSession:
    """Resolve the caller's session from a Bearer session token."""
    if not credentials or credentials.scheme.lower() != "bearer":
        raise HTTPException(status_code=401, detail="Missing Bearer session token.")

    try:
        return session_from_token(credentials.credentials)
    except ValueError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc
