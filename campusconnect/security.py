from datetime import datetime, timedelta, timezone

from jose import jwt, JWTError
from fastapi import Request, HTTPException, status, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from .config import JWT_SECRET, JWT_ALGORITHM
from .rbac import Actor

if not JWT_SECRET:
    raise RuntimeError("JWT_SECRET environment variable is not set")

ACCESS_TOKEN_TTL = timedelta(hours=24)

bearer_scheme = HTTPBearer(auto_error=False)


def actor_from_claims(payload: dict) -> Actor:
    email = payload.get("email") or payload.get("sub")
    if not email or not isinstance(email, str):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token carries no email",
        )

    roles = payload.get("roles")
    is_admin = payload.get("isAdmin") is True or (
        isinstance(roles, list) and "admin" in {str(r).lower() for r in roles}
    )
    return Actor(email=email.strip().lower(), is_admin=is_admin)


def create_access_token(email: str, is_admin: bool = False, ttl: timedelta = ACCESS_TOKEN_TTL) -> str:
    now = datetime.now(timezone.utc)
    claims = {
        "sub": email,
        "email": email,
        "roles": ["admin", "faculty"] if is_admin else ["faculty"],
        "iat": now,
        "exp": now + ttl,
    }
    return jwt.encode(claims, JWT_SECRET, algorithm=JWT_ALGORITHM)


def get_current_actor(
    request: Request,
    creds: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Actor:
    token = None
    if creds and creds.scheme.lower() == "bearer":
        token = creds.credentials

    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing Bearer token",
        )

    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )

    actor = actor_from_claims(payload)
    request.state.user_sub = actor.email
    request.state.user_roles = ["admin"] if actor.is_admin else ["faculty"]
    return actor
