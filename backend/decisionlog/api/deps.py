from typing import Optional

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from decisionlog.config import settings
from decisionlog.core.errors import Unauthenticated
from decisionlog.core.security import decode_access_token_subject
from decisionlog.database import get_db
from decisionlog.models import User


def _token_url() -> str:
    # No password login is served here; the URL only feeds the OpenAPI security scheme.
    if settings.api_prefix:
        prefix = settings.api_prefix.rstrip("/")
        return f"{prefix}/auth/token"
    return "/auth/token"


oauth2_optional = OAuth2PasswordBearer(tokenUrl=_token_url(), auto_error=False)

_DB_DEP = Depends(get_db)
_TOKEN_OPT_DEP = Depends(oauth2_optional)


def _extract_bearer_from_headers(request: Request) -> Optional[str]:
    # Some hosting layers may strip/override the standard Authorization header.
    raw = (
        request.headers.get("authorization")
        or request.headers.get("x-authorization")
        or request.headers.get("x-auth-token")
    )
    if not raw:
        return None
    s = str(raw).strip()
    if not s:
        return None
    if s.lower().startswith("bearer "):
        return s.split(" ", 1)[1].strip()
    return s


def get_current_user(
    request: Request,
    db: Session = _DB_DEP,
    token: Optional[str] = _TOKEN_OPT_DEP,
) -> User:
    if not token:
        token = _extract_bearer_from_headers(request)
    if not token:
        raise Unauthenticated("Unauthorized")

    subject = decode_access_token_subject(token)
    if not subject:
        raise Unauthenticated("Invalid token")

    user = db.query(User).filter(User.id == subject, User.active.is_(True)).first()
    if not user:
        raise Unauthenticated("User not found or inactive")
    return user


def request_audit_context(request: Request) -> dict:
    return {
        "request_id": request.headers.get("X-Request-ID"),
        "ip": getattr(request.client, "host", None) if request.client else None,
        "user_agent": request.headers.get("User-Agent"),
    }
