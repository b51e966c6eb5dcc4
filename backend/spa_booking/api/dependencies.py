from typing import Optional

from fastapi import Depends, Header, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt

from ..core.config import settings
from ..database import get_db  # noqa: F401  re-exported for routers
from ..services.admission import Requester
from ..utils import error_response

# Tokens are issued by the site's identity provider; this service only verifies them
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)

STAFF_ROLES = {"admin", "staff"}


def get_requester(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
    x_visitor_id: Optional[str] = Header(default=None),
) -> Requester:
    """Identity of the caller; anonymous callers get an empty ``Requester``.

    A bearer token that is present but invalid is rejected rather than
    silently downgraded to an anonymous visitor.
    """
    jwt_token = token or request.cookies.get("access_token")
    requester = Requester(
        visitor_id=(x_visitor_id or "").strip() or None,
        client_ip=request.client.host if request.client else None,
    )
    if not jwt_token:
        return requester
    try:
        payload = jwt.decode(jwt_token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise error_response(
            "Could not validate credentials",
            {"token": "invalid"},
            status.HTTP_401_UNAUTHORIZED,
        )
    subject = payload.get("sub")
    if not subject:
        raise error_response(
            "Could not validate credentials",
            {"token": "missing subject"},
            status.HTTP_401_UNAUTHORIZED,
        )
    requester.user_id = str(subject)
    requester.email = payload.get("email")
    requester.name = payload.get("name")
    requester.role = payload.get("role")
    return requester


def get_current_staff(requester: Requester = Depends(get_requester)) -> Requester:
    if not requester.user_id:
        raise error_response(
            "Not authenticated",
            {"token": "required"},
            status.HTTP_401_UNAUTHORIZED,
        )
    if requester.role not in STAFF_ROLES:
        raise error_response(
            "Staff access required",
            {"role": requester.role or "none"},
            status.HTTP_403_FORBIDDEN,
        )
    return requester
