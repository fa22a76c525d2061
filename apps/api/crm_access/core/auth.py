from dataclasses import dataclass

from jose import JWTError, jwt
from starlette.requests import Request

from crm_access.core.config import get_settings


ANONYMOUS_ROLE = "default"


@dataclass
class AuthUser:
    sub: str
    role: str


async def get_current_user(request: Request) -> AuthUser:
    auth_header = request.headers.get("authorization", "")
    token = auth_header.replace("Bearer ", "") if auth_header.startswith("Bearer ") else ""

    if not token:
        return AuthUser(sub="anonymous", role=ANONYMOUS_ROLE)

    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return AuthUser(sub="anonymous", role=ANONYMOUS_ROLE)

    subject = str(payload.get("sub", "anonymous"))
    role = payload.get("role") or ANONYMOUS_ROLE
    return AuthUser(sub=subject, role=str(role))
