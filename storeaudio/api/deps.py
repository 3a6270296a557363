from collections.abc import Callable, Iterable

from fastapi import Depends, Header
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from storeaudio.errors import Forbidden, Unauthorized
from storeaudio.services.auth import Principal, decode_access_token

bearer_scheme = HTTPBearer(auto_error=False)


def get_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Principal:
    if credentials is None or not credentials.credentials:
        raise Unauthorized("Not authenticated")
    return decode_access_token(credentials.credentials)


def require_roles(roles: Iterable[str]) -> Callable[..., Principal]:
    allowed = frozenset(roles)

    def dependency(principal: Principal = Depends(get_principal)) -> Principal:
        if principal.role not in allowed:
            raise Forbidden("Insufficient role for this operation")
        return principal

    return dependency


def device_id_header(x_device_id: str | None = Header(None, alias="X-Device-ID")) -> str:
    device_id = (x_device_id or "").strip()
    if not device_id:
        raise Unauthorized("Device ID required")
    return device_id
