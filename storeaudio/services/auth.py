import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from storeaudio.errors import Unauthorized

SECRET_KEY = os.getenv("STOREAUDIO_SECRET_KEY", "change-me-in-production")
JWT_ALGORITHM = os.getenv("STOREAUDIO_JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("STOREAUDIO_ACCESS_TOKEN_EXPIRE_MINUTES", "1440"))

ROLES = ("super_admin", "admin", "manager", "operator")
ADMIN_ROLES = frozenset({"super_admin", "admin"})
MANAGER_ROLES = frozenset({"super_admin", "admin", "manager"})


@dataclass(frozen=True)
class Principal:
    user_id: str
    organization_id: str
    role: str


def create_access_token(
    user_id: str,
    organization_id: str,
    role: str = "admin",
    expires_delta: timedelta | None = None,
) -> str:
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    claims = {
        "sub": user_id,
        "organizationId": organization_id,
        "role": role,
        "exp": expire,
    }
    return jwt.encode(claims, SECRET_KEY, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> Principal:
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except JWTError as exc:
        raise Unauthorized("Could not validate credentials") from exc
    user_id = payload.get("sub")
    organization_id = payload.get("organizationId")
    role = payload.get("role") or "operator"
    if not user_id or not organization_id or role not in ROLES:
        raise Unauthorized("Could not validate credentials")
    return Principal(user_id=str(user_id), organization_id=str(organization_id), role=role)
