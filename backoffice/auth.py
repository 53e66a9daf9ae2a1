from datetime import datetime, timedelta
import os
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel

SECRET_KEY = os.getenv("APP_SECRET_KEY", "dev-secret-change-this")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 12)))

ROLES = ("superadmin", "orgadmin", "owner", "tenant")
# roles allowed to change tenancy records; superadmin passes every gate
WRITE_ROLES = ("orgadmin", "owner")

bearer_scheme = HTTPBearer(auto_error=False)


class Identity(BaseModel):
    sub: str
    role: str
    organization_id: Optional[int] = None
    owner_id: Optional[int] = None
    tenant_id: Optional[str] = None


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    now = datetime.utcnow()
    if expires_delta:
        expire = now + expires_delta
    else:
        expire = now + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire, "iat": now})
    encoded_jwt = jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)
    return encoded_jwt


def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Identity:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None:
        raise credentials_exception
    try:
        payload = jwt.decode(credentials.credentials, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise credentials_exception
    if payload.get("sub") is None or payload.get("role") not in ROLES:
        raise credentials_exception
    return Identity(
        sub=str(payload["sub"]),
        role=payload["role"],
        organization_id=payload.get("organization_id"),
        owner_id=payload.get("owner_id"),
        tenant_id=payload.get("tenant_id"),
    )


def require_any_role(*roles: str):
    def _checker(identity: Identity = Depends(get_current_identity)) -> Identity:
        if identity.role == "superadmin":
            return identity
        if identity.role not in roles:
            raise HTTPException(status_code=403, detail="Forbidden")
        return identity

    return _checker


def require_role(role: str):
    return require_any_role(role)


require_writer = require_any_role(*WRITE_ROLES)
