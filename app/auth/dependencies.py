from typing import Dict
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import Role, User
from app.auth.schemas import CurrentUser
from app.auth.security import decode_access_token
from app.db.session import get_db


# Tokens are issued by the platform identity service; this API only verifies them.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login-oauth")


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> CurrentUser:
    """Resolve the authenticated user and their permissions from the access token."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = decode_access_token(token)
    except JWTError:
        raise credentials_exception

    user_id_str = payload.get("user_id") or payload.get("sub")
    tenant_id_str = payload.get("tenant_id")
    if not user_id_str or not tenant_id_str:
        raise credentials_exception

    try:
        user_id = UUID(user_id_str)
        tenant_id = UUID(tenant_id_str)
    except ValueError:
        raise credentials_exception

    # Load user
    stmt = select(User).where(User.id == user_id, User.tenant_id == tenant_id)
    result = await db.execute(stmt)
    user = result.scalar_one_or_none()
    if not user or user.status != "ACTIVE":
        raise credentials_exception

    # Load role permissions (tenant-scoped)
    role_stmt = select(Role).where(Role.tenant_id == tenant_id, Role.name == user.role)
    role_result = await db.execute(role_stmt)
    role = role_result.scalar_one_or_none()

    permissions: Dict[str, Dict[str, bool]] = {}
    if role and role.permissions:
        permissions = role.permissions  # type: ignore[assignment]

    return CurrentUser(
        id=user.id,
        tenant_id=user.tenant_id,
        role=user.role,
        full_name=user.full_name,
        permissions=permissions or {},
    )
