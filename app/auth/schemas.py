from typing import Dict, Optional
from uuid import UUID

from pydantic import BaseModel


class CurrentUser(BaseModel):
    """Lightweight representation of the authenticated user for RBAC checks.
    tenant_id comes from the access token and is passed explicitly to every service call.
    """

    id: UUID
    tenant_id: UUID
    role: str
    full_name: Optional[str] = None
    permissions: Dict[str, Dict[str, bool]]
