"""
Request-scoped dependencies.

Tenant and acting user arrive as explicit headers set by the gateway in
front of this service; nothing is read from process-wide state.
"""
from typing import Optional
from uuid import UUID

from fastapi import Header


def get_tenant_id(x_tenant_id: UUID = Header(..., description="Tenant owning the request")) -> UUID:
    return x_tenant_id


def get_user_id(x_user_id: Optional[UUID] = Header(None, description="Acting user, for audit")) -> Optional[UUID]:
    return x_user_id
