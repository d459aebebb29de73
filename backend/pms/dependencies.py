import uuid

from fastapi import Header, HTTPException


async def get_tenant_id(x_tenant_id: str | None = Header(None)) -> uuid.UUID:
    """Resolve the tenant for the request. Every core call is scoped by it."""
    if not x_tenant_id:
        raise HTTPException(status_code=400, detail="X-Tenant-ID header is required")
    try:
        return uuid.UUID(x_tenant_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="X-Tenant-ID must be a UUID")
