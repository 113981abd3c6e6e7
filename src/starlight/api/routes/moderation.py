"""Administrator block-list routes."""

from __future__ import annotations

from datetime import timedelta

from fastapi import APIRouter, status

from starlight.api.dependencies import AdminSession, Services
from starlight.api.schemas import BlockCreate, ToggleRead
from starlight.core.schemas import BlockEntry

router = APIRouter()


@router.get("/blocks", response_model=list[BlockEntry])
async def list_blocks(admin: AdminSession, services: Services) -> list[BlockEntry]:
    return services.guard.list_blocks()


@router.post("/blocks", response_model=BlockEntry, status_code=status.HTTP_201_CREATED)
async def block(body: BlockCreate, admin: AdminSession, services: Services) -> BlockEntry:
    """Block an identity.  Temporary blocks default to the configured length."""
    if body.email == admin.email:
        raise ValueError("administrators cannot block themselves")
    duration = timedelta(days=body.days) if body.days else None
    return services.guard.block(body.email, body.block_type, name=body.name, duration=duration)


@router.delete("/blocks/{email}", response_model=ToggleRead)
async def unblock(email: str, admin: AdminSession, services: Services) -> ToggleRead:
    """Lift a block; ``active`` reports whether one existed."""
    return ToggleRead(active=services.guard.unblock(email))
