"""API endpoints for Inventory module (ledger reads)."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.auth.dependencies import require_roles
from src.core.auth.models import User, UserRole
from src.core.database.session import get_db
from src.modules.inventory.schemas import (
    InventoryEntryResponse,
    SkuBinQuantity,
    SkuStockResponse,
)
from src.modules.inventory.service import LedgerService
from src.shared.schemas.base import ApiResponse, PaginatedResponse

router = APIRouter(prefix="/inventory", tags=["Inventory"])

ReadRole = Depends(require_roles(UserRole.SUPER_ADMIN, UserRole.ADMIN, UserRole.USER))


@router.get(
    "",
    response_model=ApiResponse[PaginatedResponse[InventoryEntryResponse]],
)
async def list_inventory(
    sku: str | None = Query(None, description="Filter by SKU"),
    bin: str | None = Query(None, description="Filter by bin"),
    include_zero: bool = Query(False, description="Include entries with zero stock"),
    page: int = Query(1, ge=1),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    current_user: User = ReadRole,
):
    """List ledger entries."""
    service = LedgerService(db)
    entries, total = await service.list_entries(
        sku_id=sku,
        bin_name=bin,
        include_zero=include_zero,
        page=page,
        limit=limit,
    )
    return ApiResponse(
        success=True,
        data=PaginatedResponse.create(
            items=[InventoryEntryResponse.model_validate(e) for e in entries],
            total=total,
            page=page,
            limit=limit,
        ),
    )


@router.get(
    "/sku/{sku_id}",
    response_model=ApiResponse[SkuStockResponse],
)
async def get_sku_stock(
    sku_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = ReadRole,
):
    """Stock of one SKU in every bin that holds it."""
    service = LedgerService(db)
    entries = await service.get_bins_by_sku(sku_id)
    return ApiResponse(
        success=True,
        data=SkuStockResponse(
            sku_id=sku_id.strip().upper(),
            total_quantity=sum(e.quantity for e in entries),
            bins=[SkuBinQuantity(bin=e.bin, quantity=e.quantity) for e in entries],
        ),
    )
