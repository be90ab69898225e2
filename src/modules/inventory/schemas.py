"""Schemas for Inventory module."""

from datetime import datetime

from pydantic import BaseModel


class InventoryEntryResponse(BaseModel):
    """Schema for one ledger entry."""

    id: int
    sku_id: str
    bin: str
    quantity: int
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class SkuBinQuantity(BaseModel):
    bin: str
    quantity: int


class SkuStockResponse(BaseModel):
    """Stock of one SKU across bins."""

    sku_id: str
    total_quantity: int
    bins: list[SkuBinQuantity]
